#!/usr/bin/env python3
"""
SchemScope - Minecraft Schematic Inspector
==========================================

Main entry point for the SchemScope command line tool.
Decodes a Sponge (.schem) or Litematica (.litematic) schematic and prints
its size, a bill of materials and same-block regions on a layer.

Usage:
    python main.py file [--layer Y] [--at X Z] [--materials]

Arguments:
    file    Schematic file to inspect
"""

import sys
import logging
import argparse
from pathlib import Path

from schemscope import __version__
from schemscope.core import MaterialAggregator, RegionAnalyzer, filter_materials
from schemscope.errors import SchematicError
from schemscope.formats import FormatManager, PackingLayout

logger = logging.getLogger('schemscope')

LAYOUT_CHOICES = {
    'auto': None,
    'spanning': PackingLayout.SPANNING,
    'non-spanning': PackingLayout.NON_SPANNING,
}


def setup_logging(debug: bool = False):
    """Configure root logging for the command line."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='SchemScope - Minecraft Schematic Inspector',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Supported formats:
  .schem (Sponge Schematic v2), .litematic (Litematica)

Examples:
  %(prog)s castle.schem                 Show size and block count
  %(prog)s castle.schem --materials     List materials in stacks of 64
  %(prog)s house.litematic --layer 3 --at 4 7
                                        Show the region touching (4, 3, 7)
        """
    )

    parser.add_argument(
        'file',
        help='Schematic file to inspect'
    )

    parser.add_argument(
        '--layer',
        type=int,
        default=0,
        help='Layer (Y) used for region queries (default: 0)'
    )

    parser.add_argument(
        '--at',
        type=int,
        nargs=2,
        metavar=('X', 'Z'),
        help='Report the connected region containing this cell of the layer'
    )

    parser.add_argument(
        '--materials',
        action='store_true',
        help='Print the bill of materials'
    )

    parser.add_argument(
        '--filter',
        default='',
        help='Only list materials whose id contains this text'
    )

    parser.add_argument(
        '--layout',
        choices=sorted(LAYOUT_CHOICES),
        default='auto',
        help='Bit packing layout for .litematic files (default: auto)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser.parse_args(argv)


def print_summary(grid):
    """Print name, dimensions and block count."""
    print(f"Name:    {grid.name}")
    print(f"Size:    {grid.width} x {grid.height} x {grid.length} (W x H x L)")
    print(f"Blocks:  {grid.total_non_air:,}")
    print(f"Palette: {len(grid.palette)} entries")


def print_materials(grid, query: str = ''):
    """Print the bill of materials, largest first."""
    materials = filter_materials(MaterialAggregator(grid).compute_materials(), query)
    print(f"\nMaterials ({len(materials)} types)")
    width = max((len(m.base_id) for m in materials), default=0)
    for material in materials:
        print(f"  {material.base_id:<{width}}  {material.count:>8,}  {material.stacks}")


def print_region(grid, x: int, z: int, layer: int):
    """Print the connected region at a cell."""
    region = RegionAnalyzer(grid).flood_fill(x, z, layer)
    print(f"\nRegion at X: {x}  Y: {layer}  Z: {z}")
    if region is None:
        print("  (air)")
        return
    plural = 's' if region.count > 1 else ''
    print(f"  {region.base_id}: {region.width} × {region.height}, {region.count} block{plural}")
    print(f"  bounds X {region.min_x}..{region.max_x}, Z {region.min_z}..{region.max_z}")


def main(argv=None):
    """Main application entry point."""
    args = parse_arguments(argv)
    setup_logging(args.debug)

    filepath = Path(args.file)
    if not filepath.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    manager = FormatManager(layout=LAYOUT_CHOICES[args.layout])
    if not manager.can_import(str(filepath)):
        print(f"Error: Unsupported format: {filepath.suffix}", file=sys.stderr)
        return 1

    try:
        grid = manager.load(str(filepath))
    except SchematicError as e:
        logger.debug("Decode failed", exc_info=True)
        print(f"Error parsing file: {e}", file=sys.stderr)
        return 1

    print_summary(grid)

    if args.materials or args.filter:
        print_materials(grid, args.filter)

    if args.at is not None:
        if not 0 <= args.layer < grid.height:
            print(f"Error: Layer {args.layer} outside 0..{grid.height - 1}", file=sys.stderr)
            return 1
        x, z = args.at
        if not (0 <= x < grid.width and 0 <= z < grid.length):
            print(f"Error: Cell ({x}, {z}) outside 0..{grid.width - 1} x 0..{grid.length - 1}",
                  file=sys.stderr)
            return 1
        print_region(grid, x, z, args.layer)

    return 0


if __name__ == "__main__":
    sys.exit(main())
