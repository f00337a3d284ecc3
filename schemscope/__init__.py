"""
SchemScope - Minecraft Schematic Inspector
==========================================

Decodes Minecraft schematics into a uniform voxel grid and analyses it:
- Sponge schematics (.schem, varint-encoded block data)
- Litematica schematics (.litematic, bit-packed block states)
- Same-block region flood fill per layer
- Bill of materials with stack counts

Version: 1.0.0
"""

__version__ = "1.0.0"
__license__ = "MIT"

from schemscope.core.voxel_grid import VoxelGrid
from schemscope.core.palette import BlockPalette
from schemscope.formats import FormatManager, SchematicFormat

__all__ = ['VoxelGrid', 'BlockPalette', 'FormatManager', 'SchematicFormat', '__version__']
