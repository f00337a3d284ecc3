"""
SchemScope Formats Module
=========================

Schematic decoders and the dispatch that picks one per file.
"""

from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, TYPE_CHECKING

import nbtlib

from schemscope.formats.decoding import PackingLayout
from schemscope.formats.minecraft import DEFAULT_NAME, LitematicSchematic, SpongeSchematic

if TYPE_CHECKING:
    from schemscope.core.voxel_grid import VoxelGrid


class SchematicFormat(Enum):
    """Supported schematic formats, chosen once at the file boundary."""
    SPONGE = '.schem'
    LITEMATIC = '.litematic'

    @classmethod
    def from_extension(cls, filepath: str) -> 'SchematicFormat':
        """
        Pick the format from a file extension.

        Raises:
            ValueError: If the extension is not supported
        """
        ext = Path(filepath).suffix.lower()
        for fmt in cls:
            if fmt.value == ext:
                return fmt
        raise ValueError(f"Unsupported schematic format: {ext}")

    @classmethod
    def detect(cls, tree: Mapping) -> 'SchematicFormat':
        """
        Pick the format from the shape of a parsed tree.

        Raises:
            ValueError: If the tree looks like neither format
        """
        if 'Regions' in tree:
            return cls.LITEMATIC
        root = tree['Schematic'] if 'Schematic' in tree else tree
        if 'BlockData' in root or 'Palette' in root:
            return cls.SPONGE
        raise ValueError("Unrecognised schematic tree: no Regions, Palette or BlockData")


class FormatManager:
    """
    Centralized schematic loader.

    Maps every SchematicFormat to its adapter and decodes files or
    already-parsed NBT trees into VoxelGrid instances.
    """

    IMPORT_FORMATS = {
        SchematicFormat.SPONGE: SpongeSchematic,
        SchematicFormat.LITEMATIC: LitematicSchematic,
    }

    def __init__(self, layout: Optional[PackingLayout] = None):
        """
        Args:
            layout: Packing layout forced on bit-packed formats (None = detect)
        """
        self.layout = layout

    def from_nbt(self, tree: Mapping, fmt: Optional[SchematicFormat] = None,
                 default_name: str = DEFAULT_NAME) -> 'VoxelGrid':
        """
        Decode an already-parsed NBT tree.

        Args:
            tree: Root compound
            fmt: Format to decode as; detected from the tree shape if omitted
            default_name: Name used when the tree carries none

        Returns:
            Decoded VoxelGrid
        """
        if fmt is None:
            fmt = SchematicFormat.detect(tree)
        if fmt is SchematicFormat.LITEMATIC:
            return LitematicSchematic.from_nbt(tree, default_name=default_name, layout=self.layout)
        return SpongeSchematic.from_nbt(tree, default_name=default_name)

    def load(self, filepath: str) -> 'VoxelGrid':
        """
        Load a schematic file.

        Args:
            filepath: Path to a .schem or .litematic file

        Returns:
            Decoded VoxelGrid, named after the file when it has no name

        Raises:
            ValueError: If the file format is not supported
            SchematicError: If the file content cannot be decoded
        """
        fmt = SchematicFormat.from_extension(filepath)
        nbt_file = nbtlib.load(filepath)
        return self.from_nbt(nbt_file, fmt, default_name=Path(filepath).stem)

    def can_import(self, filepath: str) -> bool:
        """Check if a file can be imported."""
        ext = Path(filepath).suffix.lower()
        return any(fmt.value == ext for fmt in self.IMPORT_FORMATS)


__all__ = [
    'FormatManager',
    'SchematicFormat',
    'PackingLayout',
    'SpongeSchematic',
    'LitematicSchematic',
]
