"""
Schematic Decode Errors
=======================

Every failure raised while turning an NBT tree into a VoxelGrid derives
from SchematicError, which is itself a ValueError.
"""

from typing import Optional


class SchematicError(ValueError):
    """Base class for schematic decoding failures."""


class MissingFieldError(SchematicError):
    """A required tag is absent from the NBT tree."""

    def __init__(self, field: str, fmt: Optional[str] = None):
        self.field = field
        self.format = fmt
        where = f" in {fmt} data" if fmt else ""
        super().__init__(f"No {field} found{where}")


class TruncatedDataError(SchematicError):
    """A byte or word buffer ended before all entries were decoded."""


class MalformedDimensionsError(SchematicError):
    """Width, height or length is non-positive or the cell count overflows."""


class PaletteIndexError(SchematicError):
    """A decoded index does not resolve to a palette entry."""
