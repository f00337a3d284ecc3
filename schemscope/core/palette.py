"""
BlockPalette - Block State Palette
==================================

Ordered, immutable list of block-state descriptors. Palette indices in a
VoxelGrid resolve through this list.
"""

import numpy as np
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from schemscope.core.blockstate import as_text, base_block_id, format_block_state, is_air


class BlockPalette:
    """
    Block-state palette for a decoded schematic.

    Index order comes from the source format: an explicit state-to-index
    mapping for Sponge schematics, declaration order for Litematica.
    Slots the mapping never assigns hold None and count as air.
    """

    def __init__(self, entries: Iterable[Optional[str]] = ()):
        self._entries: Tuple[Optional[str], ...] = tuple(
            None if entry is None else as_text(entry) for entry in entries
        )
        self._air_mask = np.array([is_air(entry) for entry in self._entries], dtype=bool)
        self._base_ids = tuple(
            None if air else base_block_id(entry)
            for entry, air in zip(self._entries, self._air_mask)
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int]) -> 'BlockPalette':
        """
        Build a palette from a descriptor -> index mapping.

        The palette is sized max(index) + 1; unassigned slots are None.
        """
        indexed = {int(index): state for state, index in mapping.items()}
        size = max(indexed) + 1 if indexed else 0
        entries: List[Optional[str]] = [None] * size
        for index, state in indexed.items():
            if index >= 0:
                entries[index] = state
        return cls(entries)

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping]) -> 'BlockPalette':
        """Build a palette from ``{Name, Properties?}`` compounds in declaration order."""
        return cls(
            format_block_state(entry.get('Name', 'minecraft:air'), entry.get('Properties'))
            for entry in entries
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> Optional[str]:
        return self._entries[index]

    def __iter__(self) -> Iterator[Optional[str]]:
        return iter(self._entries)

    def __eq__(self, other) -> bool:
        if isinstance(other, BlockPalette):
            return self._entries == other._entries
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"BlockPalette({list(self._entries)!r})"

    def get(self, index: int) -> Optional[str]:
        """Get the descriptor at an index, or None if the index is out of range."""
        if 0 <= index < len(self._entries):
            return self._entries[index]
        return None

    @property
    def entries(self) -> Tuple[Optional[str], ...]:
        """All descriptors in index order."""
        return self._entries

    def air_mask(self) -> np.ndarray:
        """Boolean array, True where the palette slot is air."""
        return self._air_mask.copy()

    def air_indices(self) -> List[int]:
        """Indices of every air slot."""
        return [int(i) for i in np.flatnonzero(self._air_mask)]

    def base_ids(self) -> Tuple[Optional[str], ...]:
        """Base block id per slot (None for air)."""
        return self._base_ids

    def base_id_codes(self) -> Tuple[np.ndarray, List[str]]:
        """
        Map every slot to a small integer per distinct base id.

        Slots that share a base id (e.g. stairs facing different ways)
        share a code; air slots get 0.

        Returns:
            Tuple of (codes per palette index, base id per code - 1)
        """
        codes = np.zeros(len(self._entries), dtype=np.int32)
        names: List[str] = []
        lookup: Dict[str, int] = {}
        for index, base in enumerate(self._base_ids):
            if base is None:
                continue
            if base not in lookup:
                names.append(base)
                lookup[base] = len(names)
            codes[index] = lookup[base]
        return codes, names

    def to_list(self) -> List[Optional[str]]:
        """Serialize the palette to a plain list."""
        return list(self._entries)
