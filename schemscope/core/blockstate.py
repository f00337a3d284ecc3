"""
Block State Descriptors
=======================

Helpers for canonical block-state strings such as
``minecraft:oak_stairs[facing=north,half=bottom]``.

Air classification lives here and nowhere else: the format adapters, the
VoxelGrid and every analysis pass call is_air().
"""

from typing import Mapping, Optional

DEFAULT_NAMESPACE = 'minecraft'

AIR_BLOCKS = frozenset({
    'minecraft:air',
    'minecraft:cave_air',
    'minecraft:void_air',
})


def as_text(value) -> str:
    """Plain str for a name or property value, including NBT String tags."""
    if isinstance(value, str):
        return str.__str__(value)
    return str(value)


def strip_properties(block_state: str) -> str:
    """Remove the bracketed property suffix from a descriptor."""
    return block_state.split('[', 1)[0]


def is_air(block_state: Optional[str]) -> bool:
    """
    Check whether a descriptor is one of the air variants.

    Missing descriptors count as air. Case and the property suffix are
    ignored; a bare id is read in the ``minecraft`` namespace.
    """
    if not block_state:
        return True
    base = strip_properties(block_state).strip().lower()
    if ':' not in base:
        base = f"{DEFAULT_NAMESPACE}:{base}"
    return base in AIR_BLOCKS


def base_block_id(block_state: Optional[str]) -> Optional[str]:
    """
    Get the base block id: no properties, lower case, no minecraft namespace.

    e.g. ``minecraft:Stone_Bricks[variant=mossy]`` -> ``stone_bricks``
    """
    if not block_state:
        return None
    base = strip_properties(block_state).strip().lower()
    prefix = f"{DEFAULT_NAMESPACE}:"
    if base.startswith(prefix):
        base = base[len(prefix):]
    return base or None


def format_block_state(name: str, properties: Optional[Mapping[str, object]] = None) -> str:
    """
    Build a canonical descriptor from a block name and its property map.

    Properties are appended as ``[key=value,...]`` with keys in sorted order,
    and only when there is at least one.
    """
    name = as_text(name)
    if properties:
        props = ','.join(
            f"{as_text(key)}={as_text(properties[key])}"
            for key in sorted(properties, key=as_text)
        )
        return f"{name}[{props}]"
    return name
