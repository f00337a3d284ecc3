"""
SchemScope Core Module
======================

Voxel grid data model and the analysis passes that run over it.
"""

from schemscope.core.blockstate import base_block_id, format_block_state, is_air
from schemscope.core.palette import BlockPalette
from schemscope.core.voxel_grid import VoxelGrid
from schemscope.core.operations import (
    ConnectedRegion,
    MaterialAggregator,
    MaterialCount,
    RegionAnalyzer,
    filter_materials,
    format_stacks,
)
from schemscope.core.placement import PlacementTracker

__all__ = [
    'BlockPalette',
    'VoxelGrid',
    'RegionAnalyzer',
    'ConnectedRegion',
    'MaterialAggregator',
    'MaterialCount',
    'PlacementTracker',
    'base_block_id',
    'filter_materials',
    'format_block_state',
    'format_stacks',
    'is_air',
]
