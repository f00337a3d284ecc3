"""
Shared fixtures: builders for voxel grids and parsed schematic trees.
"""

import nbtlib
import numpy as np
import pytest

from schemscope.core.palette import BlockPalette
from schemscope.core.voxel_grid import VoxelGrid
from schemscope.formats.decoding import PackingLayout, encode_varint_array, pack_array

LEGEND = {
    '.': 'minecraft:air',
    'S': 'minecraft:stone',
    'P': 'minecraft:oak_planks',
    'N': 'minecraft:oak_stairs[facing=north]',
    'T': 'minecraft:oak_stairs[facing=south]',
    'C': 'minecraft:cave_air',
    'G': 'minecraft:glass',
}


def build_grid(layers, legend=None, name="Test"):
    """
    Build a VoxelGrid from ASCII layers.

    ``layers[y][z][x]`` is a legend character; every row must be the same width.
    """
    legend = legend or LEGEND
    keys = list(legend)
    palette = BlockPalette(legend[key] for key in keys)
    height = len(layers)
    length = len(layers[0])
    width = len(layers[0][0])
    indices = [keys.index(ch) for layer in layers for row in layer for ch in row]
    return VoxelGrid(width, height, length, palette, np.array(indices), name=name)


def sponge_tree(width, height, length, blocks, name=None, wrap=False):
    """
    Build a plain-dict Sponge tree from descriptors listed in Y-Z-X order.

    Palette indices are assigned in order of first appearance.
    """
    mapping = {}
    for state in blocks:
        mapping.setdefault(state, len(mapping))
    root = {
        'Version': 2,
        'Width': width,
        'Height': height,
        'Length': length,
        'Palette': dict(mapping),
        'BlockData': encode_varint_array(mapping[state] for state in blocks),
    }
    if name:
        root['Metadata'] = {'Name': name}
    return {'Schematic': root} if wrap else root


def litematic_tree(size, palette_entries, indices, layout=PackingLayout.NON_SPANNING,
                   region='Main', name=None):
    """Build a plain-dict Litematica tree with a single region."""
    x, y, z = size
    tree = {
        'Regions': {
            region: {
                'Position': {'x': 0, 'y': 0, 'z': 0},
                'Size': {'x': x, 'y': y, 'z': z},
                'BlockStatePalette': palette_entries,
                'BlockStates': pack_array(indices, len(palette_entries), layout),
            }
        }
    }
    if name:
        tree['Metadata'] = {'Name': name}
    return tree


def signed_bytes(data):
    """Bytes as signed values, the way NBT byte arrays hold them."""
    return [b - 256 if b > 127 else b for b in data]


@pytest.fixture
def make_grid():
    return build_grid


@pytest.fixture
def make_sponge_tree():
    return sponge_tree


@pytest.fixture
def make_litematic_tree():
    return litematic_tree


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def sponge_nbt():
    """An nbtlib Sponge schematic: 3x2x2 of stone and stairs on an air floor."""
    palette = {
        'minecraft:air': 0,
        'minecraft:stone': 1,
        'minecraft:oak_stairs[facing=east,half=bottom]': 2,
    }
    blocks = [0] * 6 + [1, 1, 2, 1, 2, 2]
    return nbtlib.Compound({
        'Schematic': nbtlib.Compound({
            'Version': nbtlib.Int(2),
            'DataVersion': nbtlib.Int(2586),
            'Width': nbtlib.Short(3),
            'Height': nbtlib.Short(2),
            'Length': nbtlib.Short(2),
            'Metadata': nbtlib.Compound({'Name': nbtlib.String('Steps')}),
            'Palette': nbtlib.Compound({k: nbtlib.Int(v) for k, v in palette.items()}),
            'BlockData': nbtlib.ByteArray(signed_bytes(encode_varint_array(blocks))),
        })
    })


@pytest.fixture
def litematic_nbt():
    """An nbtlib Litematica tree with a negative-size 2x2x2 region."""
    palette = nbtlib.List[nbtlib.Compound]([
        nbtlib.Compound({'Name': nbtlib.String('minecraft:air')}),
        nbtlib.Compound({
            'Name': nbtlib.String('minecraft:oak_log'),
            'Properties': nbtlib.Compound({'axis': nbtlib.String('y')}),
        }),
        nbtlib.Compound({
            'Name': nbtlib.String('minecraft:oak_stairs'),
            'Properties': nbtlib.Compound({
                'waterlogged': nbtlib.String('false'),
                'facing': nbtlib.String('north'),
            }),
        }),
    ])
    indices = [1, 0, 0, 1, 2, 2, 0, 1]
    words = pack_array(indices, 3)
    return nbtlib.Compound({
        'MinecraftDataVersion': nbtlib.Int(2586),
        'Metadata': nbtlib.Compound({'Name': nbtlib.String('Log Pile')}),
        'Regions': nbtlib.Compound({
            'Pile': nbtlib.Compound({
                'Size': nbtlib.Compound({
                    'x': nbtlib.Int(-2), 'y': nbtlib.Int(2), 'z': nbtlib.Int(-2),
                }),
                'BlockStatePalette': palette,
                'BlockStates': nbtlib.LongArray([int(w) for w in words]),
            })
        }),
    })
