import nbtlib
import numpy as np
import pytest

from schemscope.errors import (
    MalformedDimensionsError,
    MissingFieldError,
    PaletteIndexError,
    SchematicError,
    TruncatedDataError,
)
from schemscope.formats import FormatManager, LitematicSchematic, SchematicFormat, SpongeSchematic
from schemscope.formats.decoding import PackingLayout, encode_varint_array


def random_states(rng, palette, count):
    return [palette[i] for i in rng.integers(0, len(palette), size=count)]


def assert_grid_matches(grid, blocks):
    """Every (x, y, z) resolves to the descriptor listed for it in Y-Z-X order."""
    for y in range(grid.height):
        for z in range(grid.length):
            for x in range(grid.width):
                expected = blocks[(y * grid.length + z) * grid.width + x]
                assert grid.get_block(x, y, z) == expected, (x, y, z)


# ─── Sponge ───

def test_sponge_round_trip(make_sponge_tree, rng):
    # A palette over 128 entries forces multi-byte varints
    palette = ['minecraft:air'] + [f'minecraft:block_{i}[n={i}]' for i in range(299)]
    width, height, length = 10, 6, 8
    blocks = random_states(rng, palette, width * height * length)

    grid = SpongeSchematic.from_nbt(make_sponge_tree(width, height, length, blocks))

    assert len(grid.palette) > 128

    assert grid.size == (width, height, length)
    assert_grid_matches(grid, blocks)
    assert grid.total_non_air == sum(state != 'minecraft:air' for state in blocks)


def test_sponge_axis_order(make_sponge_tree):
    # index = x + z * Width + y * Width * Length
    blocks = [f'minecraft:b{i}' for i in range(2 * 3 * 4)]
    grid = SpongeSchematic.from_nbt(make_sponge_tree(2, 3, 4, blocks))
    assert grid.get_block(1, 0, 0) == 'minecraft:b1'
    assert grid.get_block(0, 0, 1) == 'minecraft:b2'
    assert grid.get_block(0, 1, 0) == 'minecraft:b8'
    assert grid.get_block(1, 2, 3) == 'minecraft:b23'


def test_sponge_wrapped_root_and_name(make_sponge_tree):
    tree = make_sponge_tree(1, 1, 1, ['minecraft:stone'], name='Tower', wrap=True)
    grid = SpongeSchematic.from_nbt(tree)
    assert grid.name == 'Tower'
    assert grid.get_block(0, 0, 0) == 'minecraft:stone'


def test_sponge_default_name(make_sponge_tree):
    tree = make_sponge_tree(1, 1, 1, ['minecraft:stone'])
    assert SpongeSchematic.from_nbt(tree).name == 'Unnamed'
    assert SpongeSchematic.from_nbt(tree, default_name='castle').name == 'castle'


def test_sponge_palette_gaps():
    tree = {
        'Width': 3, 'Height': 1, 'Length': 1,
        'Palette': {'minecraft:air': 0, 'minecraft:stone': 2},
        'BlockData': bytes([2, 0, 2]),
    }
    grid = SpongeSchematic.from_nbt(tree)
    assert grid.palette.to_list() == ['minecraft:air', None, 'minecraft:stone']
    assert grid.total_non_air == 2


def test_sponge_nbt_compound(sponge_nbt):
    grid = SpongeSchematic.from_nbt(sponge_nbt)
    assert grid.name == 'Steps'
    assert grid.size == (3, 2, 2)
    assert grid.total_non_air == 6
    assert grid.get_block(0, 0, 0) == 'minecraft:air'
    assert grid.get_block(2, 1, 0) == 'minecraft:oak_stairs[facing=east,half=bottom]'
    assert grid.get_block(0, 1, 1) == 'minecraft:stone'


def test_sponge_short_block_data():
    tree = {
        'Width': 2, 'Height': 2, 'Length': 2,
        'Palette': {'minecraft:stone': 0},
        'BlockData': encode_varint_array([0] * 7),
    }
    with pytest.raises(TruncatedDataError):
        SpongeSchematic.from_nbt(tree)


@pytest.mark.parametrize("field", ['Palette', 'BlockData', 'Width'])
def test_sponge_missing_field(make_sponge_tree, field):
    tree = make_sponge_tree(1, 1, 1, ['minecraft:stone'])
    del tree[field]
    with pytest.raises(MissingFieldError) as excinfo:
        SpongeSchematic.from_nbt(tree)
    assert excinfo.value.field == field


def test_sponge_zero_width(make_sponge_tree):
    tree = make_sponge_tree(1, 1, 1, ['minecraft:stone'])
    tree['Width'] = 0
    with pytest.raises(MalformedDimensionsError):
        SpongeSchematic.from_nbt(tree)


def test_sponge_index_beyond_palette():
    tree = {
        'Width': 1, 'Height': 1, 'Length': 2,
        'Palette': {'minecraft:stone': 0},
        'BlockData': bytes([0, 4]),
    }
    with pytest.raises(PaletteIndexError):
        SpongeSchematic.from_nbt(tree)


# ─── Litematica ───

@pytest.mark.parametrize("palette_size, size", [
    (5, (4, 4, 4)),
    (17, (6, 5, 7)),
    # 2-bit entries fill words exactly, so both layouts read the same
    (3, (5, 3, 2)),
])
@pytest.mark.parametrize("layout", list(PackingLayout))
def test_litematic_round_trip(make_litematic_tree, rng, palette_size, size, layout):
    width, height, length = size
    count = width * height * length

    entries = [{'Name': 'minecraft:air'}] + [
        {'Name': f'minecraft:block_{i}', 'Properties': {'level': str(i), 'axis': 'y'}}
        for i in range(palette_size - 1)
    ]
    indices = rng.integers(0, palette_size, size=count)
    tree = make_litematic_tree(size, entries, indices, layout)

    grid = LitematicSchematic.from_nbt(tree)

    states = grid.palette.to_list()
    assert states[1] == 'minecraft:block_0[axis=y,level=0]'
    assert_grid_matches(grid, [states[i] for i in indices])
    assert grid.total_non_air == int(np.count_nonzero(indices))


def test_litematic_spanning_and_non_spanning_fixtures_differ(make_litematic_tree):
    # 64 cells at 3 bits: 3 words when spanning, 4 when not
    entries = [{'Name': 'minecraft:air'}, {'Name': 'minecraft:stone'}, {'Name': 'minecraft:dirt'},
               {'Name': 'minecraft:glass'}, {'Name': 'minecraft:sand'}]
    indices = [i % 5 for i in range(64)]
    spanning = make_litematic_tree((4, 4, 4), entries, indices, PackingLayout.SPANNING)
    non_spanning = make_litematic_tree((4, 4, 4), entries, indices, PackingLayout.NON_SPANNING)

    assert len(spanning['Regions']['Main']['BlockStates']) == 3
    assert len(non_spanning['Regions']['Main']['BlockStates']) == 4
    for tree in (spanning, non_spanning):
        grid = LitematicSchematic.from_nbt(tree)
        assert grid.indices.tolist() == indices


def test_litematic_nbt_compound(litematic_nbt):
    grid = LitematicSchematic.from_nbt(litematic_nbt)
    assert grid.name == 'Log Pile'
    assert grid.size == (2, 2, 2)
    assert grid.total_non_air == 5
    assert grid.get_block(0, 0, 0) == 'minecraft:oak_log[axis=y]'
    assert grid.get_block(1, 0, 0) == 'minecraft:air'
    assert grid.get_block(1, 1, 0) == 'minecraft:oak_stairs[facing=north,waterlogged=false]'
    assert grid.get_block(1, 1, 1) == 'minecraft:oak_log[axis=y]'


def test_litematic_name_falls_back_to_region(make_litematic_tree):
    tree = make_litematic_tree((1, 1, 1), [{'Name': 'minecraft:stone'}], [0], region='Gate')
    assert LitematicSchematic.from_nbt(tree).name == 'Gate'
    tree['Regions'] = {'': tree['Regions']['Gate']}
    assert LitematicSchematic.from_nbt(tree).name == 'Unnamed'


def test_litematic_uppercase_size_keys(make_litematic_tree):
    tree = make_litematic_tree((2, 1, 1), [{'Name': 'minecraft:stone'}], [0, 0])
    tree['Regions']['Main']['Size'] = {'X': -2, 'Y': 1, 'Z': -1}
    assert LitematicSchematic.from_nbt(tree).size == (2, 1, 1)


def test_litematic_uses_first_region(make_litematic_tree):
    tree = make_litematic_tree((1, 1, 1), [{'Name': 'minecraft:stone'}], [0], region='A')
    other = make_litematic_tree((1, 1, 1), [{'Name': 'minecraft:dirt'}], [0], region='B')
    tree['Regions']['B'] = other['Regions']['B']
    assert LitematicSchematic.from_nbt(tree).get_block(0, 0, 0) == 'minecraft:stone'


def test_litematic_forced_layout(make_litematic_tree):
    entries = [{'Name': f'minecraft:b{i}'} for i in range(5)]
    indices = [i % 5 for i in range(43)]
    tree = make_litematic_tree((43, 1, 1), entries, indices, PackingLayout.SPANNING)

    grid = LitematicSchematic.from_nbt(tree, layout=PackingLayout.SPANNING)
    assert grid.indices.tolist() == indices


def test_litematic_without_regions():
    with pytest.raises(MissingFieldError) as excinfo:
        LitematicSchematic.from_nbt({'Metadata': {'Name': 'x'}})
    assert excinfo.value.field == 'Regions'


def test_litematic_with_empty_regions():
    with pytest.raises(MissingFieldError):
        LitematicSchematic.from_nbt({'Regions': {}})


@pytest.mark.parametrize("field", ['BlockStatePalette', 'BlockStates', 'Size'])
def test_litematic_missing_region_field(make_litematic_tree, field):
    tree = make_litematic_tree((1, 1, 1), [{'Name': 'minecraft:stone'}], [0])
    del tree['Regions']['Main'][field]
    with pytest.raises(MissingFieldError):
        LitematicSchematic.from_nbt(tree)


def test_litematic_empty_palette(make_litematic_tree):
    tree = make_litematic_tree((1, 1, 1), [{'Name': 'minecraft:stone'}], [0])
    tree['Regions']['Main']['BlockStatePalette'] = []
    with pytest.raises(MissingFieldError):
        LitematicSchematic.from_nbt(tree)


def test_errors_are_value_errors():
    assert issubclass(SchematicError, ValueError)
    assert issubclass(MissingFieldError, SchematicError)


# ─── Dispatch ───

def test_format_from_extension():
    assert SchematicFormat.from_extension('a/b/House.SCHEM') is SchematicFormat.SPONGE
    assert SchematicFormat.from_extension('x.litematic') is SchematicFormat.LITEMATIC
    with pytest.raises(ValueError):
        SchematicFormat.from_extension('x.schematic')


def test_format_detect(sponge_nbt, litematic_nbt):
    assert SchematicFormat.detect(sponge_nbt) is SchematicFormat.SPONGE
    assert SchematicFormat.detect(litematic_nbt) is SchematicFormat.LITEMATIC
    with pytest.raises(ValueError):
        SchematicFormat.detect({'Width': 1})


def test_manager_from_nbt(sponge_nbt, litematic_nbt):
    manager = FormatManager()
    assert manager.from_nbt(sponge_nbt).name == 'Steps'
    assert manager.from_nbt(litematic_nbt).name == 'Log Pile'


def test_manager_forced_layout(make_litematic_tree):
    entries = [{'Name': f'minecraft:b{i}'} for i in range(5)]
    indices = [(i * 2) % 5 for i in range(43)]
    tree = make_litematic_tree((43, 1, 1), entries, indices, PackingLayout.SPANNING)

    grid = FormatManager(layout=PackingLayout.SPANNING).from_nbt(tree)
    assert grid.indices.tolist() == indices


def test_manager_can_import():
    manager = FormatManager()
    assert manager.can_import('castle.schem')
    assert manager.can_import('castle.litematic')
    assert manager.can_import('CASTLE.SCHEM')
    assert set(FormatManager.IMPORT_FORMATS) == set(SchematicFormat)
    assert not manager.can_import('castle.vox')


def test_load_files(tmp_path, sponge_nbt, litematic_nbt):
    schem_path = tmp_path / 'steps.schem'
    nbtlib.File(sponge_nbt).save(str(schem_path), gzipped=True)
    litematic_path = tmp_path / 'pile.litematic'
    nbtlib.File(litematic_nbt).save(str(litematic_path), gzipped=True)

    manager = FormatManager()
    assert manager.load(str(schem_path)).get_block(2, 1, 1) == 'minecraft:oak_stairs[facing=east,half=bottom]'
    assert manager.load(str(litematic_path)).total_non_air == 5
    assert SpongeSchematic.load(str(schem_path)).name == 'Steps'
    assert LitematicSchematic.load(str(litematic_path)).name == 'Log Pile'


def test_load_names_grid_after_file(tmp_path):
    tree = nbtlib.Compound({
        'Width': nbtlib.Short(1), 'Height': nbtlib.Short(1), 'Length': nbtlib.Short(1),
        'Palette': nbtlib.Compound({'minecraft:stone': nbtlib.Int(0)}),
        'BlockData': nbtlib.ByteArray([0]),
    })
    path = tmp_path / 'pillar.schem'
    nbtlib.File(tree).save(str(path), gzipped=True)
    assert FormatManager().load(str(path)).name == 'pillar'


def test_load_unsupported_extension(tmp_path):
    with pytest.raises(ValueError):
        FormatManager().load(str(tmp_path / 'model.vox'))
