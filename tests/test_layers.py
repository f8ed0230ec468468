import logging

import numpy as np
import pytest

from tmx_decoder.document import LayerData, TileLayer
from tmx_decoder.errors import DecodedLengthMismatchError, ErrorKind, InvalidGIDError
from tmx_decoder.gid import GID_HORIZONTAL_FLIP, NIL_TILE
from tmx_decoder.layers import (
    LayerAssembler,
    index_to_map_position,
    summarize_tilesets,
    tile_position,
)


@pytest.fixture
def tilesets(make_tileset):
    return [make_tileset(1, "ground", tilecount=4), make_tileset(5, "props", tilecount=4)]


def csv_layer(gids, width=2, height=2, name="layer"):
    text = ','.join(str(gid) for gid in gids)
    return TileLayer(name=name, width=width, height=height,
                     data=LayerData(encoding='csv', text=text))


def test_all_nil_layer_is_empty(tilesets):
    layer = LayerAssembler(tilesets).assemble(csv_layer([0, 0, 0, 0]), 2, 2)
    assert layer.empty
    assert layer.tileset is None
    assert not layer.uses_multiple_tilesets
    assert all(tile is NIL_TILE for tile in layer.tiles)


def test_single_tileset_layer(tilesets):
    layer = LayerAssembler(tilesets).assemble(csv_layer([1, 0, 2, 4]), 2, 2)
    assert not layer.empty
    assert layer.tileset is tilesets[0]
    assert not layer.uses_multiple_tilesets


def test_mixed_tileset_layer(tilesets):
    layer = LayerAssembler(tilesets).assemble(csv_layer([1, 0, 5, 0]), 2, 2)
    assert not layer.empty
    assert layer.tileset is None
    assert layer.uses_multiple_tilesets


def test_cells_keep_their_index(tilesets):
    layer = LayerAssembler(tilesets).assemble(csv_layer([6, 0, 1, 6]), 2, 2)
    assert [tile.id for tile in layer.tiles] == [1, 0, 0, 1]
    assert layer.tiles[1] is NIL_TILE
    assert layer.tiles[0] is layer.tiles[3]
    assert layer.tile_at(0, 1).tileset is tilesets[0]
    assert layer.tile_at(1, 1).tileset is tilesets[1]


def test_plain_layer_with_missing_cells():
    layer = TileLayer(name="short", width=4, height=4,
                      data=LayerData(tiles=[1] * 15))
    with pytest.raises(DecodedLengthMismatchError) as excinfo:
        LayerAssembler([]).assemble(layer, 4, 4)
    assert excinfo.value.kind is ErrorKind.DECODED_LENGTH_MISMATCH
    assert (excinfo.value.actual, excinfo.value.expected) == (15, 16)


def test_csv_layer_with_extra_cells(tilesets):
    with pytest.raises(DecodedLengthMismatchError):
        LayerAssembler(tilesets).assemble(csv_layer([1, 1, 1, 1, 1]), 2, 2)


def test_invalid_gid_in_layer(make_tileset):
    assembler = LayerAssembler([make_tileset(10)])
    with pytest.raises(InvalidGIDError) as excinfo:
        assembler.assemble(csv_layer([0, 3, 0, 0]), 2, 2)
    assert excinfo.value.gid == 3


def test_flags_survive_assembly(tilesets):
    layer = LayerAssembler(tilesets).assemble(
        csv_layer([2 | GID_HORIZONTAL_FLIP, 0, 0, 0]), 2, 2)
    tile = layer.tiles[0]
    assert tile.horizontal_flip
    assert tile.id == 1


def test_gid_array_matches_document(tilesets):
    gids = [1, 0, 5 | GID_HORIZONTAL_FLIP, 2, 0, 0]
    layer = LayerAssembler(tilesets).assemble(csv_layer(gids, 3, 2), 3, 2)
    array = layer.gid_array()
    assert array.shape == (2, 3)
    assert array.dtype == np.uint32
    assert array.tolist() == [[1, 0, 5 | GID_HORIZONTAL_FLIP], [2, 0, 0]]


def test_tile_at_out_of_bounds_is_nil(tilesets):
    layer = LayerAssembler(tilesets).assemble(csv_layer([1, 1, 1, 1]), 2, 2)
    assert layer.tile_at(2, 0) is NIL_TILE
    assert layer.tile_at(0, -1) is NIL_TILE


def test_iter_tiles_skips_nil(tilesets):
    layer = LayerAssembler(tilesets).assemble(csv_layer([0, 3, 0, 5]), 2, 2)
    assert [(index, tile.id) for index, tile in layer.iter_tiles()] == [(1, 2), (3, 0)]


def test_declared_size_mismatch_uses_map_size(tilesets, caplog):
    raw = csv_layer([1, 1, 1, 1], width=3, height=1, name="odd")
    with caplog.at_level(logging.WARNING, logger="tmx_decoder.layers"):
        layer = LayerAssembler(tilesets).assemble(raw, 2, 2)
    assert (layer.width, layer.height) == (2, 2)
    assert "odd" in caplog.text


def test_layer_attributes_carried(tilesets):
    raw = csv_layer([1, 0, 0, 0], name="Ground")
    raw.opacity = 0.5
    raw.visible = False
    layer = LayerAssembler(tilesets).assemble(raw, 2, 2)
    assert layer.name == "Ground"
    assert layer.opacity == 0.5
    assert not layer.visible
    assert layer.encoding == 'csv'
    assert str(layer) == "TileLayer{Name: 'Ground', Properties: [], TileCount: 4}"


def test_summarize_empty_sequence():
    assert summarize_tilesets([]) == (None, True, False)


def test_map_positions_count_rows_from_bottom():
    assert index_to_map_position(0, 4, 3) == (0, 2)
    assert index_to_map_position(5, 4, 3) == (1, 1)
    assert index_to_map_position(11, 4, 3) == (3, 0)


def test_tile_position_is_cell_centre():
    assert tile_position(0, 4, 3, 16, 16) == (8, 40)
    assert tile_position(11, 4, 3, 16, 8) == (56, 4)
