import pytest

from tmx_decoder.config import LoaderConfig
from tmx_decoder.loader import load
from tmx_decoder.map.collision import tile_object_groups, tile_object_sources
from tmx_decoder.objects import ObjectKind, Rect, Vec

WALL_SHAPES = (
    '<tile id="1"><objectgroup draworder="index">'
    '<object id="1" x="0" y="8" width="16" height="8"/>'
    '</objectgroup></tile>'
    '<tile id="2"><properties><property name="kind" value="floor"/></properties></tile>'
)


@pytest.fixture
def walled_map(tmx):
    body = (tmx.tileset(name="walls", body=WALL_SHAPES)
            + tmx.tileset(firstgid=17, name="plain")
            + tmx.layer("Walls", tmx.csv([0, 2, 0, 17] + [0] * 8 + [2, 0, 0, 3]))
            + '<objectgroup name="Hand"><object id="9" x="0" y="0" width="4" height="4"/></objectgroup>')
    return tmx.map(body)


def test_groups_generated_at_load(walled_map):
    tmx_map = load(walled_map, config=LoaderConfig(generate_tile_objects=True))

    assert [group.name for group in tmx_map.object_groups] == ["Hand", "walls-objectgroup"]
    group = tmx_map.get_object_group("walls-objectgroup")
    first, second = group.objects

    # Cell (1, 0): document (16, 8) -> y-up 64 - 8 - 8
    assert first.kind is ObjectKind.RECTANGLE
    assert first.get_rect() == Rect(Vec(16, 48), Vec(32, 56))
    # Cell (0, 3): document (0, 56) -> y-up 0
    assert second.get_rect() == Rect(Vec(0, 0), Vec(16, 8))


def test_not_generated_by_default(walled_map):
    tmx_map = load(walled_map)
    assert tmx_map.get_object_group("walls-objectgroup") is None


def test_groups_for_loaded_map(walled_map):
    tmx_map = load(walled_map)
    (group,) = tile_object_groups(tmx_map)
    assert group.name == "walls-objectgroup"
    assert len(group.objects) == 2
    assert tmx_map.get_object_group("walls-objectgroup") is None


def test_groups_without_flip(walled_map):
    tmx_map = load(walled_map)
    (group,) = tile_object_groups(tmx_map, flip=False)
    assert group.objects[0].get_rect() == Rect(Vec(16, 8), Vec(32, 16))


def test_tall_tiles_anchor_to_cell_bottom(tmx):
    shapes = ('<tile id="0"><objectgroup>'
              '<object id="1" x="0" y="0" width="16" height="32"/>'
              '</objectgroup></tile>')
    body = (tmx.tileset(name="trees", tileheight=32, body=shapes)
            + tmx.layer("Trees", tmx.csv([0] * 4 + [1] + [0] * 11)))
    tmx_map = load(tmx.map(body), config=LoaderConfig(generate_tile_objects=True))
    (tree,) = tmx_map.get_object_group("trees-objectgroup").objects
    # Cell (0, 1) bottom is at document y 32; the shape spans y 0..32
    assert tree.get_rect() == Rect(Vec(0, 32), Vec(16, 64))


def test_only_tiles_with_shapes_are_sources(walled_map):
    tmx_map = load(walled_map)
    walls, plain = tmx_map.tilesets
    assert list(tile_object_sources(walls)) == [1]
    assert tile_object_sources(plain) == {}


def test_shapes_follow_layer_offset(tmx):
    body = (tmx.tileset(name="walls", body=WALL_SHAPES)
            + tmx.layer("Walls", tmx.csv([0, 2] + [0] * 14), offsetx="4", offsety="2"))
    tmx_map = load(tmx.map(body), config=LoaderConfig(generate_tile_objects=True))
    (wall,) = tmx_map.get_object_group("walls-objectgroup").objects
    # Cell (1, 0) shifted to document (20, 10) -> y-up 64 - 10 - 8
    assert wall.get_rect() == Rect(Vec(20, 46), Vec(36, 54))


def test_shapes_follow_enclosing_group_offset(tmx):
    body = (tmx.tileset(name="walls", body=WALL_SHAPES)
            + '<group name="Shifted" offsetx="4" offsety="2">'
            + tmx.layer("Walls", tmx.csv([0, 2] + [0] * 14), offsetx="1")
            + '</group>')
    tmx_map = load(tmx.map(body), config=LoaderConfig(generate_tile_objects=True))
    (wall,) = tmx_map.get_object_group("walls-objectgroup").objects
    assert wall.get_rect() == Rect(Vec(21, 46), Vec(37, 54))
