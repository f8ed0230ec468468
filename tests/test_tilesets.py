import logging

import pytest

from tmx_decoder.document import Tileset
from tmx_decoder.errors import (
    ErrorKind,
    MalformedDocumentError,
    TilesetSourceError,
    TilesetValidationError,
)
from tmx_decoder.tilesets import TilesetRegistry, tile_box, tile_coord, tile_frame


def test_embedded_tilesets_pass_through(make_tileset):
    declared = [make_tileset(1, "a"), make_tileset(5, "b")]
    resolved = TilesetRegistry().resolve_all(declared)
    assert resolved[0] is declared[0]
    assert resolved[1] is declared[1]


def test_external_tileset_keeps_reference_firstgid(tmp_path, tmx, write_file):
    write_file("tiles/props.tsx", tmx.tsx(name="props").replace(
        '<tileset version', '<tileset firstgid="99" version'))
    reference = Tileset(firstgid=10, source="tiles/props.tsx")

    registry = TilesetRegistry(base_dir=tmp_path)
    (tileset,) = registry.resolve_all([reference])

    assert tileset.firstgid == 10
    assert tileset.name == "props"
    assert tileset.columns == 4
    assert tileset.source == "tiles/props.tsx"
    assert tileset.is_external
    assert tileset.base_dir == tmp_path / "tiles"
    assert tileset.image.source == "props.png"
    assert registry.get_tileset_by_name("props") is tileset
    assert registry.resolve_gid(12).id == 2


def test_external_tileset_through_custom_reader(tmx):
    requested = []

    def reader(path):
        requested.append(path)
        return tmx.tsx(name="mem").encode()

    (tileset,) = TilesetRegistry(reader=reader).resolve_all(
        [Tileset(firstgid=1, source="mem.tsx")])
    assert tileset.name == "mem"
    assert [str(path) for path in requested] == ["mem.tsx"]


def test_missing_external_tileset(tmp_path):
    registry = TilesetRegistry(base_dir=tmp_path)
    with pytest.raises(TilesetSourceError) as excinfo:
        registry.resolve_all([Tileset(firstgid=1, source="missing.tsx")])

    error = excinfo.value
    assert error.kind is ErrorKind.TILESET_SOURCE
    assert isinstance(error.__cause__, FileNotFoundError)
    assert error.source.endswith("missing.tsx")
    assert error.element == "tileset 'missing.tsx'"


def test_external_file_with_wrong_root(tmp_path, write_file):
    write_file("bad.tsx", '<map width="1" height="1"/>')
    with pytest.raises(MalformedDocumentError) as excinfo:
        TilesetRegistry(base_dir=tmp_path).resolve_all([Tileset(firstgid=1, source="bad.tsx")])
    assert excinfo.value.source == str(tmp_path / "bad.tsx")


@pytest.mark.parametrize('fields, field', [
    ({'columns': 0}, 'columns'),
    ({'columns': -3}, 'columns'),
    ({'firstgid': 0}, 'firstgid'),
    ({'tilecount': -1}, 'tilecount'),
])
def test_validation(make_tileset, fields, field):
    tileset = make_tileset(**fields)
    with pytest.raises(TilesetValidationError) as excinfo:
        TilesetRegistry().resolve_all([tileset])
    assert excinfo.value.field == field
    assert excinfo.value.kind is ErrorKind.TILESET_VALIDATION_FAILURE
    assert excinfo.value.element == "tileset 'ts'"


def test_out_of_order_firstgids_warn(make_tileset, caplog):
    with caplog.at_level(logging.WARNING, logger="tmx_decoder.tilesets"):
        TilesetRegistry().resolve_all([make_tileset(10, "late"), make_tileset(1, "early")])
    assert "not ascending" in caplog.text


def test_out_of_order_firstgids_fail_in_strict_mode(make_tileset):
    registry = TilesetRegistry(strict_order=True)
    with pytest.raises(TilesetValidationError) as excinfo:
        registry.resolve_all([make_tileset(10, "late"), make_tileset(1, "early")])
    assert excinfo.value.field == 'firstgid'


def test_tile_coord_counts_rows_from_bottom(make_tileset):
    tileset = make_tileset(tilecount=12, columns=4)
    assert tile_coord(tileset, 0) == (0, 2)
    assert tile_coord(tileset, 5) == (1, 1)
    assert tile_coord(tileset, 11) == (3, 0)


def test_tile_box_includes_margin_and_spacing(make_tileset):
    tileset = make_tileset(tilecount=12, columns=4, margin=2, spacing=1)
    assert tile_box(tileset, 0) == (2, 2, 18, 18)
    assert tile_box(tileset, 5) == (19, 19, 35, 35)


def test_tile_frame_is_bottom_up(make_tileset):
    tileset = make_tileset(tilecount=12, columns=4, margin=2, spacing=1)
    assert tile_frame(tileset, 0) == (2, 36, 18, 52)
    assert tile_frame(tileset, 11) == (53, 2, 69, 18)
