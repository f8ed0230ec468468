"""Shared fixtures: small TMX/TSX documents built as strings.

Builders return XML text; `write_file` puts one into tmp_path so loader
tests can exercise relative paths the way real maps use them.
"""
import os
import sys

import pytest

PACKAGE_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PACKAGE_ROOT not in sys.path:
    sys.path.insert(0, PACKAGE_ROOT)

from tmx_decoder.document import Tileset  # noqa: E402


def _attrs(attrs):
    return ''.join(f' {key}="{value}"' for key, value in attrs.items() if value is not None)


def build_map(body, width=4, height=4, tilewidth=16, tileheight=16, **attrs):
    attrs.setdefault('orientation', 'orthogonal')
    attrs.setdefault('infinite', '0')
    return (f'<?xml version="1.0" encoding="UTF-8"?>\n'
            f'<map version="1.10" width="{width}" height="{height}" '
            f'tilewidth="{tilewidth}" tileheight="{tileheight}"{_attrs(attrs)}>\n'
            f'{body}\n</map>\n')


def build_tileset(firstgid=1, name="terrain", tilecount=16, columns=4,
                  tilewidth=16, tileheight=16, body="", image="terrain.png", **attrs):
    image_xml = f'<image source="{image}" width="64" height="64"/>' if image else ''
    return (f'<tileset firstgid="{firstgid}" name="{name}" tilewidth="{tilewidth}" '
            f'tileheight="{tileheight}" tilecount="{tilecount}" columns="{columns}"'
            f'{_attrs(attrs)}>{image_xml}{body}</tileset>')


def build_tsx(name="props", tilecount=8, columns=4, tilewidth=16, tileheight=16,
              image="props.png", body=""):
    return (f'<?xml version="1.0" encoding="UTF-8"?>\n'
            f'<tileset version="1.10" name="{name}" tilewidth="{tilewidth}" '
            f'tileheight="{tileheight}" tilecount="{tilecount}" columns="{columns}">'
            f'<image source="{image}" width="64" height="32"/>{body}</tileset>\n')


def build_layer(name, payload, width=4, height=4, encoding="csv", compression=None, **attrs):
    data_attrs = _attrs({'encoding': encoding, 'compression': compression})
    return (f'<layer id="1" name="{name}" width="{width}" height="{height}"{_attrs(attrs)}>'
            f'<data{data_attrs}>{payload}</data></layer>')


def csv(gids):
    return ','.join(str(gid) for gid in gids)


@pytest.fixture
def tmx():
    """Namespace of the document builders."""
    class Builders:
        map = staticmethod(build_map)
        tileset = staticmethod(build_tileset)
        tsx = staticmethod(build_tsx)
        layer = staticmethod(build_layer)
        csv = staticmethod(csv)
    return Builders


@pytest.fixture
def write_file(tmp_path):
    def _write(relative, text):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding='utf-8')
        return path
    return _write


@pytest.fixture
def make_tileset():
    def _make(firstgid=1, name="ts", tilecount=4, columns=2, **fields):
        fields.setdefault('tilewidth', 16)
        fields.setdefault('tileheight', 16)
        return Tileset(firstgid=firstgid, name=name, tilecount=tilecount,
                       columns=columns, **fields)
    return _make
