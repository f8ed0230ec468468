import base64
import zlib

import numpy as np
import pytest

from tmx_decoder import codec
from tmx_decoder.document import LayerData
from tmx_decoder.errors import (
    DecodedLengthMismatchError,
    ErrorKind,
    MalformedTileDataError,
    UnrecognizedCompressionError,
    UnrecognizedEncodingError,
)

GRID = [1, 2, 0, 3,
        0, 0, 7, 0x80000001,
        5, 0, 0, 0,
        0x20000004, 0, 9, 1]


def test_csv_roundtrip_with_row_breaks():
    text = codec.encode_gids(GRID, 'csv', width=4)
    gids = codec.decode(LayerData(encoding='csv', text=text), 4, 4)
    assert gids.tolist() == GRID


def test_plain_roundtrip_through_data_element():
    elem = codec.encode_data_element(GRID, 4, encoding=None)
    assert elem.get('encoding') is None
    data = LayerData.from_xml(elem)
    assert data.tiles == GRID
    assert codec.decode(data, 4, 4).tolist() == GRID


@pytest.mark.parametrize('compression', [None, 'zlib', 'gzip'])
def test_base64_roundtrip(compression):
    elem = codec.encode_data_element(GRID, 4, encoding='base64', compression=compression)
    data = LayerData.from_xml(elem)
    assert data.compression == compression
    gids = codec.decode(data, 4, 4)
    assert gids.dtype == np.uint32
    assert gids.tolist() == GRID


def test_csv_ignores_layout_whitespace():
    text = "\n  1,2,\n  3,4\n"
    assert codec.decode_csv(text).tolist() == [1, 2, 3, 4]


def test_csv_empty_token_is_malformed():
    with pytest.raises(MalformedTileDataError) as excinfo:
        codec.decode_csv("1,,2")
    assert excinfo.value.kind is ErrorKind.MALFORMED_TILE_DATA


def test_csv_value_over_32_bits_is_malformed():
    with pytest.raises(MalformedTileDataError):
        codec.decode_csv("1,4294967296")


def test_base64_is_little_endian():
    payload = base64.b64encode(b'\x01\x00\x00\x00\x00\x01\x00\x00' * 2).decode()
    gids = codec.decode(LayerData(encoding='base64', text=payload), 2, 2)
    assert gids.tolist() == [1, 256, 1, 256]


def test_base64_payload_may_span_lines():
    payload = base64.b64encode(b'\x02\x00\x00\x00' * 4).decode()
    wrapped = "\n   " + payload[:8] + "\n   " + payload[8:] + "\n"
    gids = codec.decode(LayerData(encoding='base64', text=wrapped), 2, 2)
    assert gids.tolist() == [2, 2, 2, 2]


def test_unknown_encoding():
    with pytest.raises(UnrecognizedEncodingError) as excinfo:
        codec.decode(LayerData(encoding='xml', text=''), 2, 2)
    assert 'xml' in str(excinfo.value)


@pytest.mark.parametrize('compression', ['lzma', 'zstd'])
def test_unknown_compression(compression):
    data = LayerData(encoding='base64', compression=compression, text='AAAAAA==')
    with pytest.raises(UnrecognizedCompressionError) as excinfo:
        codec.decode(data, 1, 1)
    assert excinfo.value.kind is ErrorKind.UNRECOGNIZED_COMPRESSION


def test_decoded_byte_length_mismatch():
    payload = base64.b64encode(b'\x00' * 60).decode()
    with pytest.raises(DecodedLengthMismatchError) as excinfo:
        codec.decode(LayerData(encoding='base64', text=payload), 4, 4)
    assert excinfo.value.actual == 60
    assert excinfo.value.expected == 64


def test_invalid_base64_is_malformed():
    with pytest.raises(MalformedTileDataError):
        codec.decode_base64("!!!not base64!!!")


def test_corrupt_zlib_stream_is_malformed():
    payload = base64.b64encode(b'definitely not zlib').decode()
    with pytest.raises(MalformedTileDataError) as excinfo:
        codec.decode_base64(payload, 'zlib')
    assert isinstance(excinfo.value.__cause__, zlib.error)


def test_corrupt_gzip_stream_is_malformed():
    payload = base64.b64encode(b'definitely not gzip').decode()
    with pytest.raises(MalformedTileDataError):
        codec.decode_base64(payload, 'gzip')


def test_plain_gid_out_of_range():
    with pytest.raises(MalformedTileDataError):
        codec.decode_plain([1, -1])


def test_encode_rejects_unknown_schemes():
    with pytest.raises(UnrecognizedEncodingError):
        codec.encode_gids([1], 'xml')
    with pytest.raises(UnrecognizedCompressionError):
        codec.encode_gids([1], 'base64', 'lzma')


def test_plain_element_omits_gid_for_empty_cells():
    elem = codec.encode_data_element([0, 3], 2, encoding=None)
    tiles = elem.findall('tile')
    assert tiles[0].get('gid') is None
    assert tiles[1].get('gid') == '3'
