"""
Tile layer data codec

=============================================================================
DATA ENCODINGS
=============================================================================

A tile layer's <data> block stores width x height GIDs in one of three
encodings:

1. Plain XML (no encoding attribute):
       <data>
           <tile gid="1"/><tile gid="2"/><tile/>...
       </data>

2. CSV:
       <data encoding="csv">
           1,2,3,4,5,
           6,7,8,9,10
       </data>

3. Base64 of little-endian uint32 values, optionally compressed:
       <data encoding="base64" compression="zlib">
           eJxjZGBgYARiJiBmBmIWIGYFYgAAOAAH
       </data>

   compression: none, "zlib" or "gzip"

All three decode to the same thing: a flat uint32 array of exactly
width x height GIDs, row-major, origin top-left:

    index = y * width + x

=============================================================================
INTERNAL STORAGE
=============================================================================

Decoded GIDs are numpy uint32 arrays. For base64 the decompressed bytes
ARE the array (np.frombuffer with an explicit little-endian dtype, so the
result is right on any host byte order).

=============================================================================
"""

import base64
import binascii
import gzip
import logging
import re
import xml.etree.ElementTree as ET
import zlib
from typing import Iterable, List, Optional, Union

import numpy as np

from .document import LayerData
from .errors import (
    DecodedLengthMismatchError,
    MalformedTileDataError,
    UnrecognizedCompressionError,
    UnrecognizedEncodingError,
)

logger = logging.getLogger(__name__)

ENCODING_PLAIN = None
ENCODING_CSV = 'csv'
ENCODING_BASE64 = 'base64'
ENCODINGS = (ENCODING_PLAIN, ENCODING_CSV, ENCODING_BASE64)

COMPRESSION_ZLIB = 'zlib'
COMPRESSION_GZIP = 'gzip'
COMPRESSIONS = (None, COMPRESSION_ZLIB, COMPRESSION_GZIP)

MAX_GID = 0xFFFFFFFF

# Little-endian uint32, whatever the host order
_GID_DTYPE = np.dtype('<u4')

_CSV_NOISE = re.compile(r'[^0-9,]')


# =============================================================================
# DECODING
# =============================================================================

def decode_plain(tiles: Iterable[int]) -> np.ndarray:
    """Plain encoding: the <tile gid> values are already the GIDs."""
    gids = list(tiles)
    for gid in gids:
        if not 0 <= gid <= MAX_GID:
            raise MalformedTileDataError(f"tile gid {gid} is not an unsigned 32-bit value")
    return np.array(gids, dtype=np.uint32)


def decode_csv(text: str) -> np.ndarray:
    """
    CSV encoding: comma-separated decimal GIDs.

    Everything that is not a digit or a comma is dropped first, so line
    breaks and indentation inside the <data> block do not matter.

    Raises:
    -------
    MalformedTileDataError : If a token is empty or exceeds 32 bits
    """
    cleaned = _CSV_NOISE.sub('', text)

    gids = []
    for token in cleaned.split(','):
        if not token:
            raise MalformedTileDataError(
                f"empty or non-numeric token in CSV tile data: {text.strip()[:40]!r}"
            )
        gid = int(token)
        if gid > MAX_GID:
            raise MalformedTileDataError(f"CSV token {token} is not an unsigned 32-bit value")
        gids.append(gid)

    return np.array(gids, dtype=np.uint32)


def decompress(raw: bytes, compression: Optional[str]) -> bytes:
    """
    Undo the compression of a base64 payload.

    Raises:
    -------
    UnrecognizedCompressionError : compression is not None/zlib/gzip
    MalformedTileDataError       : the stream is corrupt
    """
    if compression is None:
        return raw

    if compression == COMPRESSION_ZLIB:
        logger.debug("decompress: zlib, %d bytes", len(raw))
        try:
            return zlib.decompress(raw)
        except zlib.error as e:
            raise MalformedTileDataError(f"corrupt zlib stream: {e}") from e

    if compression == COMPRESSION_GZIP:
        logger.debug("decompress: gzip, %d bytes", len(raw))
        try:
            return gzip.decompress(raw)
        except (OSError, EOFError, zlib.error) as e:
            raise MalformedTileDataError(f"corrupt gzip stream: {e}") from e

    raise UnrecognizedCompressionError(f"invalid compression method {compression!r}")


def decode_base64(text: str, compression: Optional[str] = None) -> bytes:
    """
    Base64 encoding: decode the text, then decompress.

    Whitespace around (and line breaks inside) the block are ignored.
    Returns the raw little-endian bytes; see bytes_to_gids().
    """
    # Fail on the compression tag before touching the payload
    if compression not in COMPRESSIONS:
        raise UnrecognizedCompressionError(f"invalid compression method {compression!r}")

    payload = ''.join(text.split())
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedTileDataError(f"invalid base64 tile data: {e}") from e

    return decompress(raw, compression)


def bytes_to_gids(raw: bytes, width: int, height: int) -> np.ndarray:
    """
    Interpret decompressed bytes as width x height little-endian uint32.

    GID (x, y) is read from byte offset 4 * (y * width + x).

    Raises:
    -------
    DecodedLengthMismatchError : len(raw) != width * height * 4
    """
    expected = width * height * 4
    if len(raw) != expected:
        raise DecodedLengthMismatchError(len(raw), expected, unit="bytes")
    return np.frombuffer(raw, dtype=_GID_DTYPE).astype(np.uint32)


def decode(data: LayerData, width: int, height: int) -> np.ndarray:
    """
    Decode one layer's <data> block to width x height GIDs.

    Parameters:
    -----------
    data : LayerData
        Declared encoding/compression and raw payload
    width, height : int
        Layer dimensions in tiles

    Returns:
    --------
    np.ndarray : uint32 GIDs, row-major, origin top-left. The GID count
                 of plain and csv data is checked by the caller.

    Raises:
    -------
    UnrecognizedEncodingError    : encoding not plain/csv/base64
    UnrecognizedCompressionError : compression not none/zlib/gzip
    MalformedTileDataError       : payload cannot be parsed
    DecodedLengthMismatchError   : base64 byte count is not width*height*4
    """
    logger.debug("decode: encoding=%s compression=%s", data.encoding, data.compression)

    if data.encoding == ENCODING_CSV:
        gids = decode_csv(data.text)
    elif data.encoding == ENCODING_BASE64:
        gids = bytes_to_gids(decode_base64(data.text, data.compression), width, height)
    elif data.encoding == ENCODING_PLAIN:
        gids = decode_plain(data.tiles)
    else:
        raise UnrecognizedEncodingError(f"invalid encoding scheme {data.encoding!r}")

    return gids


# =============================================================================
# ENCODING
# =============================================================================

def encode_gids(gids: Iterable[int], encoding: Optional[str] = ENCODING_CSV,
                compression: Optional[str] = None,
                width: Optional[int] = None) -> Union[str, List[int]]:
    """
    Encode GIDs the way Tiled writes them (inverse of decode()).

    Returns the <data> payload text for csv/base64, or the list of GIDs
    for the plain encoding (one <tile gid=".."/> each).

    width : int, optional
        CSV only: break lines after each row, as Tiled does
    """
    gid_array = np.asarray(list(gids), dtype=np.uint32)

    if encoding == ENCODING_PLAIN:
        return [int(gid) for gid in gid_array]

    if encoding == ENCODING_CSV:
        values = [str(int(gid)) for gid in gid_array]
        if not width:
            return ','.join(values)
        rows = [','.join(values[i:i + width]) for i in range(0, len(values), width)]
        return '\n' + ',\n'.join(rows) + '\n'

    if encoding == ENCODING_BASE64:
        raw = gid_array.astype(_GID_DTYPE).tobytes()
        if compression == COMPRESSION_ZLIB:
            raw = zlib.compress(raw)
        elif compression == COMPRESSION_GZIP:
            raw = gzip.compress(raw)
        elif compression is not None:
            raise UnrecognizedCompressionError(f"invalid compression method {compression!r}")
        return base64.b64encode(raw).decode('ascii')

    raise UnrecognizedEncodingError(f"invalid encoding scheme {encoding!r}")


def encode_data_element(gids: Iterable[int], width: int,
                        encoding: Optional[str] = ENCODING_CSV,
                        compression: Optional[str] = None) -> ET.Element:
    """Build a complete <data> element for the given GIDs."""
    elem = ET.Element('data')
    if encoding:
        elem.set('encoding', encoding)
    if compression:
        elem.set('compression', compression)

    payload = encode_gids(gids, encoding, compression, width)
    if encoding == ENCODING_PLAIN:
        for gid in payload:
            tile_elem = ET.SubElement(elem, 'tile')
            # Tiled omits gid for empty cells
            if gid:
                tile_elem.set('gid', str(gid))
    else:
        elem.text = payload

    return elem
