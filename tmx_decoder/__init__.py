"""
TMX Decoder - Tiled maps decoded into plain Python data

Requirements:
    pip install numpy pillow
"""

from .config import DEFAULT_CONFIG, LoaderConfig
from .document import Image, Property, Tile, TiledMap, Tileset
from .errors import (
    DecodedLengthMismatchError,
    ErrorKind,
    InvalidGIDError,
    InvalidShapeAccessError,
    MalformedDocumentError,
    MalformedPointListError,
    MalformedTileDataError,
    TilesetSourceError,
    TilesetValidationError,
    TMXError,
    UnrecognizedCompressionError,
    UnrecognizedEncodingError,
    UnsupportedStorageModeError,
)
from .gid import NIL_TILE, DecodedTile, TileFlags, resolve
from .layers import DecodedTileLayer, LayerAssembler
from .loader import MapLoader, load, load_file
from .map.structure import DecodedMap
from .objects import DecodedObjectGroup, ObjectHydrator, ObjectKind, TiledObject
from .tilesets import TilesetRegistry

__version__ = "1.0.0"
__all__ = [
    "LoaderConfig",
    "DEFAULT_CONFIG",
    "MapLoader",
    "load",
    "load_file",
    "DecodedMap",
    "DecodedTileLayer",
    "DecodedObjectGroup",
    "TiledObject",
    "ObjectKind",
    "DecodedTile",
    "NIL_TILE",
    "TileFlags",
    "resolve",
    "LayerAssembler",
    "ObjectHydrator",
    "TilesetRegistry",
    "TiledMap",
    "Tileset",
    "Tile",
    "Image",
    "Property",
    "ErrorKind",
    "TMXError",
    "UnrecognizedEncodingError",
    "UnrecognizedCompressionError",
    "DecodedLengthMismatchError",
    "MalformedTileDataError",
    "InvalidGIDError",
    "InvalidShapeAccessError",
    "MalformedPointListError",
    "UnsupportedStorageModeError",
    "TilesetValidationError",
    "TilesetSourceError",
    "MalformedDocumentError",
]
