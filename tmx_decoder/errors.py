"""
Error taxonomy for the TMX decode pipeline

=============================================================================
FAIL-FAST LOADING
=============================================================================

Every failure raised while loading a map aborts the whole load. There is
no partially decoded map: either MapLoader.load() returns a complete
DecodedMap, or one of the exceptions below reaches the caller.

All exceptions derive from TMXError and carry a kind from the closed
ErrorKind enumeration, so callers can either catch a specific class:

    try:
        tmx_map = load_file("level1.tmx")
    except InvalidGIDError:
        ...

or branch on the kind:

    except TMXError as e:
        if e.kind is ErrorKind.TILESET_SOURCE:
            ...

=============================================================================
CONTEXT
=============================================================================

Errors are raised deep inside the pipeline (a codec knows nothing about
layer names). As they travel up, the assembler, hydrator and loader
attach the element and document they were working on, so the final
message reads like:

    tmx: invalid GID 1337 (layer 'Ground' in maps/level1.tmx)

=============================================================================
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Closed set of failure kinds a map load can end with."""
    UNRECOGNIZED_ENCODING = "unrecognized encoding"
    UNRECOGNIZED_COMPRESSION = "unrecognized compression"
    DECODED_LENGTH_MISMATCH = "decoded length mismatch"
    MALFORMED_TILE_DATA = "malformed tile data"
    INVALID_GID = "invalid GID"
    INVALID_SHAPE_ACCESS = "invalid shape access"
    MALFORMED_POINT_LIST = "malformed point list"
    UNSUPPORTED_STORAGE_MODE = "unsupported storage mode"
    TILESET_VALIDATION_FAILURE = "tileset validation failure"
    TILESET_SOURCE = "tileset source"
    MALFORMED_DOCUMENT = "malformed document"


class TMXError(Exception):
    """
    Base class for every error raised by the decoder.

    Attributes:
    -----------
    kind : ErrorKind
        Which failure this is (fixed per subclass)
    element : str or None
        Element the error concerns, e.g. "layer 'Ground'"
    source : str or None
        Document path, when loading from a file
    """
    kind: ErrorKind = ErrorKind.MALFORMED_DOCUMENT

    def __init__(self, message: str, element: Optional[str] = None,
                 source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.element = element
        self.source = source

    def at(self, element: str) -> 'TMXError':
        """
        Attach the element this error concerns.

        The innermost element wins: a tile-object failure reports the
        object, not the object group that contains it.
        """
        if self.element is None:
            self.element = element
        return self

    def within(self, source: str) -> 'TMXError':
        """Attach the document path (innermost wins, as with at())."""
        if self.source is None:
            self.source = source
        return self

    def __str__(self) -> str:
        where = []
        if self.element:
            where.append(self.element)
        if self.source:
            where.append(f"in {self.source}")
        if where:
            return f"tmx: {self.message} ({' '.join(where)})"
        return f"tmx: {self.message}"


class UnrecognizedEncodingError(TMXError):
    kind = ErrorKind.UNRECOGNIZED_ENCODING


class UnrecognizedCompressionError(TMXError):
    kind = ErrorKind.UNRECOGNIZED_COMPRESSION


class DecodedLengthMismatchError(TMXError):
    """Decoded GID (or byte) count differs from width x height (x4)."""
    kind = ErrorKind.DECODED_LENGTH_MISMATCH

    def __init__(self, actual: int, expected: int, unit: str = "GIDs", **kwargs):
        super().__init__(
            f"invalid decoded data length: got {actual} {unit}, "
            f"expected {expected}",
            **kwargs
        )
        self.actual = actual
        self.expected = expected


class MalformedTileDataError(TMXError):
    kind = ErrorKind.MALFORMED_TILE_DATA


class InvalidGIDError(TMXError):
    kind = ErrorKind.INVALID_GID

    def __init__(self, gid: int, **kwargs):
        super().__init__(f"invalid GID {gid}", **kwargs)
        self.gid = gid


class InvalidShapeAccessError(TMXError):
    kind = ErrorKind.INVALID_SHAPE_ACCESS


class MalformedPointListError(TMXError):
    kind = ErrorKind.MALFORMED_POINT_LIST


class UnsupportedStorageModeError(TMXError):
    kind = ErrorKind.UNSUPPORTED_STORAGE_MODE


class TilesetValidationError(TMXError):
    """A tileset failed a structural precondition; `field` names it."""
    kind = ErrorKind.TILESET_VALIDATION_FAILURE

    def __init__(self, message: str, field: str, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class TilesetSourceError(TMXError):
    """An external tileset could not be read. The OSError is the __cause__."""
    kind = ErrorKind.TILESET_SOURCE


class MalformedDocumentError(TMXError):
    kind = ErrorKind.MALFORMED_DOCUMENT
