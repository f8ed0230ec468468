"""
Tileset resolution and validation

=============================================================================
EMBEDDED vs EXTERNAL TILESETS
=============================================================================

A map declares its tilesets in order, each either inline:

    <tileset firstgid="1" name="terrain" tilewidth="32" ... columns="8">

or as a reference to a TSX file:

    <tileset firstgid="65" source="tilesets/props.tsx"/>

The TSX holds geometry only. The GID range always comes from the
REFERENCE SITE: firstgid="65" above wins over anything in the TSX.

The TSX path is relative to the TMX file, and image paths inside the TSX
are relative to the TSX file, so a resolved external tileset remembers
its own directory (Tileset.base_dir).

=============================================================================
TILE COORDINATES IN THE SOURCE IMAGE
=============================================================================

For local tile t in a tileset with C columns and R = tilecount / C rows:

    column = t mod C
    row    = R - (t div C) - 1      (counted from the BOTTOM)

    +---+---+---+---+
    | 0 | 1 | 2 | 3 |   row 2
    +---+---+---+---+
    | 4 | 5 | 6 | 7 |   row 1
    +---+---+---+---+
    | 8 | 9 |10 |11 |   row 0
    +---+---+---+---+

Rows count upwards because consumers work y-up while the image is stored
top-down. tile_box() gives the plain top-down crop box for image
libraries that are themselves top-down (Pillow).

=============================================================================
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .document import Tileset, parse_tileset_document
from .errors import TMXError, TilesetSourceError, TilesetValidationError
from .gid import DecodedTile, resolve

logger = logging.getLogger(__name__)

# path -> bytes. The default opens the file and closes it before returning.
Reader = Callable[[Path], bytes]


def read_file(path: Path) -> bytes:
    with open(path, 'rb') as fh:
        return fh.read()


class TilesetRegistry:
    """
    The map's tilesets, resolved and validated, in declaration order.

    Usage:
    ------
        registry = TilesetRegistry(base_dir=Path("maps"))
        registry.resolve_all(raw_map.tilesets)
        tile = registry.resolve_gid(42)
    """

    def __init__(self, base_dir: Optional[Path] = None, reader: Reader = read_file,
                 strict_order: bool = False):
        """
        Parameters:
        -----------
        base_dir : Path, optional
            Directory of the TMX file; TSX references are relative to it
        reader : callable
            Loads the bytes of an external tileset file
        strict_order : bool
            Fail (instead of warn) on non-ascending firstgid declarations
        """
        self.base_dir = base_dir
        self.reader = reader
        self.strict_order = strict_order
        self.tilesets: List[Tileset] = []

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve_all(self, declared: Sequence[Tileset]) -> List[Tileset]:
        """
        Resolve and validate every declared tileset, keeping their order.

        Raises:
        -------
        TilesetSourceError     : A TSX file could not be read
        MalformedDocumentError : A TSX file is not a valid tileset document
        TilesetValidationError : A tileset fails validation
        """
        tilesets = []
        for tileset in declared:
            label = f"tileset '{tileset.source or tileset.name}'"
            try:
                resolved = self.resolve_one(tileset)
                self.validate(resolved)
            except TMXError as e:
                logger.error("Tileset resolution failed for %s: %s", label, e.message)
                raise e.at(label)
            tilesets.append(resolved)

        self._check_order(tilesets)
        self.tilesets = tilesets
        return tilesets

    def resolve_one(self, tileset: Tileset) -> Tileset:
        """Return the tileset itself if embedded, or its loaded TSX definition."""
        if not tileset.is_external:
            return tileset
        return self.load_external(tileset)

    def load_external(self, reference: Tileset) -> Tileset:
        """
        Load the TSX definition for an external reference.

        The firstgid of the reference replaces whatever the TSX says, and
        the loaded tileset keeps `source` so callers can tell where it
        came from.
        """
        path = Path(reference.source)
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path

        logger.debug("Loading external tileset %s (firstgid=%d)", path, reference.firstgid)
        try:
            document = self.reader(path)
        except OSError as e:
            raise TilesetSourceError(
                f"could not read external tileset: {e}", source=str(path)
            ) from e

        try:
            loaded = parse_tileset_document(document, reference.firstgid, path.parent)
        except TMXError as e:
            raise e.within(str(path))

        return replace(loaded, firstgid=reference.firstgid, source=reference.source)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def validate(tileset: Tileset) -> Tileset:
        """
        Check the structural preconditions GID resolution relies on.

        Raises TilesetValidationError naming the offending field.
        """
        if tileset.columns < 1:
            raise TilesetValidationError(
                f"tileset columns value not valid: {tileset.columns} (must be >= 1)",
                field='columns'
            )
        if tileset.firstgid < 1:
            raise TilesetValidationError(
                f"tileset firstgid value not valid: {tileset.firstgid} (must be >= 1)",
                field='firstgid'
            )
        if tileset.tilecount < 0:
            raise TilesetValidationError(
                f"tileset tilecount value not valid: {tileset.tilecount}",
                field='tilecount'
            )
        return tileset

    def _check_order(self, tilesets: Sequence[Tileset]):
        for previous, current in zip(tilesets, tilesets[1:]):
            if current.firstgid > previous.firstgid:
                continue
            message = (f"tileset firstgid values not ascending: "
                       f"'{previous.name}' ({previous.firstgid}) before "
                       f"'{current.name}' ({current.firstgid})")
            if self.strict_order:
                raise TilesetValidationError(message, field='firstgid')
            logger.warning("%s; GIDs may resolve to the wrong tileset", message)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def resolve_gid(self, gid: int) -> DecodedTile:
        return resolve(gid, self.tilesets)

    def get_tileset_by_name(self, name: str) -> Optional[Tileset]:
        for tileset in self.tilesets:
            if tileset.name == name:
                return tileset
        return None


# =============================================================================
# TILE GEOMETRY
# =============================================================================

def tile_coord(tileset: Tileset, local_id: int) -> Tuple[int, int]:
    """
    (column, row) of a local tile in the source image, row counted from
    the bottom.
    """
    column = local_id % tileset.columns
    row = tileset.num_rows - (local_id // tileset.columns) - 1
    return column, row


def tile_box(tileset: Tileset, local_id: int) -> Tuple[int, int, int, int]:
    """
    Pixel box (left, top, right, bottom) of a local tile in the source
    image, top-down, margin and spacing included.

        left = margin + column * (tilewidth + spacing)
    """
    column = local_id % tileset.columns
    row = local_id // tileset.columns
    left = tileset.margin + column * (tileset.tilewidth + tileset.spacing)
    top = tileset.margin + row * (tileset.tileheight + tileset.spacing)
    return left, top, left + tileset.tilewidth, top + tileset.tileheight


def tile_frame(tileset: Tileset, local_id: int) -> Tuple[int, int, int, int]:
    """
    Pixel rectangle (min_x, min_y, max_x, max_y) of a local tile in the
    source image with a bottom-left origin, for y-up texture coordinates.
    """
    column, row = tile_coord(tileset, local_id)
    min_x = tileset.margin + column * (tileset.tilewidth + tileset.spacing)
    min_y = tileset.margin + row * (tileset.tileheight + tileset.spacing)
    return min_x, min_y, min_x + tileset.tilewidth, min_y + tileset.tileheight
