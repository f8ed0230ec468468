"""
Global tile IDs (GIDs) and their resolution to tiles

=============================================================================
GID LAYOUT
=============================================================================

A GID is an unsigned 32-bit value:

    bit 31  horizontal flip
    bit 30  vertical flip
    bit 29  diagonal flip (swap x/y; with the others gives 90° rotations)
    bits 0-28  bare tile ID, global across all tilesets

    GID 0 = empty cell (no tile)

The three flags are independent; any combination is valid.

=============================================================================
RESOLUTION
=============================================================================

Tilesets are declared with ascending firstgid. A bare GID belongs to the
tileset with the LARGEST firstgid <= bare GID, so we scan backwards and
take the first match:

    firstgids: [1, 5, 20]

    bare 4  -> tileset 0, local 3
    bare 5  -> tileset 1, local 0
    bare 19 -> tileset 1, local 14
    bare 25 -> tileset 2, local 5

A bare GID below every firstgid (or no tilesets at all) means the
document is broken: InvalidGIDError.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence, Tuple

from .document import Tileset
from .errors import InvalidGIDError

logger = logging.getLogger(__name__)

GID_HORIZONTAL_FLIP = 0x80000000
GID_VERTICAL_FLIP = 0x40000000
GID_DIAGONAL_FLIP = 0x20000000
GID_FLIP_MASK = GID_HORIZONTAL_FLIP | GID_VERTICAL_FLIP | GID_DIAGONAL_FLIP


class TileFlags(NamedTuple):
    horizontal: bool
    vertical: bool
    diagonal: bool


NO_FLAGS = TileFlags(False, False, False)


def split_gid(gid: int) -> Tuple[int, TileFlags]:
    """Separate a raw GID into its bare ID and flip flags."""
    gid = int(gid)
    if gid < GID_DIAGONAL_FLIP:
        return gid, NO_FLAGS
    return gid & ~GID_FLIP_MASK, TileFlags(
        gid & GID_HORIZONTAL_FLIP != 0,
        gid & GID_VERTICAL_FLIP != 0,
        gid & GID_DIAGONAL_FLIP != 0,
    )


@dataclass(frozen=True)
class DecodedTile:
    """
    A fully resolved tile reference.

    id       : local tile ID within `tileset`
    tileset  : owning tileset (None only for the nil tile)
    *_flip   : orientation flags from the GID
    nil      : True for an empty cell

    Instances are immutable and may be shared between cells: every empty
    cell of every layer is the same NIL_TILE object.
    """
    id: int = 0
    tileset: Optional[Tileset] = None
    horizontal_flip: bool = False
    vertical_flip: bool = False
    diagonal_flip: bool = False
    nil: bool = False

    def is_nil(self) -> bool:
        return self.nil

    @property
    def flags(self) -> TileFlags:
        return TileFlags(self.horizontal_flip, self.vertical_flip, self.diagonal_flip)

    @property
    def gid(self) -> int:
        """The raw GID this tile decodes from (flags included)."""
        if self.nil:
            return 0
        gid = self.tileset.firstgid + self.id
        if self.horizontal_flip:
            gid |= GID_HORIZONTAL_FLIP
        if self.vertical_flip:
            gid |= GID_VERTICAL_FLIP
        if self.diagonal_flip:
            gid |= GID_DIAGONAL_FLIP
        return gid

    @property
    def properties(self) -> dict:
        """Custom properties of this tile in its tileset, if any."""
        if self.nil:
            return {}
        tile = self.tileset.tiles.get(self.id)
        return tile.properties if tile else {}

    def __str__(self):
        return f"DecodedTile{{ID: {self.id}, Is nil: {'true' if self.nil else 'false'}}}"


NIL_TILE = DecodedTile(nil=True)


def resolve(gid: int, tilesets: Sequence[Tileset]) -> DecodedTile:
    """
    Resolve a raw GID against the map's tilesets.

    Parameters:
    -----------
    gid : int
        Raw GID, flags included
    tilesets : sequence of Tileset
        The map's tilesets in declaration order

    Returns:
    --------
    DecodedTile : NIL_TILE for GID 0, otherwise the resolved tile

    Raises:
    -------
    InvalidGIDError : No tileset has firstgid <= bare GID
    """
    if gid == 0:
        return NIL_TILE

    bare, flags = split_gid(gid)

    # Largest firstgid first
    for tileset in reversed(tilesets):
        if tileset.firstgid <= bare:
            return DecodedTile(
                id=bare - tileset.firstgid,
                tileset=tileset,
                horizontal_flip=flags.horizontal,
                vertical_flip=flags.vertical,
                diagonal_flip=flags.diagonal,
            )

    logger.error("resolve: GID %d (bare %d) is below every tileset's firstgid", gid, bare)
    raise InvalidGIDError(int(gid))


def resolve_in(gid: int, tileset: Tileset) -> DecodedTile:
    """
    Resolve a raw GID against ONE given tileset, ignoring GID ranges.

    This is what older loaders did for tile-objects (always the map's
    first tileset); kept for LoaderConfig.tile_objects_use_first_tileset.
    """
    if gid == 0:
        return NIL_TILE
    bare, flags = split_gid(gid)
    if bare < tileset.firstgid:
        raise InvalidGIDError(int(gid))
    return DecodedTile(
        id=bare - tileset.firstgid,
        tileset=tileset,
        horizontal_flip=flags.horizontal,
        vertical_flip=flags.vertical,
        diagonal_flip=flags.diagonal,
    )
