"""
Tile layer assembly: raw <data> -> DecodedTile grid

=============================================================================
PIPELINE PER LAYER
=============================================================================

    LayerData (encoding + payload)
        │  codec.decode()
        ▼
    uint32 GIDs, exactly width x height
        │  gid.resolve() per distinct GID
        ▼
    DecodedTile per cell (NIL_TILE for empty cells)
        │  one scan
        ▼
    empty / single tileset / multiple tilesets

=============================================================================
SINGLE-TILESET HINT
=============================================================================

When every non-empty cell of a layer comes from the same tileset, the
layer records that tileset. A renderer can then draw the whole layer in
one batch with one texture. A layer mixing tilesets records None and
sets uses_multiple_tilesets; the renderer has to switch sources itself.

=============================================================================
MAP POSITIONS
=============================================================================

Cells are stored row-major from the top-left (index = y * width + x).
Map positions count rows from the BOTTOM, for y-up consumers:

    column = index mod width
    row    = height - (index div width) - 1

The pixel centre of a cell is (column, row) * tile size + half a tile.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Sequence, Tuple

import numpy as np

from . import codec
from .document import Property, TileLayer, Tileset
from .errors import DecodedLengthMismatchError, InvalidGIDError
from .gid import NIL_TILE, DecodedTile, resolve

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class DecodedTileLayer:
    """
    A tile layer with every cell resolved.

    tiles[y * width + x] is the cell at column x, row y (top-left origin,
    as in the document). len(tiles) == width * height always.
    """
    name: str
    width: int
    height: int
    tiles: Tuple[DecodedTile, ...]
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    encoding: Optional[str] = None
    compression: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)
    empty: bool = False                              # Every cell is nil
    tileset: Optional[Tileset] = None                # Set when one tileset is used
    uses_multiple_tilesets: bool = False

    def tile_at(self, x: int, y: int) -> DecodedTile:
        """Cell at column x, row y (top-left origin). NIL_TILE out of bounds."""
        if 0 <= x < self.width and 0 <= y < self.height:
            return self.tiles[y * self.width + x]
        return NIL_TILE

    def iter_tiles(self) -> Iterator[Tuple[int, DecodedTile]]:
        """(index, tile) for every non-nil cell, in storage order."""
        for index, tile in enumerate(self.tiles):
            if not tile.nil:
                yield index, tile

    def gid_array(self) -> np.ndarray:
        """The layer's raw GIDs as a (height, width) uint32 array."""
        gids = np.fromiter((tile.gid for tile in self.tiles),
                           dtype=np.uint32, count=len(self.tiles))
        return gids.reshape((self.height, self.width))

    def __str__(self):
        return (f"TileLayer{{Name: '{self.name}', Properties: "
                f"{list(self.properties.values())}, TileCount: {len(self.tiles)}}}")


# =============================================================================
# POSITION HELPERS
# =============================================================================

def index_to_map_position(index: int, width: int, height: int) -> Tuple[int, int]:
    """(column, row-from-bottom) of a row-major, top-left cell index."""
    return index % width, height - (index // width) - 1


def tile_position(index: int, width: int, height: int,
                  tile_width: int, tile_height: int) -> Tuple[float, float]:
    """Pixel centre of a cell in bottom-left map space."""
    column, row = index_to_map_position(index, width, height)
    return (column * tile_width + tile_width / 2,
            row * tile_height + tile_height / 2)


def summarize_tilesets(tiles: Sequence[DecodedTile]) -> Tuple[Optional[Tileset], bool, bool]:
    """
    Scan a layer once.

    Returns:
    --------
    (tileset, empty, uses_multiple)
        tileset is the single tileset shared by all non-nil cells, or None
        when the layer is empty or mixes tilesets.
    """
    tileset = None
    for tile in tiles:
        if tile.nil:
            continue
        if tileset is None:
            tileset = tile.tileset
        elif tile.tileset is not tileset:
            return None, False, True

    if tileset is None:
        return None, True, False
    return tileset, False, False


# =============================================================================
# ASSEMBLER
# =============================================================================

class LayerAssembler:
    """
    Decodes tile layers against one map's resolved tilesets.

    Usage:
    ------
        assembler = LayerAssembler(registry.tilesets)
        layer = assembler.assemble(raw_layer, raw_map.width, raw_map.height)
    """

    def __init__(self, tilesets: Sequence[Tileset]):
        self.tilesets = tuple(tilesets)

    def assemble(self, layer: TileLayer, map_width: int, map_height: int) -> DecodedTileLayer:
        """
        Decode, validate and resolve one layer.

        Raises any codec error, DecodedLengthMismatchError if the GID
        count is not map_width * map_height, or InvalidGIDError.
        """
        if (layer.width, layer.height) != (map_width, map_height):
            logger.warning("Layer '%s' declares %dx%d, map is %dx%d; using map size",
                           layer.name, layer.width, layer.height, map_width, map_height)

        gids = codec.decode(layer.data, map_width, map_height)
        if len(gids) != map_width * map_height:
            raise DecodedLengthMismatchError(len(gids), map_width * map_height)

        tiles = self.resolve_all(gids)
        tileset, empty, multiple = summarize_tilesets(tiles)
        if multiple:
            logger.debug("Layer '%s' uses multiple tilesets", layer.name)

        logger.debug("Assembled layer '%s': %d cells, empty=%s, tileset=%s",
                     layer.name, len(tiles), empty, tileset.name if tileset else None)

        return DecodedTileLayer(
            name=layer.name,
            width=map_width,
            height=map_height,
            tiles=tiles,
            id=layer.id,
            visible=layer.visible,
            opacity=layer.opacity,
            offsetx=layer.offsetx,
            offsety=layer.offsety,
            encoding=layer.data.encoding,
            compression=layer.data.compression,
            properties=dict(layer.properties),
            empty=empty,
            tileset=tileset,
            uses_multiple_tilesets=multiple,
        )

    def resolve_all(self, gids: np.ndarray) -> Tuple[DecodedTile, ...]:
        """
        Resolve every GID, preserving index correspondence.

        Each distinct GID is resolved once and the resulting DecodedTile
        is shared by all cells holding it.
        """
        if len(gids) == 0:
            return ()

        unique, inverse = np.unique(gids, return_inverse=True)
        resolved = []
        for gid in unique:
            try:
                resolved.append(resolve(int(gid), self.tilesets))
            except InvalidGIDError:
                first_cell = int(np.argmax(gids == gid))
                logger.error("Invalid GID %d first seen at cell %d", int(gid), first_cell)
                raise

        return tuple(resolved[i] for i in inverse.ravel())
