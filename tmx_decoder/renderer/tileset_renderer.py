"""
Tile images for DecodedTiles (uses PIL)

=============================================================================
WHERE THIS SITS
=============================================================================

    TMX file → [MapLoader] → DecodedMap → [TilesetRenderer] → draw calls
                                                 ↓
                                          tile image cache
                                 (tileset, local id, flags → Image)

The decoded map is plain data and never holds images. A renderer asks
this cache for the picture of a DecodedTile; the first request crops and
orients it, later requests are dictionary lookups.

=============================================================================
TWO KINDS OF TILESET
=============================================================================

1. IMAGE-BASED: one spritesheet, tiles cut on a grid

   +--+--+--+--+--+--+--+  <- margin around the sheet
   |  ||TILE 0||  ||TILE 1||   spacing between tiles
   +--+======+--+======+

   The crop box comes from tilesets.tile_box().

2. IMAGE COLLECTION: each <tile> has its own <image>. No cropping.

Image paths are relative to the file that declared the tileset: the TSX
for external tilesets, the TMX otherwise (Tileset.base_dir).

=============================================================================
FLIP FLAGS
=============================================================================

Applied in Tiled's order:

    diagonal   → transpose (swap x and y)
    horizontal → mirror left/right
    vertical   → mirror top/bottom

Diagonal + horizontal is a 90° clockwise rotation, diagonal + vertical
90° counter-clockwise.

=============================================================================
"""

import io
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image

from ..document import Tileset
from ..gid import DecodedTile, TileFlags
from ..tilesets import Reader, read_file, tile_box

logger = logging.getLogger(__name__)

CacheKey = Tuple[Tileset, int, TileFlags]


def apply_flags(image: Image.Image, flags: TileFlags) -> Image.Image:
    """Orient a tile image according to its GID flags."""
    if flags.diagonal:
        image = image.transpose(Image.Transpose.TRANSPOSE)
    if flags.horizontal:
        image = image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if flags.vertical:
        image = image.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    return image


class TilesetRenderer:
    """
    Renderer-owned cache of tile images.

    Usage:
    ------
        tiles = TilesetRenderer(base_dir=tmx_map.base_dir)
        for index, tile in layer.iter_tiles():
            image = tiles.get_tile_image(tile)
            x, y = tmx_map.tile_position(index)
            ...

    Keys hold the Tileset object itself; tilesets compare by identity, so
    two maps never share entries even if their tilesets look alike.
    """

    def __init__(self, base_dir: Optional[Path] = None, reader: Reader = read_file):
        """
        Parameters:
        -----------
        base_dir : Path, optional
            Fallback directory for tilesets without a base_dir of their own
        reader : callable
            path -> bytes for image files
        """
        self.base_dir = base_dir
        self.reader = reader

        # Source images: path → RGBA image (a spritesheet is read once)
        self.source_cache: Dict[Path, Image.Image] = {}

        # Oriented tiles: (tileset, local id, flags) → RGBA image
        self.tile_cache: Dict[CacheKey, Image.Image] = {}

    def get_tile_image(self, tile: DecodedTile) -> Optional[Image.Image]:
        """
        Image of a decoded tile, cropped and oriented. None for the nil tile.

        Raises OSError if the source image cannot be read.
        """
        if tile.nil:
            return None

        key = (tile.tileset, tile.id, tile.flags)
        image = self.tile_cache.get(key)
        if image is None:
            image = apply_flags(self._crop(tile.tileset, tile.id), tile.flags)
            self.tile_cache[key] = image
        return image

    def _crop(self, tileset: Tileset, local_id: int) -> Image.Image:
        # Image collection: one file per tile
        tile = tileset.tiles.get(local_id)
        if tile is not None and tile.image is not None:
            return self.load_image(tileset, tile.image.source)

        if tileset.image is None:
            raise ValueError(f"tileset '{tileset.name}' has no image for tile {local_id}")

        sheet = self.load_image(tileset, tileset.image.source)
        return sheet.crop(tile_box(tileset, local_id))

    def load_image(self, tileset: Tileset, source: str) -> Image.Image:
        """Read (once) an image referenced by a tileset, as RGBA."""
        base = tileset.base_dir if tileset.base_dir is not None else self.base_dir
        path = Path(source)
        if base is not None and not path.is_absolute():
            path = base / path

        image = self.source_cache.get(path)
        if image is None:
            logger.debug("Loading tileset image %s for '%s'", path, tileset.name)
            image = Image.open(io.BytesIO(self.reader(path))).convert('RGBA')
            self.source_cache[path] = image
        return image

    def clear(self):
        self.source_cache.clear()
        self.tile_cache.clear()
