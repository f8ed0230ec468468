"""
The fully decoded map

=============================================================================
OWNERSHIP
=============================================================================

DecodedMap owns everything below it:

    DecodedMap
    ├── tilesets        (Tileset, declaration order)
    ├── tile_layers     (DecodedTileLayer -> DecodedTile -> Tileset)
    ├── object_groups   (DecodedObjectGroup -> TiledObject)
    └── image_layers    (ImageLayer)

Nothing points back up to the map. Whatever a node needed from its map
(pixel height for the y-flip, the tileset list for tile-objects) was
handed to it while the loader built it, so the tree has no cycles and a
node is fully usable on its own.

The map is built once by MapLoader and not modified afterwards.
Renderer caches live outside it (see renderer/tileset_renderer.py).

=============================================================================
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..document import ImageLayer, Property, Tileset
from ..layers import DecodedTileLayer, tile_position
from ..objects import DecodedObjectGroup, Rect, TiledObject, Vec


@dataclass(eq=False)
class DecodedMap:
    """
    A map with every layer decoded and every object hydrated.

    Usage:
    ------
        tmx_map = load_file("level1.tmx")

        ground = tmx_map.get_tile_layer("Ground")
        tile = ground.tile_at(5, 10)
        if not tile.nil:
            print(tile.tileset.name, tile.id)

        for door in tmx_map.get_objects_by_name("door"):
            print(door.get_rect())
    """
    width: int                                       # Map width in tiles
    height: int                                      # Map height in tiles
    tilewidth: int                                   # Tile width in pixels
    tileheight: int                                  # Tile height in pixels
    version: str = "1.0"
    orientation: str = "orthogonal"
    renderorder: str = "right-down"
    properties: Dict[str, Property] = field(default_factory=dict)
    tilesets: Tuple[Tileset, ...] = ()
    tile_layers: Tuple[DecodedTileLayer, ...] = ()
    object_groups: Tuple[DecodedObjectGroup, ...] = ()
    image_layers: Tuple[ImageLayer, ...] = ()
    base_dir: Optional[Path] = None                  # Directory of the TMX file

    # =========================================================================
    # GEOMETRY
    # =========================================================================

    @property
    def pixel_width(self) -> int:
        return self.width * self.tilewidth

    @property
    def pixel_height(self) -> int:
        return self.height * self.tileheight

    def bounds(self) -> Rect:
        """(0, 0) to (pixel_width, pixel_height)."""
        return Rect(Vec(0, 0), Vec(self.pixel_width, self.pixel_height))

    def centre(self) -> Vec:
        return self.bounds().center()

    def tile_position(self, index: int, tileset: Optional[Tileset] = None) -> Vec:
        """
        Pixel centre of the cell at a row-major index, bottom-left origin.

        Cells are sized by the map's tile size, or by `tileset`'s when given
        (tiles larger than the grid are centred on their own size).
        """
        tile_width, tile_height = self.tilewidth, self.tileheight
        if tileset is not None:
            tile_width, tile_height = tileset.tilewidth, tileset.tileheight
        return Vec(*tile_position(index, self.width, self.height, tile_width, tile_height))

    # =========================================================================
    # LOOKUPS BY NAME
    # =========================================================================

    def get_tile_layer(self, name: str) -> Optional[DecodedTileLayer]:
        for layer in self.tile_layers:
            if layer.name == name:
                return layer
        return None

    def get_object_group(self, name: str) -> Optional[DecodedObjectGroup]:
        for group in self.object_groups:
            if group.name == name:
                return group
        return None

    def get_image_layer(self, name: str) -> Optional[ImageLayer]:
        for layer in self.image_layers:
            if layer.name == name:
                return layer
        return None

    def get_tileset(self, name: str) -> Optional[Tileset]:
        for tileset in self.tilesets:
            if tileset.name == name:
                return tileset
        return None

    def get_objects_by_name(self, name: str) -> List[TiledObject]:
        """Objects with this name across all groups, in document order."""
        objects = []
        for group in self.object_groups:
            objects.extend(group.get_objects_by_name(name))
        return objects

    def get_object_by_id(self, object_id: int) -> Optional[TiledObject]:
        for group in self.object_groups:
            for obj in group.objects:
                if obj.id == object_id:
                    return obj
        return None

    def __str__(self):
        return (f"Map{{Version: {self.version}, Tile dimensions: "
                f"{self.width}x{self.height}, Tilesets: {len(self.tilesets)}, "
                f"TileLayers: {len(self.tile_layers)}, Object layers: "
                f"{len(self.object_groups)}, Image layers: {len(self.image_layers)}}}")
