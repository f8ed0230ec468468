"""Loader options"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LoaderConfig:
    """
    Options controlling how MapLoader builds a DecodedMap.

    The defaults give the behaviour most engines want: y-up object
    coordinates, tile-objects resolved like any other tile, groups
    flattened into the map's layer lists.

    ==========================================================================
    OPTIONS
    ==========================================================================

    tile_objects_use_first_tileset:
        Older loaders resolved every tile-object against the FIRST tileset
        of the map, whatever its GID. Set this to reproduce that for maps
        authored against such a loader. Off by default: tile-objects go
        through the same GID resolution as layer tiles.

    flip_y:
        Convert object Y from Tiled's top-left origin to bottom-left
        (y' = map_pixel_height - y - height). Turn off to keep Tiled's
        coordinates as drawn in the editor.

    generate_tile_objects:
        Build one "<tileset>-objectgroup" per tileset from the collision
        shapes drawn on individual tiles, and append them to the map's
        object groups (see map/collision.py).

    flatten_groups:
        Layers inside <group> folders are lifted into the map's flat layer
        lists, with the group's offset added and its opacity/visibility
        combined. When off, a <group> in the document is an error.

    strict_tileset_order:
        Tilesets must be declared with ascending firstgid for GID
        resolution to pick the right one. Out-of-order declarations are
        only logged unless this is set, in which case they fail the load.

    ==========================================================================
    """
    tile_objects_use_first_tileset: bool = False
    flip_y: bool = True
    generate_tile_objects: bool = False
    flatten_groups: bool = True
    strict_tileset_order: bool = False


DEFAULT_CONFIG = LoaderConfig()
