"""
Collision object groups generated from per-tile shapes

=============================================================================
TILE COLLISION SHAPES
=============================================================================

Tiled's tile collision editor attaches an object group to a TILE of a
tileset, with coordinates relative to that tile's top-left corner:

    <tileset firstgid="1" name="walls" ...>
        <tile id="3">
            <objectgroup>
                <object id="1" x="0" y="16" width="32" height="16"/>
            </objectgroup>
        </tile>
    </tileset>

Wherever tile 3 is placed in a tile layer, that rectangle should exist
in the world. This module builds, per tileset, one object group named
"<tileset name>-objectgroup" holding a copy of every tile shape at every
cell where the tile is used.

=============================================================================
PLACEMENT
=============================================================================

Copies are positioned in Tiled's document space first and then go
through the normal ObjectHydrator, so they are classified and flipped
exactly like hand-placed objects:

    cell origin x = column * map tilewidth
    cell origin y = (row + 1) * map tileheight - tileset tileheight

plus the tile layer's offset (group offsets included), so the shapes
sit where the tile is drawn.

(tiles taller than the grid are anchored to the bottom of their cell, as
Tiled draws them)

=============================================================================
"""

import logging
from dataclasses import replace
from typing import List, Sequence

from ..document import ObjectGroup, Tileset
from ..layers import DecodedTileLayer
from ..objects import DecodedObjectGroup, ObjectHydrator

logger = logging.getLogger(__name__)


def tile_object_sources(tileset: Tileset) -> dict:
    """local tile id -> tile-local ObjectGroup, for tiles that have one."""
    return {tile_id: tile.objectgroup
            for tile_id, tile in tileset.tiles.items()
            if tile.objectgroup is not None and tile.objectgroup.objects}


def build_tile_object_groups(tile_layers: Sequence[DecodedTileLayer],
                             tilesets: Sequence[Tileset],
                             hydrator: ObjectHydrator,
                             tilewidth: int, tileheight: int) -> List[DecodedObjectGroup]:
    """
    One hydrated object group per tileset that has tile collision shapes.

    Parameters:
    -----------
    tile_layers : decoded tile layers to scan, in order
    tilesets : the map's tilesets
    hydrator : the map's ObjectHydrator (same flip, same pixel height)
    tilewidth, tileheight : the map's grid size in pixels
    """
    groups = []
    for tileset in tilesets:
        sources = tile_object_sources(tileset)
        if not sources:
            continue

        raw_group = ObjectGroup(name=f"{tileset.name}-objectgroup")
        for layer in tile_layers:
            for index, tile in layer.iter_tiles():
                if tile.tileset is not tileset or tile.id not in sources:
                    continue

                column = index % layer.width
                row = index // layer.width
                cell_x = column * tilewidth + layer.offsetx
                cell_y = (row + 1) * tileheight - tileset.tileheight + layer.offsety

                for obj in sources[tile.id].objects:
                    raw_group.objects.append(
                        replace(obj, x=obj.x + cell_x, y=obj.y + cell_y)
                    )

        logger.debug("Tileset '%s': %d collision objects generated",
                     tileset.name, len(raw_group.objects))
        groups.append(hydrator.hydrate_group(raw_group))

    return groups


def tile_object_groups(tmx_map, flip: bool = True) -> List[DecodedObjectGroup]:
    """
    Build the collision groups for an already loaded DecodedMap.

    The map is not modified; pass LoaderConfig(generate_tile_objects=True)
    to have the loader include them in the map instead.
    """
    hydrator = ObjectHydrator(tmx_map.pixel_height, tmx_map.tilesets, flip=flip)
    return build_tile_object_groups(tmx_map.tile_layers, tmx_map.tilesets, hydrator,
                                    tmx_map.tilewidth, tmx_map.tileheight)
