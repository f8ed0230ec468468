"""
MapLoader: TMX document -> DecodedMap

=============================================================================
LOAD STEPS
=============================================================================

Strictly in this order, each failing fast:

    1. Parse the XML into the raw document tree (document.py)
    2. Reject infinite (chunked) maps
    3. Resolve and validate every tileset (tilesets.py)
    4. Flatten <group> folders into plain layers
    5. Decode every tile layer (layers.py)
    6. Hydrate every object group (objects.py)
    7. Optionally generate tile collision groups (map/collision.py)

Tileset resolution comes first because steps 5 to 7 all resolve GIDs
against the finished tileset list.

There is no partial result: the first error aborts the load and reaches
the caller with the layer/object/tileset and file it concerns attached.

=============================================================================
GROUPS
=============================================================================

    <group offsetx="10" opacity="0.5">
        <layer name="A" offsetx="5" opacity="0.5"> ...

becomes a top-level layer "A" with offsetx 15 and opacity 0.25. A hidden
group hides everything in it.

=============================================================================
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .config import DEFAULT_CONFIG, LoaderConfig
from .document import (
    ImageLayer,
    LayerGroup,
    ObjectGroup,
    TiledMap,
    TileLayer,
)
from .errors import MalformedDocumentError, TMXError, UnsupportedStorageModeError
from .layers import LayerAssembler
from .map.collision import build_tile_object_groups
from .map.structure import DecodedMap
from .objects import ObjectHydrator
from .tilesets import Reader, TilesetRegistry, read_file

logger = logging.getLogger(__name__)

# Tiled's only orientation the geometry here is defined for
SUPPORTED_ORIENTATION = "orthogonal"


def flatten_layers(layers, offsetx: float = 0, offsety: float = 0,
                   opacity: float = 1.0, visible: bool = True) -> List:
    """
    Lift the children of <group> elements into one flat list, document
    order, with the groups' offset/opacity/visibility folded in.
    """
    flat = []
    for layer in layers:
        if isinstance(layer, LayerGroup):
            flat.extend(flatten_layers(
                layer.layers,
                offsetx + layer.offsetx,
                offsety + layer.offsety,
                opacity * layer.opacity,
                visible and layer.visible,
            ))
        else:
            flat.append(replace(
                layer,
                offsetx=offsetx + layer.offsetx,
                offsety=offsety + layer.offsety,
                opacity=opacity * layer.opacity,
                visible=visible and layer.visible,
            ))
    return flat


class MapLoader:
    """
    Builds DecodedMaps from TMX documents.

    Usage:
    ------
        loader = MapLoader(LoaderConfig(generate_tile_objects=True))
        tmx_map = loader.load_file("maps/level1.tmx")

    A loader holds no per-map state; one instance can load any number of
    maps, one after another or from several threads.
    """

    def __init__(self, config: LoaderConfig = DEFAULT_CONFIG, reader: Reader = read_file):
        """
        Parameters:
        -----------
        config : LoaderConfig
            Loader options
        reader : callable
            path -> bytes, used for the TMX file (load_file) and for
            external tilesets
        """
        self.config = config
        self.reader = reader

    def load_file(self, path: Union[str, Path]) -> DecodedMap:
        """
        Load a TMX file. External tilesets are looked up next to it.

        Raises:
        -------
        TilesetSourceError : An external tileset cannot be read
        OSError            : The TMX file itself cannot be read
        TMXError           : Any decode failure, with the file path attached
        """
        path = Path(path)
        logger.info("Loading map %s", path)
        document = self.reader(path)
        return self.load(document, base_dir=path.parent, source=str(path))

    def load(self, document: Union[str, bytes], base_dir: Optional[Path] = None,
             source: Optional[str] = None) -> DecodedMap:
        """
        Load a TMX document already in memory.

        Parameters:
        -----------
        document : str or bytes
            TMX XML text
        base_dir : Path, optional
            Directory external tileset paths are relative to
        source : str, optional
            Document name attached to errors
        """
        try:
            return self._load(document, base_dir)
        except TMXError as e:
            if source is not None:
                e.within(source)
            logger.error("Map load failed: %s", e)
            raise

    def _load(self, document: Union[str, bytes], base_dir: Optional[Path]) -> DecodedMap:
        config = self.config

        # 1. Parse
        raw = TiledMap.parse(document, base_dir)

        # 2. Storage mode
        if raw.infinite:
            raise UnsupportedStorageModeError(
                "infinite maps are not supported", element="map"
            )
        if raw.orientation != SUPPORTED_ORIENTATION:
            logger.warning("Map orientation is '%s'; positions assume '%s'",
                           raw.orientation, SUPPORTED_ORIENTATION)

        # 3. Tilesets
        registry = TilesetRegistry(base_dir=base_dir, reader=self.reader,
                                   strict_order=config.strict_tileset_order)
        tilesets = registry.resolve_all(raw.tilesets)

        # 4. Groups
        layers = self._flatten(raw.layers)
        tile_layers, object_groups, image_layers = self._split(layers)

        # 5. Tile layers
        assembler = LayerAssembler(tilesets)
        decoded_layers = []
        for layer in tile_layers:
            try:
                decoded_layers.append(assembler.assemble(layer, raw.width, raw.height))
            except TMXError as e:
                logger.error("Tile layer '%s' failed to decode: %s", layer.name, e.message)
                raise e.at(f"layer '{layer.name}'")

        # 6. Object groups
        pixel_height = raw.height * raw.tileheight
        hydrator = ObjectHydrator(
            pixel_height, tilesets,
            flip=config.flip_y,
            tile_objects_use_first_tileset=config.tile_objects_use_first_tileset,
        )
        decoded_groups = []
        for group in object_groups:
            try:
                decoded_groups.append(hydrator.hydrate_group(group))
            except TMXError as e:
                raise e.at(f"object group '{group.name}'")

        # 7. Tile collision shapes
        if config.generate_tile_objects:
            decoded_groups.extend(build_tile_object_groups(
                decoded_layers, tilesets, hydrator, raw.tilewidth, raw.tileheight
            ))

        tmx_map = DecodedMap(
            width=raw.width,
            height=raw.height,
            tilewidth=raw.tilewidth,
            tileheight=raw.tileheight,
            version=raw.version,
            orientation=raw.orientation,
            renderorder=raw.renderorder,
            properties=dict(raw.properties),
            tilesets=tuple(tilesets),
            tile_layers=tuple(decoded_layers),
            object_groups=tuple(decoded_groups),
            image_layers=tuple(image_layers),
            base_dir=base_dir,
        )
        logger.debug("Loaded %s", tmx_map)
        return tmx_map

    def _flatten(self, layers) -> List:
        if self.config.flatten_groups:
            return flatten_layers(layers)

        for layer in layers:
            if isinstance(layer, LayerGroup):
                raise MalformedDocumentError(
                    "layer groups are disabled (LoaderConfig.flatten_groups)",
                    element=f"group '{layer.name}'"
                )
        return list(layers)

    @staticmethod
    def _split(layers) -> Tuple[List[TileLayer], List[ObjectGroup], List[ImageLayer]]:
        tile_layers, object_groups, image_layers = [], [], []
        for layer in layers:
            if isinstance(layer, TileLayer):
                tile_layers.append(layer)
            elif isinstance(layer, ObjectGroup):
                object_groups.append(layer)
            elif isinstance(layer, ImageLayer):
                image_layers.append(layer)
        return tile_layers, object_groups, image_layers


def load(document: Union[str, bytes], base_dir: Optional[Path] = None,
         config: Optional[LoaderConfig] = None, reader: Reader = read_file) -> DecodedMap:
    """Load a TMX document from memory with a one-off MapLoader."""
    return MapLoader(config or DEFAULT_CONFIG, reader).load(document, base_dir)


def load_file(path: Union[str, Path], config: Optional[LoaderConfig] = None,
              reader: Reader = read_file) -> DecodedMap:
    """Load a TMX file with a one-off MapLoader."""
    return MapLoader(config or DEFAULT_CONFIG, reader).load_file(path)
