"""
Raw TMX document model (Tiled Map Format)

=============================================================================
WHAT THIS MODULE DOES
=============================================================================

Parses a TMX (or TSX) XML document into plain dataclasses that mirror the
document exactly as written. Nothing here DECODES anything:

- Tile layer data stays as the declared encoding + raw payload text
- Object shapes stay as the markers found in the XML
- External tilesets stay as a (firstgid, source) reference

The decode pipeline (codec, gid, tilesets, layers, objects, loader) turns
this raw tree into the resolved DecodedMap.

=============================================================================
TMX FILE STRUCTURE
=============================================================================

    <map version="1.10" orientation="orthogonal" width="100" height="100"
         tilewidth="32" tileheight="32" infinite="0">

        <tileset firstgid="1" name="terrain" tilewidth="32" tileheight="32"
                 tilecount="64" columns="8">
            <image source="terrain.png" width="256" height="256"/>
        </tileset>
        <tileset firstgid="65" source="props.tsx"/>

        <layer name="Ground" width="100" height="100">
            <data encoding="csv">
                1,2,3,4,5,...
            </data>
        </layer>

        <objectgroup name="Collisions">
            <object id="1" x="100" y="200" width="32" height="32"/>
            <object id="2" x="10" y="20">
                <polygon points="0,0 32,0 32,32"/>
            </object>
        </objectgroup>

        <imagelayer name="Sky">
            <image source="sky.png" width="800" height="600"/>
        </imagelayer>
    </map>

=============================================================================
"""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Union

from .errors import MalformedDocumentError

logger = logging.getLogger(__name__)

# ASCII decimal only: int() and float() also take "1_0" and non-ASCII digits
_INTEGER = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?[0-9]+\.[0-9]*")


# =============================================================================
# ATTRIBUTE HELPERS
# =============================================================================

def _int_attr(elem: ET.Element, name: str, default: int = 0) -> int:
    value = elem.get(name)
    if value is None or value == '':
        return default
    if _INTEGER.fullmatch(value):
        return int(value)

    # Tiled writes some integer attributes as "32.0" after resizing
    if not _DECIMAL.fullmatch(value):
        raise MalformedDocumentError(
            f"attribute '{name}' of <{elem.tag}> is not a number: {value!r}"
        )
    as_float = float(value)
    if not as_float.is_integer():
        raise MalformedDocumentError(
            f"attribute '{name}' of <{elem.tag}> is not an integer: {value!r}"
        )
    return int(as_float)


def _float_attr(elem: ET.Element, name: str, default: float = 0.0) -> float:
    value = elem.get(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise MalformedDocumentError(
            f"attribute '{name}' of <{elem.tag}> is not a number: {value!r}"
        ) from None


def _bool_attr(elem: ET.Element, name: str, default: bool) -> bool:
    value = elem.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true')


def _parse_properties(elem: ET.Element) -> Dict[str, 'Property']:
    """Collect the <properties> child of elem, keyed by name."""
    properties = {}
    props_elem = elem.find('properties')
    if props_elem is not None:
        for prop_elem in props_elem.findall('property'):
            prop = Property.from_xml(prop_elem)
            properties[prop.name] = prop
    return properties


# =============================================================================
# PROPERTY
# =============================================================================

@dataclass
class Property:
    """
    Custom property attached to any TMX element.

    Properties are name/value string pairs. The declared type is kept so
    game code can ask for a converted value, but nothing is converted (or
    validated) while loading: a bad "int" property never fails a map load.

        <property name="solid" type="bool" value="true"/>
        <property name="health" type="int" value="100"/>
        <property name="description">Multi-line
        text</property>
    """
    name: str                    # Property name (key)
    value: str = ""              # Raw value, as written
    type: str = "string"         # Declared type

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Property':
        # Multi-line string properties store their value as element text
        value = elem.get('value')
        if value is None:
            value = elem.text or ''
        return cls(name=elem.get('name', ''), value=value,
                   type=elem.get('type', 'string'))

    def as_python(self):
        """
        Convert the value according to the declared type.

        int -> int, float -> float, bool -> bool; everything else (string,
        color, file, object) is returned as the raw string.

        Raises ValueError if the value does not match its declared type.
        """
        if self.type == 'int':
            return int(self.value)
        if self.type == 'float':
            return float(self.value)
        if self.type == 'bool':
            return self.value.lower() == 'true'
        return self.value


# =============================================================================
# IMAGE
# =============================================================================

@dataclass
class Image:
    """Image reference (tileset spritesheet, collection tile or image layer)."""
    source: str                          # Path, relative to the declaring file
    width: Optional[int] = None          # Image width (pixels)
    height: Optional[int] = None         # Image height (pixels)
    trans: Optional[str] = None          # Transparent color (RRGGBB)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Image':
        return cls(
            source=elem.get('source', ''),
            width=_int_attr(elem, 'width') if elem.get('width') else None,
            height=_int_attr(elem, 'height') if elem.get('height') else None,
            trans=elem.get('trans')
        )


# =============================================================================
# TILE
# =============================================================================

@dataclass
class Tile:
    """
    Per-tile metadata inside a tileset.

    The 'id' is LOCAL to the tileset (0-based). Only tiles with something
    to say (properties, an image, collision shapes) appear in the document.

    Collision shapes drawn in Tiled's tile collision editor are stored as
    a tile-local object group, with coordinates relative to the tile's
    top-left corner:

        <tile id="3">
            <objectgroup draworder="index">
                <object id="1" x="0" y="16" width="32" height="16"/>
            </objectgroup>
        </tile>
    """
    id: int                                          # Local tile ID
    type: str = ""                                   # Tile type/class
    properties: Dict[str, Property] = field(default_factory=dict)
    image: Optional[Image] = None                    # Image (collection tilesets)
    objectgroup: Optional['ObjectGroup'] = None      # Collision shapes

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Tile':
        tile = cls(id=_int_attr(elem, 'id'))
        # 'class' replaced 'type' in Tiled 1.9
        tile.type = elem.get('type', elem.get('class', ''))
        tile.properties = _parse_properties(elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tile.image = Image.from_xml(img_elem)

        group_elem = elem.find('objectgroup')
        if group_elem is not None:
            tile.objectgroup = ObjectGroup.from_xml(group_elem)

        return tile


# =============================================================================
# TILESET
# =============================================================================

@dataclass(eq=False)
class Tileset:
    """
    Tileset - a run of tile slots cut from one source image.

    ==========================================================================
    GID RANGE
    ==========================================================================

    A tileset owns the contiguous global IDs starting at firstgid:

        Tileset A (firstgid=1,   tilecount=100): GIDs 1-100
        Tileset B (firstgid=101, tilecount=50):  GIDs 101-150

    Local tile ID = GID - firstgid

    ==========================================================================
    EMBEDDED vs EXTERNAL
    ==========================================================================

    EMBEDDED: the definition is inside the TMX file

        <tileset firstgid="1" name="terrain" tilewidth="32" ...>

    EXTERNAL: the TMX only holds a reference

        <tileset firstgid="1" source="terrain.tsx"/>

    An unresolved reference is a Tileset with `source` set and no geometry.
    TilesetRegistry replaces it with the TSX definition, keeping the
    firstgid from the TMX (the TSX never assigns a GID range).

    ==========================================================================
    IDENTITY
    ==========================================================================

    Tilesets compare by identity: two tilesets with equal fields are still
    different tilesets, and "does this layer use one tileset" is answered
    with `is`.

    ==========================================================================
    """
    firstgid: int                                    # First Global ID
    name: str = ""                                   # Tileset name
    tilewidth: int = 0                               # Tile width in pixels
    tileheight: int = 0                              # Tile height in pixels
    tilecount: int = 0                               # Total number of tiles
    columns: int = 0                                 # Tiles per row
    spacing: int = 0                                 # Pixels between tiles
    margin: int = 0                                  # Pixels around edge
    image: Optional[Image] = None                    # Spritesheet image
    tiles: Dict[int, Tile] = field(default_factory=dict)
    properties: Dict[str, Property] = field(default_factory=dict)
    source: Optional[str] = None                     # TSX path (if external)
    base_dir: Optional[Path] = None                  # Directory image paths are relative to

    @classmethod
    def from_xml(cls, elem: ET.Element, firstgid: int,
                 base_dir: Optional[Path] = None) -> 'Tileset':
        """
        Parse tileset from a <tileset> element.

        Parameters:
        -----------
        elem : ET.Element
            The <tileset> element (in a TMX, or the root of a TSX)
        firstgid : int
            First Global ID (always from the TMX, never the TSX)
        base_dir : Path, optional
            Directory of the file declaring this tileset
        """
        tileset = cls(
            firstgid=firstgid,
            name=elem.get('name', ''),
            tilewidth=_int_attr(elem, 'tilewidth'),
            tileheight=_int_attr(elem, 'tileheight'),
            tilecount=_int_attr(elem, 'tilecount'),
            columns=_int_attr(elem, 'columns'),
            spacing=_int_attr(elem, 'spacing'),
            margin=_int_attr(elem, 'margin'),
            source=elem.get('source'),
            base_dir=base_dir
        )
        tileset.properties = _parse_properties(elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            tileset.image = Image.from_xml(img_elem)

        for tile_elem in elem.findall('tile'):
            tile = Tile.from_xml(tile_elem)
            tileset.tiles[tile.id] = tile

        return tileset

    @property
    def is_external(self) -> bool:
        """True if the definition lives in a TSX file."""
        return bool(self.source)

    @property
    def num_rows(self) -> int:
        """Rows in the source image (tilecount / columns)."""
        if self.columns <= 0:
            return 0
        return self.tilecount // self.columns

    @property
    def lastgid(self) -> int:
        """Last GID owned by this tileset (firstgid - 1 when empty)."""
        return self.firstgid + self.tilecount - 1

    def __repr__(self):
        return (f"Tileset(name={self.name!r}, firstgid={self.firstgid}, "
                f"tiles={self.tilewidth}x{self.tileheight}, "
                f"tilecount={self.tilecount})")


# =============================================================================
# LAYER DATA (RAW TILE STREAM)
# =============================================================================

@dataclass
class LayerData:
    """
    The <data> block of a tile layer, exactly as declared.

    encoding     : None (plain XML <tile> children), 'csv' or 'base64'
    compression  : None, 'zlib' or 'gzip' (base64 only)
    text         : payload text for csv/base64
    tiles        : GIDs of the <tile gid=".."/> children (plain encoding)

    This is an intermediate: the codec turns it into GIDs and the decoded
    layer does not keep it.
    """
    encoding: Optional[str] = None
    compression: Optional[str] = None
    text: str = ""
    tiles: List[int] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerData':
        data = cls(
            encoding=elem.get('encoding') or None,
            compression=elem.get('compression') or None,
            text=elem.text or ''
        )
        if data.encoding is None:
            # A <tile/> without gid is an empty cell
            data.tiles = [_int_attr(tile_elem, 'gid')
                          for tile_elem in elem.findall('tile')]
        return data


# =============================================================================
# TILE LAYER
# =============================================================================

@dataclass
class TileLayer:
    """Tile layer - a width x height grid of GIDs, still encoded."""
    name: str                                        # Layer name
    width: int = 0                                   # Width in tiles
    height: int = 0                                  # Height in tiles
    id: int = 0                                      # Unique layer ID
    visible: bool = True                             # Is layer rendered?
    opacity: float = 1.0                             # Transparency
    offsetx: float = 0                               # X pixel offset
    offsety: float = 0                               # Y pixel offset
    properties: Dict[str, Property] = field(default_factory=dict)
    data: LayerData = field(default_factory=LayerData)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileLayer':
        layer = cls(
            name=elem.get('name', ''),
            width=_int_attr(elem, 'width'),
            height=_int_attr(elem, 'height'),
            id=_int_attr(elem, 'id'),
            visible=_bool_attr(elem, 'visible', True),
            opacity=_float_attr(elem, 'opacity', 1.0),
            offsetx=_float_attr(elem, 'offsetx'),
            offsety=_float_attr(elem, 'offsety')
        )
        layer.properties = _parse_properties(elem)

        data_elem = elem.find('data')
        if data_elem is not None:
            layer.data = LayerData.from_xml(data_elem)

        return layer


# =============================================================================
# MAP OBJECT
# =============================================================================

@dataclass
class MapObject:
    """
    Object in an object layer, before classification.

    Shape markers are kept as found: at most one of polygon / polyline
    (raw point-list strings), ellipse, point, or a non-zero gid is
    expected. The hydrator decides the kind.

        <object id="1" x="10" y="20" width="32" height="32"/>   rectangle
        <object id="2" x="10" y="20"><point/></object>          point
        <object id="3" x="10" y="20" width="8" height="4">
            <ellipse/>
        </object>                                               ellipse
        <object id="4" x="0" y="0">
            <polygon points="0,0 32,0 32,32"/>
        </object>                                               polygon
        <object id="5" gid="7" x="64" y="64" width="32" height="32"/>
                                                                tile
    """
    id: int                                          # Unique object ID
    name: str = ""                                   # Object name
    type: str = ""                                   # Object type/class
    x: float = 0                                     # X position
    y: float = 0                                     # Y position
    width: float = 0                                 # Width (0 for points)
    height: float = 0                                # Height (0 for points)
    rotation: float = 0                              # Rotation in degrees
    gid: int = 0                                     # Tile GID (tile objects)
    visible: bool = True                             # Is object visible?
    polygon: Optional[str] = None                    # Raw polygon point list
    polyline: Optional[str] = None                   # Raw polyline point list
    ellipse: bool = False                            # <ellipse/> marker
    point: bool = False                              # <point/> marker
    properties: Dict[str, Property] = field(default_factory=dict)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'MapObject':
        obj = cls(
            id=_int_attr(elem, 'id'),
            name=elem.get('name', ''),
            type=elem.get('type', elem.get('class', '')),
            x=_float_attr(elem, 'x'),
            y=_float_attr(elem, 'y'),
            width=_float_attr(elem, 'width'),
            height=_float_attr(elem, 'height'),
            rotation=_float_attr(elem, 'rotation'),
            gid=_int_attr(elem, 'gid'),
            visible=_bool_attr(elem, 'visible', True)
        )

        polygon_elem = elem.find('polygon')
        if polygon_elem is not None:
            obj.polygon = polygon_elem.get('points', '')
        polyline_elem = elem.find('polyline')
        if polyline_elem is not None:
            obj.polyline = polyline_elem.get('points', '')
        obj.ellipse = elem.find('ellipse') is not None
        obj.point = elem.find('point') is not None

        obj.properties = _parse_properties(elem)
        return obj


# =============================================================================
# OBJECT GROUP
# =============================================================================

@dataclass
class ObjectGroup:
    """Object layer - an ordered list of objects."""
    name: str = ""                                   # Layer name
    id: int = 0                                      # Unique layer ID
    color: Optional[str] = None                      # Display color in Tiled
    visible: bool = True                             # Is layer visible?
    opacity: float = 1.0                             # Transparency
    offsetx: float = 0                               # X pixel offset
    offsety: float = 0                               # Y pixel offset
    properties: Dict[str, Property] = field(default_factory=dict)
    objects: List[MapObject] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ObjectGroup':
        group = cls(
            name=elem.get('name', ''),
            id=_int_attr(elem, 'id'),
            color=elem.get('color'),
            visible=_bool_attr(elem, 'visible', True),
            opacity=_float_attr(elem, 'opacity', 1.0),
            offsetx=_float_attr(elem, 'offsetx'),
            offsety=_float_attr(elem, 'offsety')
        )
        group.properties = _parse_properties(elem)

        for obj_elem in elem.findall('object'):
            group.objects.append(MapObject.from_xml(obj_elem))

        return group


# =============================================================================
# IMAGE LAYER
# =============================================================================

@dataclass
class ImageLayer:
    """A single free image drawn over the map."""
    name: str = ""
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    image: Optional[Image] = None
    properties: Dict[str, Property] = field(default_factory=dict)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ImageLayer':
        layer = cls(
            name=elem.get('name', ''),
            id=_int_attr(elem, 'id'),
            visible=_bool_attr(elem, 'visible', True),
            opacity=_float_attr(elem, 'opacity', 1.0),
            offsetx=_float_attr(elem, 'offsetx'),
            offsety=_float_attr(elem, 'offsety')
        )
        layer.properties = _parse_properties(elem)

        img_elem = elem.find('image')
        if img_elem is not None:
            layer.image = Image.from_xml(img_elem)

        return layer


# =============================================================================
# LAYER GROUP
# =============================================================================

Layer = Union[TileLayer, ObjectGroup, ImageLayer, 'LayerGroup']


@dataclass
class LayerGroup:
    """
    Group of layers - a folder containing other layers.

        Layers:
        ├── Background (group)
        │   ├── Sky
        │   └── Mountains
        └── Foreground

    Groups can be nested. The group's offset applies to all its children,
    its opacity multiplies theirs, and a hidden group hides them.
    """
    name: str = ""
    id: int = 0
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    properties: Dict[str, Property] = field(default_factory=dict)
    layers: List[Layer] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'LayerGroup':
        group = cls(
            name=elem.get('name', ''),
            id=_int_attr(elem, 'id'),
            visible=_bool_attr(elem, 'visible', True),
            opacity=_float_attr(elem, 'opacity', 1.0),
            offsetx=_float_attr(elem, 'offsetx'),
            offsety=_float_attr(elem, 'offsety')
        )
        group.properties = _parse_properties(elem)
        group.layers = _parse_layers(elem)
        return group


def _parse_layers(parent: ET.Element) -> List[Layer]:
    """Parse the layer children of <map> or <group>, in document order."""
    layers = []
    for child in parent:
        if child.tag == 'layer':
            layers.append(TileLayer.from_xml(child))
        elif child.tag == 'objectgroup':
            layers.append(ObjectGroup.from_xml(child))
        elif child.tag == 'imagelayer':
            layers.append(ImageLayer.from_xml(child))
        elif child.tag == 'group':
            layers.append(LayerGroup.from_xml(child))
        elif child.tag not in _NON_LAYER_TAGS:
            logger.warning("Ignoring unknown element <%s> in <%s>", child.tag, parent.tag)
    return layers


# Children of <map>/<group> that are not layers
_NON_LAYER_TAGS = ('properties', 'tileset', 'editorsettings')


# =============================================================================
# TILED MAP (document root)
# =============================================================================

@dataclass
class TiledMap:
    """
    The <map> element - root of a TMX document.

    Usage:
    ------
        raw = TiledMap.parse(Path("level1.tmx").read_bytes())
        print(raw.width, raw.height, len(raw.tilesets))

    `tilesets` holds embedded tilesets and unresolved external references,
    in declaration order. `layers` holds every layer child of <map>
    (groups included) in document order.
    """
    version: str = "1.10"                            # TMX format version
    tiledversion: str = ""                           # Tiled editor version
    orientation: str = "orthogonal"                  # Map orientation
    renderorder: str = "right-down"                  # Render order
    width: int = 0                                   # Map width in tiles
    height: int = 0                                  # Map height in tiles
    tilewidth: int = 0                               # Tile width in pixels
    tileheight: int = 0                              # Tile height in pixels
    infinite: bool = False                           # Chunked (infinite) map?
    properties: Dict[str, Property] = field(default_factory=dict)
    tilesets: List[Tileset] = field(default_factory=list)
    layers: List[Layer] = field(default_factory=list)

    @classmethod
    def from_xml(cls, root: ET.Element, base_dir: Optional[Path] = None) -> 'TiledMap':
        if root.tag != 'map':
            raise MalformedDocumentError(
                f"expected a <map> root element, found <{root.tag}>"
            )

        map_obj = cls(
            version=root.get('version', '1.0'),
            tiledversion=root.get('tiledversion', ''),
            orientation=root.get('orientation', 'orthogonal'),
            renderorder=root.get('renderorder', 'right-down'),
            width=_int_attr(root, 'width'),
            height=_int_attr(root, 'height'),
            tilewidth=_int_attr(root, 'tilewidth'),
            tileheight=_int_attr(root, 'tileheight'),
            infinite=_bool_attr(root, 'infinite', False)
        )
        map_obj.properties = _parse_properties(root)

        for tileset_elem in root.findall('tileset'):
            if tileset_elem.get('firstgid') is None:
                raise MalformedDocumentError(
                    "<tileset> in a map must declare firstgid"
                )
            firstgid = _int_attr(tileset_elem, 'firstgid')
            map_obj.tilesets.append(
                Tileset.from_xml(tileset_elem, firstgid, base_dir)
            )

        map_obj.layers = _parse_layers(root)

        logger.debug("Parsed map %dx%d (%d tilesets, %d top-level layers)",
                     map_obj.width, map_obj.height,
                     len(map_obj.tilesets), len(map_obj.layers))
        return map_obj

    @classmethod
    def parse(cls, document: Union[str, bytes],
              base_dir: Optional[Path] = None) -> 'TiledMap':
        """
        Parse TMX document text.

        Raises:
        -------
        MalformedDocumentError : If the XML is not well-formed or the root
                                 is not <map>
        """
        return cls.from_xml(parse_xml(document), base_dir)


def parse_xml(document: Union[str, bytes]) -> ET.Element:
    """Parse XML text, turning syntax errors into MalformedDocumentError."""
    try:
        return ET.fromstring(document)
    except ET.ParseError as e:
        raise MalformedDocumentError(f"document is not well-formed XML: {e}") from e


def parse_tileset_document(document: Union[str, bytes], firstgid: int,
                           base_dir: Optional[Path] = None) -> Tileset:
    """Parse a TSX document (root <tileset>) with the firstgid of the TMX."""
    root = parse_xml(document)
    if root.tag != 'tileset':
        raise MalformedDocumentError(
            f"expected a <tileset> root element, found <{root.tag}>"
        )
    return Tileset.from_xml(root, firstgid, base_dir)
