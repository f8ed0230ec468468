"""
Object hydration: raw <object> elements -> classified, y-up objects

=============================================================================
OBJECT KINDS
=============================================================================

Every object gets exactly one kind, first match wins:

    <polygon points=".."/> present    -> POLYGON
    <polyline points=".."/> present   -> POLYLINE
    <ellipse/> present                -> ELLIPSE
    <point/> present                  -> POINT
    gid != 0                          -> TILE
    otherwise                         -> RECTANGLE

The kind's shape is built once, during hydration, and carries only what
that kind needs (a Rect, a Circle, a vertex list, a DecodedTile...).
Asking an object for a shape of another kind raises
InvalidShapeAccessError.

=============================================================================
COORDINATES
=============================================================================

Tiled measures objects from the map's TOP-LEFT corner, y growing down.
Hydrated objects are measured from the BOTTOM-LEFT, y growing up:

    y' = map_pixel_height - y - height

(x, y') is then the bottom-left corner of the object's box. The group
offset is added first (in Tiled's space), the flip is applied once, and
only then are shapes derived.

Polygon/polyline vertices are relative to the object in the document;
they are made absolute and flipped the same way:

    vertex' = (x + px, map_pixel_height - (y + py))

Ellipses become circles: radius (width + height) / 4, centred on the
centre of the object's box.

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

from .document import MapObject, ObjectGroup, Property, Tileset
from .errors import (
    InvalidGIDError,
    InvalidShapeAccessError,
    MalformedPointListError,
    TMXError,
)
from .gid import DecodedTile, resolve, resolve_in

logger = logging.getLogger(__name__)

# ASCII decimal only: int() alone would also take "1_0" and non-ASCII digits
_INTEGER = re.compile(r"[+-]?[0-9]+")


class ObjectKind(Enum):
    ELLIPSE = "Ellipse"
    POLYGON = "Polygon"
    POLYLINE = "Polyline"
    RECTANGLE = "Rectangle"
    POINT = "Point"
    TILE = "Tile"

    def __str__(self):
        return self.value


# =============================================================================
# GEOMETRY
# =============================================================================

class Point(NamedTuple):
    """Integer vertex as written in a point list."""
    x: int
    y: int


class Vec(NamedTuple):
    """Position in map pixel space."""
    x: float
    y: float


class Rect(NamedTuple):
    min: Vec
    max: Vec

    @property
    def width(self) -> float:
        return self.max.x - self.min.x

    @property
    def height(self) -> float:
        return self.max.y - self.min.y

    def center(self) -> Vec:
        return Vec((self.min.x + self.max.x) / 2, (self.min.y + self.max.y) / 2)


class Circle(NamedTuple):
    center: Vec
    radius: float


# =============================================================================
# SHAPES (one variant per kind)
# =============================================================================

@dataclass(frozen=True)
class RectangleShape:
    rect: Rect


@dataclass(frozen=True)
class EllipseShape:
    circle: Circle


@dataclass(frozen=True)
class PointShape:
    point: Vec


@dataclass(frozen=True)
class PolygonShape:
    points: Tuple[Vec, ...]


@dataclass(frozen=True)
class PolylineShape:
    points: Tuple[Vec, ...]


@dataclass(frozen=True)
class TileShape:
    tile: DecodedTile


Shape = Union[RectangleShape, EllipseShape, PointShape, PolygonShape,
              PolylineShape, TileShape]


# =============================================================================
# HYDRATED OBJECTS
# =============================================================================

@dataclass(eq=False)
class TiledObject:
    """
    A classified object in bottom-left map space.

    x, y are the bottom-left corner of the object's box after the flip
    (or Tiled's own coordinates when the loader runs with flip_y off).
    """
    id: int
    kind: ObjectKind
    shape: Shape
    name: str = ""
    type: str = ""
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    rotation: float = 0
    gid: int = 0
    visible: bool = True
    properties: Dict[str, Property] = field(default_factory=dict)

    def _shape(self, kind: ObjectKind):
        if self.kind is not kind:
            logger.error("Object %d is %s, not %s", self.id, self.kind, kind)
            raise InvalidShapeAccessError(
                f"the object type requested ({kind}) does not match this object ({self.kind})",
                element=f"object {self.id} '{self.name}'"
            )
        return self.shape

    def get_rect(self) -> Rect:
        return self._shape(ObjectKind.RECTANGLE).rect

    def get_ellipse(self) -> Circle:
        """The ellipse approximated as a circle (see module docs)."""
        return self._shape(ObjectKind.ELLIPSE).circle

    def get_point(self) -> Vec:
        return self._shape(ObjectKind.POINT).point

    def get_polygon(self) -> Tuple[Vec, ...]:
        return self._shape(ObjectKind.POLYGON).points

    def get_polyline(self) -> Tuple[Vec, ...]:
        return self._shape(ObjectKind.POLYLINE).points

    def get_tile(self) -> DecodedTile:
        return self._shape(ObjectKind.TILE).tile

    def __str__(self):
        return f"Object{{{self.kind}, Name: '{self.name}'}}"


@dataclass(eq=False)
class DecodedObjectGroup:
    """
    An object layer whose objects have all been hydrated.

    offsetx/offsety are kept for reference only: they are ALREADY added to
    every object's position and vertices. A renderer must not shift the
    objects by them again (unlike DecodedTileLayer, whose offset is not
    applied to anything).
    """
    name: str
    objects: Tuple[TiledObject, ...] = ()
    id: int = 0
    color: Optional[str] = None
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0
    offsety: float = 0
    properties: Dict[str, Property] = field(default_factory=dict)

    def get_objects_by_name(self, name: str) -> List[TiledObject]:
        return [obj for obj in self.objects if obj.name == name]

    def get_objects_by_kind(self, kind: ObjectKind) -> List[TiledObject]:
        return [obj for obj in self.objects if obj.kind is kind]

    def __str__(self):
        return (f"ObjectGroup{{Name: {self.name}, Properties: "
                f"{list(self.properties.values())}, Objects: {len(self.objects)}}}")


# =============================================================================
# PARSING AND CLASSIFICATION
# =============================================================================

def parse_points(text: str) -> List[Point]:
    """
    Parse a Tiled point list: "x,y x,y ...".

        >>> parse_points("0,0 10,0 10,10")
        [Point(x=0, y=0), Point(x=10, y=0), Point(x=10, y=10)]

    Raises:
    -------
    MalformedPointListError : A token is not two comma-separated integers,
                              or the list holds no point at all
    """
    tokens = text.split()
    if not tokens:
        raise MalformedPointListError(f"invalid points string {text!r}: no points")

    points = []
    for token in tokens:
        coords = token.split(',')
        if len(coords) != 2:
            logger.error("parse_points: token %r has %d fields", token, len(coords))
            raise MalformedPointListError(
                f"invalid points string {text!r}: token {token!r} is not an x,y pair"
            )
        if not all(_INTEGER.fullmatch(coord) for coord in coords):
            raise MalformedPointListError(
                f"invalid points string {text!r}: token {token!r} is not integral"
            )
        points.append(Point(int(coords[0]), int(coords[1])))
    return points


def classify(obj: MapObject) -> ObjectKind:
    if obj.polygon is not None:
        return ObjectKind.POLYGON
    if obj.polyline is not None:
        return ObjectKind.POLYLINE
    if obj.ellipse:
        return ObjectKind.ELLIPSE
    if obj.point:
        return ObjectKind.POINT
    if obj.gid != 0:
        return ObjectKind.TILE
    return ObjectKind.RECTANGLE


def flip_y(y: float, height: float, map_pixel_height: float) -> float:
    """Top-left <-> bottom-left. Applying it twice gives y back."""
    return map_pixel_height - y - height


# =============================================================================
# HYDRATOR
# =============================================================================

class ObjectHydrator:
    """
    Classifies and normalizes objects for one map.

    Everything map-dependent (pixel height, tilesets) is given up front,
    so objects never need a reference back to their map.
    """

    def __init__(self, map_pixel_height: float, tilesets: Sequence[Tileset],
                 flip: bool = True, tile_objects_use_first_tileset: bool = False):
        self.map_pixel_height = map_pixel_height
        self.tilesets = tuple(tilesets)
        self.flip = flip
        self.tile_objects_use_first_tileset = tile_objects_use_first_tileset

    def hydrate_group(self, group: ObjectGroup) -> DecodedObjectGroup:
        objects = []
        for obj in group.objects:
            try:
                objects.append(self.hydrate(obj, group.offsetx, group.offsety))
            except TMXError as e:
                raise e.at(f"object {obj.id} '{obj.name}' of group '{group.name}'")

        logger.debug("Hydrated object group '%s': %d objects", group.name, len(objects))

        return DecodedObjectGroup(
            name=group.name,
            objects=tuple(objects),
            id=group.id,
            color=group.color,
            visible=group.visible,
            opacity=group.opacity,
            offsetx=group.offsetx,
            offsety=group.offsety,
            properties=dict(group.properties),
        )

    def hydrate(self, obj: MapObject, offsetx: float = 0, offsety: float = 0) -> TiledObject:
        """Classify one object, offset it, flip it, then build its shape."""
        kind = classify(obj)

        # Document space, group offset applied
        doc_x = obj.x + offsetx
        doc_y = obj.y + offsety

        x = doc_x
        y = flip_y(doc_y, obj.height, self.map_pixel_height) if self.flip else doc_y

        shape = self._build_shape(kind, obj, x, y, doc_x, doc_y)

        return TiledObject(
            id=obj.id,
            kind=kind,
            shape=shape,
            name=obj.name,
            type=obj.type,
            x=x,
            y=y,
            width=obj.width,
            height=obj.height,
            rotation=obj.rotation,
            gid=obj.gid,
            visible=obj.visible,
            properties=dict(obj.properties),
        )

    def _build_shape(self, kind: ObjectKind, obj: MapObject, x: float, y: float,
                     doc_x: float, doc_y: float) -> Shape:
        if kind is ObjectKind.RECTANGLE:
            return RectangleShape(Rect(Vec(x, y), Vec(x + obj.width, y + obj.height)))

        if kind is ObjectKind.ELLIPSE:
            radius = (obj.width + obj.height) / 4
            centre = Vec(x + obj.width / 2, y + obj.height / 2)
            return EllipseShape(Circle(centre, radius))

        if kind is ObjectKind.POINT:
            return PointShape(Vec(x, y))

        if kind is ObjectKind.POLYGON:
            return PolygonShape(self._vertices(obj.polygon, doc_x, doc_y))

        if kind is ObjectKind.POLYLINE:
            return PolylineShape(self._vertices(obj.polyline, doc_x, doc_y))

        return TileShape(self.resolve_tile(obj.gid))

    def _vertices(self, text: str, doc_x: float, doc_y: float) -> Tuple[Vec, ...]:
        vertices = []
        for point in parse_points(text):
            vx = doc_x + point.x
            vy = doc_y + point.y
            if self.flip:
                vy = self.map_pixel_height - vy
            vertices.append(Vec(vx, vy))
        return tuple(vertices)

    def resolve_tile(self, gid: int) -> DecodedTile:
        """Resolve a tile-object GID (see LoaderConfig for the two modes)."""
        if self.tile_objects_use_first_tileset:
            if not self.tilesets:
                raise InvalidGIDError(gid)
            return resolve_in(gid, self.tilesets[0])
        return resolve(gid, self.tilesets)
