"""Decoded map structure and tile collision groups"""

from .structure import DecodedMap
from .collision import build_tile_object_groups, tile_object_groups

__all__ = ["DecodedMap", "build_tile_object_groups", "tile_object_groups"]
