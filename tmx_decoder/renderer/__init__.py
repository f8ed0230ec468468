"""Renderer-side helpers (kept out of the decoded model)"""

from .tileset_renderer import TilesetRenderer, apply_flags

__all__ = ["TilesetRenderer", "apply_flags"]
