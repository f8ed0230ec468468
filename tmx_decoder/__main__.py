#!/usr/bin/env python3

"""
TMX Decoder - print what a Tiled map decodes to

Usage:
    python -m tmx_decoder <map.tmx> [-v] [--tile-objects]

Options:
    -v, --verbose    Log every pipeline stage
    --tile-objects   Also build the per-tileset collision groups
    --no-flip        Keep Tiled's top-left object coordinates
"""

import argparse
import logging
import sys
from collections import Counter

from .config import LoaderConfig
from .errors import TMXError
from .loader import load_file


def summarize(tmx_map):
    print(tmx_map)
    print(f"  Size: {tmx_map.width}x{tmx_map.height} tiles of "
          f"{tmx_map.tilewidth}x{tmx_map.tileheight} "
          f"({tmx_map.pixel_width}x{tmx_map.pixel_height} px), {tmx_map.orientation}")

    print("\n=== Tilesets ===")
    for tileset in tmx_map.tilesets:
        origin = f" from {tileset.source}" if tileset.is_external else ""
        print(f"  {tileset.name}: GIDs {tileset.firstgid}-{tileset.lastgid}, "
              f"{tileset.tilewidth}x{tileset.tileheight}{origin}")

    print("\n=== Tile layers ===")
    for layer in tmx_map.tile_layers:
        if layer.empty:
            usage = "empty"
        elif layer.uses_multiple_tilesets:
            usage = "multiple tilesets"
        else:
            usage = f"tileset {layer.tileset.name}"
        used = sum(1 for _ in layer.iter_tiles())
        print(f"  {layer.name}: {used}/{len(layer.tiles)} cells, {usage}"
              f"{'' if layer.visible else ', hidden'}")

    print("\n=== Object groups ===")
    for group in tmx_map.object_groups:
        kinds = Counter(str(obj.kind) for obj in group.objects)
        detail = ", ".join(f"{kind}: {count}" for kind, count in sorted(kinds.items()))
        print(f"  {group.name}: {len(group.objects)} objects"
              f"{f' ({detail})' if detail else ''}")

    if tmx_map.image_layers:
        print("\n=== Image layers ===")
        for layer in tmx_map.image_layers:
            source = layer.image.source if layer.image else "no image"
            print(f"  {layer.name}: {source}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="tmx_decoder",
        description="Decode a Tiled TMX map and print a summary."
    )
    parser.add_argument("path", help="TMX file")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every pipeline stage")
    parser.add_argument("--tile-objects", action="store_true",
                        help="generate collision groups from tile shapes")
    parser.add_argument("--no-flip", action="store_true",
                        help="keep Tiled's top-left object coordinates")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    config = LoaderConfig(generate_tile_objects=args.tile_objects,
                          flip_y=not args.no_flip)
    try:
        tmx_map = load_file(args.path, config)
    except (TMXError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    summarize(tmx_map)
    return 0


if __name__ == "__main__":
    sys.exit(main())
