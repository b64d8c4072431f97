#!/usr/bin/env python3
"""
Builds a TMX map from a JSON map description.

Usage:
  python generate_map.py level1.json --output maps/level1.tmx --encoding csv
"""
import argparse
import json
import logging
import os
import sys

from tmx_generator.generator import TMXGenerator
from tmx_generator.layers import ROTATION_MODES, ROTATION_PROPERTY
from tmx_generator.provider import DictMapDataProvider
from tmx_generator.tmx import ENCODINGS


logger = logging.getLogger("generate_map")


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate a TMX map from a JSON map description")
    p.add_argument("description", help="JSON file describing the map, its tilesets, layers and object groups")
    p.add_argument("--output", default=None, help="Path of the TMX file (default: 'output' from the description)")
    p.add_argument("--encoding", choices=ENCODINGS, default="base64", help="Layer data encoding (default: base64)")
    p.add_argument("--compression", choices=("gzip", "zlib", "none"), default="gzip",
                   help="Compression of base64 layer data (default: gzip)")
    p.add_argument("--rotation", choices=ROTATION_MODES, default=ROTATION_PROPERTY,
                   help="Write tile rotations as a layer property or as TMX flip flags (default: property)")
    p.add_argument("--backups", type=int, default=0, help="Number of backups of an existing map file to keep (default: 0)")
    p.add_argument("-v", "--verbose", action="store_true", help="Log build progress")
    return p.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with open(args.description, "r", encoding="utf-8") as f:
        description = json.load(f)
    if args.output is not None:
        description["output"] = os.path.abspath(args.output)

    compression = None if args.encoding == "csv" or args.compression == "none" else args.compression
    provider = DictMapDataProvider(description, os.path.dirname(os.path.abspath(args.description)))
    generator = TMXGenerator(provider, encoding=args.encoding, compression=compression, rotation_mode=args.rotation, backups=args.backups)

    success, error = generator.generate()
    if not success:
        logger.error(str(error))
        return 1

    logger.info(f"Generated {provider.map_file_path()}: {generator.session.statistics}")
    return 0


def cli() -> None:
    sys.exit(main(sys.argv[1:]))


if __name__ == '__main__':
    cli()
