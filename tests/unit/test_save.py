import json
import os
from tempfile import TemporaryDirectory
from unittest import TestCase

import pygame

from fake_provider import layer_data, read_map
from generate_map import main


class TestGenerateAndSave(TestCase):
    def write_description(self, t: str, **overrides) -> str:
        os.mkdir(os.path.join(t, "images"))
        pygame.image.save(pygame.Surface((48, 32)), os.path.join(t, "images", "ground.png"))

        description = {
            "output": "maps/level1.tmx",
            "map": {"mapWidth": 3, "mapHeight": 2, "mapTileWidth": 16, "mapTileHeight": 16, "mapOrientation": "orthogonal"},
            "tilesets": [
                {"tileSetName": "ground", "imageAtlasFilename": "images/ground.png", "imageAtlasTileWidth": 16,
                 "imageAtlasTileHeight": 16, "imageAtlasTileSpacing": 0,
                 "tileProperties": {"0": {"name": "grass"}, "1": {"name": "dirt"}, "5": {"name": "water"}}},
            ],
            "layers": [
                {"layerName": "base", "layerWidth": 3, "layerHeight": 2, "visible": True, "tileset": "ground", "key": "name",
                 "cells": [["grass", "dirt", "water"], ["water", "dirt", "grass"]], "rotations": [[0, 0, 0], [0, 180, 0]]},
            ],
            "objectGroups": [
                {"objectGroupName": "spawns", "objects": [
                    {"groupObjectName": "start", "groupObjectType": "spawn", "groupObjectX": 16, "groupObjectY": 0,
                     "groupObjectWidth": 16, "groupObjectHeight": 16, "groupObjectProperties": {"facing": "south"}},
                ]},
            ],
        } | overrides

        filename = os.path.join(t, "level1.json")
        with open(filename, "w") as f:
            json.dump(description, f)
        return filename

    def test_generate_simple_case(self) -> None:
        with TemporaryDirectory() as t:
            description = self.write_description(t)

            self.assertEqual(0, main([description]))

            tmx_file = os.path.join(t, "maps", "level1.tmx")
            root = read_map(tmx_file)
            self.assertEqual({"base": [1, 2, 6, 6, 2, 1]}, layer_data(root))
            tileset = root.find("tileset")
            self.assertEqual(("6", "3"), (tileset.get("tilecount"), tileset.get("columns")))
            self.assertEqual(("ground.png", "48", "32"), tuple(tileset.find("image").get(a) for a in ("source", "width", "height")))
            self.assertTrue(os.path.exists(os.path.join(t, "maps", "ground.png")))
            self.assertEqual("rotationData", root.find("layer/properties/property").get("name"))
            self.assertEqual("start", root.find("objectgroup/object").get("name"))

    def test_generate_with_options(self) -> None:
        with TemporaryDirectory() as t:
            description = self.write_description(t)
            output = os.path.join(t, "out", "other.tmx")

            self.assertEqual(0, main([description, "--output", output, "--encoding", "csv", "--rotation", "flags"]))

            root = read_map(output)
            self.assertEqual("csv", root.find("layer/data").get("encoding"))
            self.assertEqual({"base": [1, 2, 6, 6, 2 | (1 << 31) | (1 << 30), 1]}, layer_data(root))

    def test_failed_generation(self) -> None:
        with TemporaryDirectory() as t:
            description = self.write_description(t, tilesets=[])

            with self.assertLogs("generate_map", level="ERROR"):
                self.assertEqual(1, main([description]))

            self.assertFalse(os.path.exists(os.path.join(t, "maps", "level1.tmx")))
