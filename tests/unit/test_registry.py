import os
from tempfile import TemporaryDirectory
from unittest import TestCase

import pygame

from tmx_generator.errors import DuplicateTileset, UnknownTileset
from tmx_generator.helper import AtlasCopier
from tmx_generator.registry import TilesetRegistry, GIDRange, MIN_GID
from tmx_generator.tmx import TiledTileset


def make_tileset(name: str, tilecount: int, image_source: str = "") -> TiledTileset:
    tileset = TiledTileset(None)
    tileset.name = name
    tileset.tilewidth = 16
    tileset.tileheight = 16
    tileset.tilecount = tilecount
    tileset.image_source = image_source
    tileset.image = os.path.basename(image_source)
    return tileset


class CountingCopier(AtlasCopier):
    def __init__(self) -> None:
        self.copied: list[str] = []

    def copy(self, image_filename: str, destination_dir: str) -> str:
        self.copied.append(image_filename)
        return super().copy(image_filename, destination_dir)


class TestTilesetRegistry(TestCase):
    def test_ranges_are_contiguous_in_registration_order(self) -> None:
        registry = TilesetRegistry()

        ranges = [registry.register(make_tileset(name, count)) for name, count in (("a", 4), ("b", 1), ("c", 10))]

        self.assertEqual([GIDRange(1, 5), GIDRange(5, 6), GIDRange(6, 16)], ranges)
        self.assertEqual(MIN_GID, ranges[0].start)
        for previous, current in zip(ranges, ranges[1:]):
            self.assertEqual(previous.stop, current.start)
        self.assertEqual([1, 5, 6], [ts.firstgid for ts in registry.tilesets])

    def test_ranges_are_disjoint(self) -> None:
        registry = TilesetRegistry()
        for name, count in (("a", 3), ("b", 7), ("c", 2), ("d", 5)):
            registry.register(make_tileset(name, count))

        ranges = list(registry.gid_ranges.values())
        for i, first in enumerate(ranges):
            for second in ranges[i + 1:]:
                self.assertFalse(set(range(*first)) & set(range(*second)))

    def test_global_id(self) -> None:
        registry = TilesetRegistry()
        registry.register(make_tileset("a", 4))
        registry.register(make_tileset("b", 4))

        self.assertEqual(1, registry.global_id("a", 0))
        self.assertEqual(4, registry.global_id("a", 3))
        self.assertEqual(5, registry.global_id("b", 0))
        self.assertEqual(7, registry.global_id("b", 2))

    def test_global_id_outside_tileset(self) -> None:
        registry = TilesetRegistry()
        registry.register(make_tileset("a", 4))

        with self.assertRaises(ValueError):
            registry.global_id("a", 4)
        with self.assertRaises(ValueError):
            registry.global_id("a", -1)

    def test_unknown_tileset(self) -> None:
        registry = TilesetRegistry()
        registry.register(make_tileset("a", 4))

        with self.assertRaises(UnknownTileset) as context:
            registry.global_id("b", 0)
        self.assertEqual("b", context.exception.tileset_name)
        with self.assertRaises(UnknownTileset):
            registry.tileset("b")

    def test_duplicate_tileset(self) -> None:
        registry = TilesetRegistry()
        registry.register(make_tileset("a", 4))

        with self.assertRaises(DuplicateTileset):
            registry.register(make_tileset("a", 2))
        self.assertEqual(1, len(registry))

    def test_registered_under_given_name(self) -> None:
        registry = TilesetRegistry()
        tileset = make_tileset("Ground Tiles", 4)

        registry.register(tileset, "ground")

        self.assertIn("ground", registry)
        self.assertNotIn("Ground Tiles", registry)
        self.assertIs(tileset, registry.tileset("ground"))

    def test_tileset_for_gid(self) -> None:
        registry = TilesetRegistry()
        a = make_tileset("a", 2)
        b = make_tileset("b", 2)
        registry.register(a)
        registry.register(b)

        self.assertIsNone(registry.tileset_for_gid(0))
        self.assertIs(a, registry.tileset_for_gid(2))
        self.assertIs(b, registry.tileset_for_gid(3))
        self.assertIsNone(registry.tileset_for_gid(5))

    def test_atlas_copied_once_per_build(self) -> None:
        with TemporaryDirectory() as source_dir, TemporaryDirectory() as destination_dir:
            image = os.path.join(source_dir, "atlas.png")
            pygame.image.save(pygame.Surface((32, 32)), image)
            copier = CountingCopier()
            registry = TilesetRegistry(copier, destination_dir)

            registry.register(make_tileset("a", 4, image))
            registry.register(make_tileset("b", 4, image))

            self.assertEqual([image], copier.copied)
            self.assertEqual({"atlas.png"}, registry.copied_atlases)
            self.assertTrue(os.path.exists(os.path.join(destination_dir, "atlas.png")))

    def test_missing_atlas_is_not_copied(self) -> None:
        with TemporaryDirectory() as destination_dir:
            registry = TilesetRegistry(AtlasCopier(), destination_dir)

            with self.assertLogs("tmx_generator.helper", level="WARNING"):
                registry.register(make_tileset("a", 4, os.path.join(destination_dir, "missing", "atlas.png")))

            self.assertEqual([], os.listdir(destination_dir))
