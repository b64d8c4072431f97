from unittest import TestCase

from tmx_generator import records
from tmx_generator.errors import InvalidProviderData


class TestRecords(TestCase):
    def test_tileset_with_image(self) -> None:
        self.assertEqual({
            records.TILESET_IMAGE_ATLAS_FILENAME: "ground.png",
            records.TILESET_NAME: "ground",
            records.IMAGE_ATLAS_TILE_WIDTH: 16,
            records.IMAGE_ATLAS_TILE_HEIGHT: 8,
            records.IMAGE_ATLAS_TILE_SPACING: 1,
        }, records.tileset_with_image("ground.png", "ground", 16, 8, 1))

    def test_layer_named(self) -> None:
        self.assertEqual({
            records.LAYER_NAME: "base",
            records.LAYER_WIDTH: 4,
            records.LAYER_HEIGHT: 3,
            records.LAYER_DATA: b"\x00",
            records.LAYER_IS_VISIBLE: False,
        }, records.layer_named("base", 4, 3, b"\x00", False))

    def test_make_object(self) -> None:
        properties = {"facing": "north"}

        obj = records.make_object("start", "spawn", 1, 2, 3, 4, properties)

        self.assertEqual(("start", "spawn", 1, 2, 3, 4), tuple(obj[k] for k in (
            records.GROUP_OBJECT_NAME, records.GROUP_OBJECT_TYPE, records.GROUP_OBJECT_X,
            records.GROUP_OBJECT_Y, records.GROUP_OBJECT_WIDTH, records.GROUP_OBJECT_HEIGHT)))
        self.assertEqual(properties, obj[records.GROUP_OBJECT_PROPERTIES])
        self.assertIsNot(properties, obj[records.GROUP_OBJECT_PROPERTIES])
        self.assertNotIn(records.GROUP_OBJECT_PROPERTIES, records.make_object("start", "spawn", 1, 2, 3, 4, None))

    def test_int_value(self) -> None:
        self.assertEqual(16, records.int_value({"w": 16}, "w"))
        self.assertEqual(16, records.int_value({"w": " 16 "}, "w"))
        self.assertEqual(7, records.int_value({}, "w", 7))
        self.assertIsNone(records.int_value({"w": None}, "w", None))
        with self.assertRaises(InvalidProviderData):
            records.int_value({}, "w")
        with self.assertRaises(InvalidProviderData):
            records.int_value({"w": "wide"}, "w")
        with self.assertRaises(InvalidProviderData):
            records.int_value({"w": 10.5}, "w")
        self.assertEqual(4, records.int_value({"w": 4.0}, "w"))

    def test_bool_value(self) -> None:
        for value, expected in ((True, True), ("YES", True), ("1", True), (0, False), ("false", False), ("", False)):
            with self.subTest(value=value):
                self.assertEqual(expected, records.bool_value({"v": value}, "v"))
        with self.assertRaises(InvalidProviderData):
            records.bool_value({"v": "maybe"}, "v")
