import enum
import os
from abc import ABC, abstractmethod
from typing import Any, Optional, Mapping

from tmx_generator import records


class Capability(enum.Enum):
    TILESET_PROPERTIES = "properties_for_tileset_named"
    OBJECT_PROPERTIES = "properties_for_object"
    TILE_ROTATION = "tile_rotation_for_layer"


def capabilities(provider: 'MapDataProvider') -> frozenset[Capability]:
    """Optional queries the provider answers. A capability is present when the provider has the method."""
    return frozenset(c for c in Capability if callable(getattr(provider, c.value, None)))


class MapDataProvider(ABC):
    """Supplies everything a map build needs.

    Optional queries are not declared here. A provider supports them by defining any of:

    * ``properties_for_tileset_named(name) -> Optional[dict]``
    * ``properties_for_object(name, group_name) -> Optional[dict]``
    * ``tile_rotation_for_layer(layer_name, x, y) -> int``
    """

    @abstractmethod
    def map_file_path(self) -> Optional[str]:
        pass

    @abstractmethod
    def map_setup_info(self) -> Mapping[str, Any]:
        pass

    @abstractmethod
    def tileset_info_for_name(self, name: str) -> Mapping[str, Any]:
        pass

    @abstractmethod
    def layer_info_for_name(self, name: str) -> Mapping[str, Any]:
        pass

    @abstractmethod
    def object_group_names(self) -> Optional[list[str]]:
        pass

    @abstractmethod
    def objects_group_info_for_name(self, name: str) -> list[Mapping[str, Any]]:
        pass

    @abstractmethod
    def layer_names(self) -> list[str]:
        """Order of names determines the stacking order of layers."""

    @abstractmethod
    def tileset_names(self) -> list[str]:
        pass

    @abstractmethod
    def tileset_name_for_layer(self, layer_name: str) -> str:
        pass

    @abstractmethod
    def tile_property_for_layer(self, layer_name: str, tileset_name: str, x: int, y: int) -> Optional[str]:
        """Value of the layer's identification key for the tile at x, y."""

    @abstractmethod
    def tile_identification_key_for_layer(self, layer_name: str) -> str:
        pass


class DictMapDataProvider(MapDataProvider):
    """Provider backed by a plain description, as loaded from a JSON file.

    The description looks like::

        {
            "output": "level1.tmx",
            "map": {"mapWidth": 2, "mapHeight": 2, "mapTileWidth": 16, "mapTileHeight": 16, "mapOrientation": "orthogonal"},
            "tilesets": [{"tileSetName": "ground", "imageAtlasFilename": "ground.png", ...,
                          "tileProperties": {"0": {"name": "grass"}}, "properties": {...}}],
            "layers": [{"layerName": "base", "tileset": "ground", "key": "name",
                        "cells": [["grass", "dirt"], ["grass", "water"]], "rotations": [[0, 90], [0, 0]]}],
            "objectGroups": [{"objectGroupName": "spawns", "objects": [{"groupObjectName": "start", ...}]}]
        }

    Relative image and output paths are taken relative to ``base_dir``.
    """

    def __init__(self, description: Mapping[str, Any], base_dir: Optional[str] = None) -> None:
        self.description = description
        self.base_dir = base_dir

        self.tilesets: dict[str, Mapping[str, Any]] = {ts[records.TILESET_NAME]: ts for ts in description.get("tilesets", [])}
        self.layers: dict[str, Mapping[str, Any]] = {layer[records.LAYER_NAME]: layer for layer in description.get("layers", [])}
        self.object_groups: dict[str, Mapping[str, Any]] = {group[records.OBJECT_GROUP_NAME]: group for group in description.get("objectGroups", [])}

    def _path(self, path: Optional[str]) -> Optional[str]:
        if path is None or self.base_dir is None or os.path.isabs(path):
            return path
        return os.path.join(self.base_dir, path)

    def map_file_path(self) -> Optional[str]:
        return self._path(self.description.get("output"))

    def map_setup_info(self) -> Mapping[str, Any]:
        return self.description.get("map", {})

    def tileset_info_for_name(self, name: str) -> Mapping[str, Any]:
        info = {k: v for k, v in self.tilesets[name].items() if k != "properties"}
        info[records.TILESET_IMAGE_ATLAS_FILENAME] = self._path(info.get(records.TILESET_IMAGE_ATLAS_FILENAME))
        return info

    def properties_for_tileset_named(self, name: str) -> Optional[dict[str, Any]]:
        return self.tilesets[name].get("properties")

    def layer_info_for_name(self, name: str) -> Mapping[str, Any]:
        return {k: v for k, v in self.layers[name].items() if k not in ("tileset", "key", "cells", "rotations")}

    def object_group_names(self) -> Optional[list[str]]:
        return list(self.object_groups) if self.object_groups else None

    def objects_group_info_for_name(self, name: str) -> list[Mapping[str, Any]]:
        group = self.object_groups[name]
        group_info = {k: v for k, v in group.items() if k != "objects"}
        return [group_info] + list(group.get("objects", []))

    def layer_names(self) -> list[str]:
        return list(self.layers)

    def tileset_names(self) -> list[str]:
        return [ts[records.TILESET_NAME] for ts in self.description.get("tilesets", [])]

    def tileset_name_for_layer(self, layer_name: str) -> str:
        return self.layers[layer_name]["tileset"]

    def tile_property_for_layer(self, layer_name: str, tileset_name: str, x: int, y: int) -> Optional[str]:
        cells = self.layers[layer_name].get("cells", [])
        if y < len(cells) and x < len(cells[y]):
            value = cells[y][x]
            return str(value) if value is not None else None
        return None

    def tile_identification_key_for_layer(self, layer_name: str) -> str:
        return self.layers[layer_name].get("key", "name")

    def tile_rotation_for_layer(self, layer_name: str, x: int, y: int) -> int:
        rotations = self.layers[layer_name].get("rotations")
        if rotations is not None and y < len(rotations) and x < len(rotations[y]):
            return rotations[y][x]
        return 0
