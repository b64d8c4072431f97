from typing import Any, Optional, Mapping, Callable

from tmx_generator.errors import InvalidProviderData


# Map setup info keys

MAP_WIDTH = "mapWidth"
MAP_HEIGHT = "mapHeight"
MAP_TILE_WIDTH = "mapTileWidth"
MAP_TILE_HEIGHT = "mapTileHeight"
MAP_ORIENTATION = "mapOrientation"
MAP_PATH = "mapPath"

# Tileset setup info keys

IMAGE_ATLAS_TILE_WIDTH = "imageAtlasTileWidth"
IMAGE_ATLAS_TILE_HEIGHT = "imageAtlasTileHeight"
IMAGE_ATLAS_TILE_SPACING = "imageAtlasTileSpacing"
IMAGE_ATLAS_TILE_MARGIN = "imageAtlasTileMargin"
IMAGE_ATLAS_TILE_COUNT = "imageAtlasTileCount"
TILE_PROPERTIES = "tileProperties"
TILESET_NAME = "tileSetName"
TILESET_IMAGE_ATLAS_FILENAME = "imageAtlasFilename"

# Layer setup info keys

LAYER_NAME = "layerName"
LAYER_WIDTH = "layerWidth"
LAYER_HEIGHT = "layerHeight"
LAYER_DATA = "layerData"
LAYER_ROTATION_DATA = "rotationData"
LAYER_IS_VISIBLE = "visible"

# Object group setup info keys

OBJECT_GROUP_NAME = "objectGroupName"
OBJECT_GROUP_WIDTH = "objectGroupWidth"
OBJECT_GROUP_HEIGHT = "objectGroupHeight"
OBJECT_GROUP_PROPERTIES = "objectGroupProperties"

# Single object setup info keys

GROUP_OBJECT_NAME = "groupObjectName"
GROUP_OBJECT_TYPE = "groupObjectType"
GROUP_OBJECT_X = "groupObjectX"
GROUP_OBJECT_Y = "groupObjectY"
GROUP_OBJECT_WIDTH = "groupObjectWidth"
GROUP_OBJECT_HEIGHT = "groupObjectHeight"
GROUP_OBJECT_PROPERTIES = "groupObjectProperties"


_MISSING = object()


def tileset_with_image(image_name: str, name: str, width: int, height: int, spacing: int) -> dict[str, Any]:
    """Tileset setup info for an image atlas of ``width`` x ``height`` pixel tiles, ``spacing`` pixels apart."""
    return {
        TILESET_IMAGE_ATLAS_FILENAME: image_name,
        TILESET_NAME: name,
        IMAGE_ATLAS_TILE_WIDTH: width,
        IMAGE_ATLAS_TILE_HEIGHT: height,
        IMAGE_ATLAS_TILE_SPACING: spacing,
    }


def layer_named(name: str, width: int, height: int, data: Optional[bytes], visible: bool) -> dict[str, Any]:
    """Layer setup info with size in tiles. ``data`` is passed through for the provider's own use."""
    return {
        LAYER_NAME: name,
        LAYER_WIDTH: width,
        LAYER_HEIGHT: height,
        LAYER_DATA: data,
        LAYER_IS_VISIBLE: visible,
    }


def make_object(name: str, type_: str, x: int, y: int, width: int, height: int, properties: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    obj = {
        GROUP_OBJECT_NAME: name,
        GROUP_OBJECT_TYPE: type_,
        GROUP_OBJECT_X: x,
        GROUP_OBJECT_Y: y,
        GROUP_OBJECT_WIDTH: width,
        GROUP_OBJECT_HEIGHT: height,
    }
    if properties is not None:
        obj[GROUP_OBJECT_PROPERTIES] = dict(properties)
    return obj


def convert_to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    value = str(value).strip()
    if value:
        value = value.lower()
        if value in ("1", "y", "yes", "t", "true"):
            return True
        if value in ("0", "n", "no", "f", "false"):
            return False
    else:
        return False
    raise ValueError(f"cannot parse {value} as bool")


def _value(info: Mapping[str, Any], key: str, cls: Callable[[Any], Any], default: Any) -> Any:
    value = info.get(key, None) if info is not None else None
    if value is None:
        if default is _MISSING:
            raise InvalidProviderData(f"Missing '{key}'")
        return default
    try:
        return cls(value)
    except (TypeError, ValueError) as e:
        raise InvalidProviderData(f"Cannot read '{key}' from {value!r}: {e}") from e


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value.strip())
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{value} is not a whole number")
    return int(value)


def int_value(info: Mapping[str, Any], key: str, default: Any = _MISSING) -> int:
    """Numbers may come as ints or as strings; '16' and 16 both read as 16. Fractions are rejected."""
    return _value(info, key, _to_int, default)


def bool_value(info: Mapping[str, Any], key: str, default: Any = _MISSING) -> bool:
    return _value(info, key, convert_to_bool, default)


def str_value(info: Mapping[str, Any], key: str, default: Any = _MISSING) -> str:
    return _value(info, key, str, default)
