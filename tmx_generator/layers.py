import logging
from typing import Any, Mapping, NamedTuple, Optional

from tmx_generator import records
from tmx_generator.errors import LayerBoundsError, UnboundTileset, InvalidProviderData
from tmx_generator.provider import MapDataProvider
from tmx_generator.registry import TilesetRegistry
from tmx_generator.resolver import PropertyResolver
from tmx_generator.tmx import TiledMap, TiledTileLayer, TileFlags, encode_rotations


logger = logging.getLogger(__name__)

ROTATION_PROPERTY = "property"
ROTATION_FLAGS = "flags"
ROTATION_MODES = (ROTATION_PROPERTY, ROTATION_FLAGS)


class LayerGrid(NamedTuple):
    width: int
    height: int
    tile_ids: list[int]
    rotations: list[int]

    @property
    def has_rotation(self) -> bool:
        return any(r != 0 for r in self.rotations)


class LayerGridBuilder:
    def __init__(self,
                 provider: MapDataProvider,
                 registry: TilesetRegistry,
                 resolver: PropertyResolver,
                 tiled_map: Optional[TiledMap] = None,
                 rotation_mode: str = ROTATION_PROPERTY) -> None:
        if rotation_mode not in ROTATION_MODES:
            raise ValueError(f"Unknown rotation mode {rotation_mode}")
        self.provider = provider
        self.registry = registry
        self.resolver = resolver
        self.map = tiled_map
        self.rotation_mode = rotation_mode

    def _layer_size(self, layer_name: str, info: Mapping[str, Any]) -> tuple[int, int]:
        default_width = self.map.width if self.map is not None else None
        default_height = self.map.height if self.map is not None else None
        width = records.int_value(info, records.LAYER_WIDTH, default_width)
        height = records.int_value(info, records.LAYER_HEIGHT, default_height)

        if width is None or height is None:
            raise InvalidProviderData(f"Layer '{layer_name}' has no size")
        if width <= 0 or height <= 0:
            raise LayerBoundsError(layer_name, width, height, "width and height must be positive")
        if self.map is not None and (width > self.map.width or height > self.map.height):
            raise LayerBoundsError(layer_name, width, height, f"larger than the map {self.map.width}x{self.map.height}")
        return width, height

    def build_grid(self, layer_name: str, tileset_name: str, width: int, height: int) -> LayerGrid:
        if width <= 0 or height <= 0:
            raise LayerBoundsError(layer_name, width, height, "width and height must be positive")
        if tileset_name not in self.registry:
            raise UnboundTileset(layer_name, tileset_name)

        tile_ids = [0] * (width * height)
        rotations = [0] * (width * height)
        for y in range(height):
            for x in range(width):
                local_index = self.resolver.resolve(layer_name, tileset_name, x, y)
                tile_ids[y * width + x] = self.registry.global_id(tileset_name, local_index)
                rotations[y * width + x] = self.resolver.rotation(layer_name, x, y)

        return LayerGrid(width, height, tile_ids, rotations)

    def build(self, layer_name: str) -> LayerGrid:
        info = self.provider.layer_info_for_name(layer_name)
        width, height = self._layer_size(layer_name, info)
        return self.build_grid(layer_name, self.provider.tileset_name_for_layer(layer_name), width, height)

    def build_layer(self, layer_name: str) -> TiledTileLayer:
        info = self.provider.layer_info_for_name(layer_name)
        width, height = self._layer_size(layer_name, info)
        tileset_name = self.provider.tileset_name_for_layer(layer_name)

        grid = self.build_grid(layer_name, tileset_name, width, height)

        layer = TiledTileLayer(self.map)
        layer.name = records.str_value(info, records.LAYER_NAME, layer_name)
        layer.width = width
        layer.height = height
        layer.visible = records.bool_value(info, records.LAYER_IS_VISIBLE, True)
        layer.data = grid.tile_ids
        layer.rotations = grid.rotations

        if grid.has_rotation:
            if self.rotation_mode == ROTATION_FLAGS:
                layer.data = [self._rotated_gid(layer_name, gid, rotation) for gid, rotation in zip(grid.tile_ids, grid.rotations)]
            else:
                layer.properties[records.LAYER_ROTATION_DATA] = encode_rotations(grid.rotations)

        logger.debug(f"Built layer '{layer.name}' {width}x{height} from tileset '{tileset_name}'")
        return layer

    @staticmethod
    def _rotated_gid(layer_name: str, gid: int, rotation: int) -> int:
        if gid == 0 or rotation == 0:
            return gid
        try:
            return TileFlags.from_rotation(rotation).to_gid(gid)
        except ValueError as e:
            raise InvalidProviderData(f"Layer '{layer_name}': {e}") from e
