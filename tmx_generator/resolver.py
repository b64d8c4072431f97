import logging
from typing import Optional

from tmx_generator.errors import InvalidProviderData
from tmx_generator.provider import MapDataProvider, Capability, capabilities
from tmx_generator.registry import TilesetRegistry


logger = logging.getLogger(__name__)

# Local index of the tile used when a cell's value matches no tile
FALLBACK_LOCAL_INDEX = 0

ROTATION_MIN = -(1 << 31)
ROTATION_MAX = (1 << 31) - 1


class PropertyResolver:
    """Finds which tile of a tileset a layer cell shows.

    The provider gives each layer a key (say ``"name"``) and each cell a value for that key (say ``"grass"``).
    The cell gets the tile whose properties hold that value under that key. Cells whose value no tile
    holds get the first tile of the tileset and a warning is logged.
    """

    def __init__(self, provider: MapDataProvider, registry: TilesetRegistry) -> None:
        self.provider = provider
        self.registry = registry
        self.capabilities = capabilities(provider)

        self.resolved = 0
        self.fallbacks = 0

        self._keys: dict[str, str] = {}
        self._lookups: dict[tuple[str, str], dict[str, int]] = {}
        self._reported_fallbacks: set[tuple[str, Optional[str]]] = set()

    def identification_key(self, layer_name: str) -> str:
        if layer_name not in self._keys:
            self._keys[layer_name] = self.provider.tile_identification_key_for_layer(layer_name)
        return self._keys[layer_name]

    def lookup_table(self, tileset_name: str, key: str) -> dict[str, int]:
        """Value of ``key`` -> local index of the first tile holding it, for tiles of the tileset."""
        lookup_key = (tileset_name, key)
        if lookup_key not in self._lookups:
            tileset = self.registry.tileset(tileset_name)
            table: dict[str, int] = {}
            for local_index in sorted(tileset.tiles):
                properties = tileset.tiles[local_index]
                if key in properties and 0 <= local_index < tileset.tilecount:
                    table.setdefault(str(properties[key]), local_index)
            self._lookups[lookup_key] = table
        return self._lookups[lookup_key]

    def resolve(self, layer_name: str, tileset_name: str, x: int, y: int) -> int:
        key = self.identification_key(layer_name)
        table = self.lookup_table(tileset_name, key)

        value = self.provider.tile_property_for_layer(layer_name, tileset_name, x, y)
        local_index = table.get(str(value)) if value is not None else None
        if local_index is None:
            self.fallbacks += 1
            if (layer_name, value) not in self._reported_fallbacks:
                self._reported_fallbacks.add((layer_name, value))
                logger.warning(f"Layer '{layer_name}': no tile in '{tileset_name}' has {key}={value!r} (first at {x},{y}); using its first tile")
            return FALLBACK_LOCAL_INDEX

        self.resolved += 1
        return local_index

    def rotation(self, layer_name: str, x: int, y: int) -> int:
        if Capability.TILE_ROTATION not in self.capabilities:
            return 0
        rotation = self.provider.tile_rotation_for_layer(layer_name, x, y)
        if rotation is None:
            return 0
        try:
            rotation = int(rotation)
        except (TypeError, ValueError) as e:
            raise InvalidProviderData(f"Layer '{layer_name}': rotation {rotation!r} at {x},{y} is not a number") from e
        # rotationData stores each cell as a signed 32 bit int
        if not ROTATION_MIN <= rotation <= ROTATION_MAX:
            raise InvalidProviderData(f"Layer '{layer_name}': rotation {rotation} at {x},{y} is out of range")
        return rotation
