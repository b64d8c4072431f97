import enum
import logging
import os
from struct import error as struct_error
from typing import Optional, NamedTuple, Any

from tmx_generator import records
from tmx_generator.errors import (TMXGeneratorError, MissingDestination, DuplicateTileset, InvalidProviderData,
                                  InvalidMapAttribute, SerializationFailure)
from tmx_generator.helper import AtlasCopier, image_size
from tmx_generator.layers import LayerGridBuilder, ROTATION_PROPERTY
from tmx_generator.objects import ObjectGroupCollector
from tmx_generator.provider import MapDataProvider, Capability, capabilities
from tmx_generator.registry import TilesetRegistry
from tmx_generator.resolver import PropertyResolver
from tmx_generator.tmx import TiledMap, TiledTileset, TiledTileLayer, TiledObjectGroup, ENCODINGS, COMPRESSIONS


logger = logging.getLogger(__name__)

SOURCE_PATH_PROPERTY = "sourcePath"


class Orientation(enum.Enum):
    ORTHOGONAL = "orthogonal"
    ISOMETRIC = "isometric"
    STAGGERED = "staggered"


class BuildStage(enum.Enum):
    IDLE = enum.auto()
    COLLECTING_ATTRIBUTES = enum.auto()
    REGISTERING_TILESETS = enum.auto()
    BUILDING_LAYERS = enum.auto()
    COLLECTING_GROUPS = enum.auto()
    SERIALIZING = enum.auto()
    DONE = enum.auto()
    FAILED = enum.auto()


class GenerationResult(NamedTuple):
    success: bool
    error: Optional[TMXGeneratorError]


class BuildSession:
    """Everything one build collects. A new session is made for every build and dropped after it."""

    def __init__(self, provider: MapDataProvider, copier: Optional[AtlasCopier]) -> None:
        self.provider = provider
        self.copier = copier
        self.stage = BuildStage.IDLE

        self.output_path: Optional[str] = None
        self.tiled_map = TiledMap()
        self.copied_atlases: set[str] = set()
        self.registry = TilesetRegistry(copier, None, self.copied_atlases)
        self.resolver = PropertyResolver(provider, self.registry)
        self.layers: list[TiledTileLayer] = []
        self.object_groups: list[TiledObjectGroup] = []

    def enter(self, stage: BuildStage) -> None:
        logger.debug(f"{self.stage.name} -> {stage.name}")
        self.stage = stage

    @property
    def statistics(self) -> dict[str, int]:
        return {
            "tilesets": len(self.registry),
            "layers": len(self.layers),
            "object_groups": len(self.object_groups),
            "resolved_cells": self.resolver.resolved,
            "fallback_cells": self.resolver.fallbacks,
        }


class TMXGenerator:
    """Builds one TMX map from what the provider supplies and saves it where the provider says.

    This won't build a world for you; it writes out the map it is fed.
    """

    def __init__(self,
                 provider: MapDataProvider,
                 encoding: str = "base64",
                 compression: Optional[str] = "gzip",
                 rotation_mode: str = ROTATION_PROPERTY,
                 copier: Optional[AtlasCopier] = None,
                 backups: int = 0) -> None:
        if encoding not in ENCODINGS:
            raise ValueError(f"Unknown encoding {encoding}")
        if compression not in COMPRESSIONS:
            raise ValueError(f"Unknown compression {compression}")
        if encoding == "csv" and compression is not None:
            raise ValueError("csv encoding cannot be compressed")

        self.provider = provider
        self.encoding = encoding
        self.compression = compression
        self.rotation_mode = rotation_mode
        self.copier = copier if copier is not None else AtlasCopier()
        self.backups = backups

        self.session: Optional[BuildSession] = None

    def generate(self) -> GenerationResult:
        """Generates the map and saves it. Nothing is written at the map's path unless the whole build succeeds."""
        try:
            self.generate_and_save()
        except TMXGeneratorError as e:
            if e.stage is None:
                e.stage = self.session.stage
            self.session.enter(BuildStage.FAILED)
            logger.error(f"Map generation failed: {e}")
            return GenerationResult(False, e)
        return GenerationResult(True, None)

    def generate_and_save(self) -> TiledMap:
        """Same as ``generate`` but raises the TMXGeneratorError the build failed with."""
        session = BuildSession(self.provider, self.copier)
        self.session = session

        session.enter(BuildStage.COLLECTING_ATTRIBUTES)
        self._collect_attributes(session)

        session.enter(BuildStage.REGISTERING_TILESETS)
        self._register_tilesets(session)

        session.enter(BuildStage.BUILDING_LAYERS)
        self._build_layers(session)

        session.enter(BuildStage.COLLECTING_GROUPS)
        self._collect_groups(session)

        session.enter(BuildStage.SERIALIZING)
        self._serialize(session)

        session.enter(BuildStage.DONE)
        logger.debug(f"Map statistics {session.statistics}")
        return session.tiled_map

    def _collect_attributes(self, session: BuildSession) -> None:
        output_path = self.provider.map_file_path()
        if not output_path:
            raise MissingDestination()
        session.output_path = str(output_path)
        session.registry.destination_dir = os.path.dirname(os.path.abspath(session.output_path))

        info = self.provider.map_setup_info() or {}
        tiled_map = session.tiled_map
        try:
            tiled_map.width = records.int_value(info, records.MAP_WIDTH)
            tiled_map.height = records.int_value(info, records.MAP_HEIGHT)
            tiled_map.tilewidth = records.int_value(info, records.MAP_TILE_WIDTH)
            tiled_map.tileheight = records.int_value(info, records.MAP_TILE_HEIGHT)
            orientation = records.str_value(info, records.MAP_ORIENTATION, Orientation.ORTHOGONAL.value)
            source_path = records.str_value(info, records.MAP_PATH, None)
        except InvalidProviderData as e:
            raise InvalidMapAttribute(e.message) from e

        for attribute in ("width", "height", "tilewidth", "tileheight"):
            if getattr(tiled_map, attribute) <= 0:
                raise InvalidMapAttribute(f"Map {attribute} must be positive, not {getattr(tiled_map, attribute)}")

        try:
            tiled_map.orientation = Orientation(orientation.strip().lower()).value
        except ValueError:
            raise InvalidMapAttribute(f"Unknown map orientation '{orientation}'") from None

        if source_path:
            tiled_map.properties[SOURCE_PATH_PROPERTY] = source_path

    def _register_tilesets(self, session: BuildSession) -> None:
        for name in self.provider.tileset_names() or []:
            if name in session.registry:
                raise DuplicateTileset(name)
            session.registry.register(self._load_tileset(session, name), name)

    def _load_tileset(self, session: BuildSession, name: str) -> TiledTileset:
        info = self.provider.tileset_info_for_name(name)
        tiled_map = session.tiled_map

        tileset = TiledTileset(tiled_map)
        tileset.name = records.str_value(info, records.TILESET_NAME, name)
        tileset.tilewidth = records.int_value(info, records.IMAGE_ATLAS_TILE_WIDTH, tiled_map.tilewidth)
        tileset.tileheight = records.int_value(info, records.IMAGE_ATLAS_TILE_HEIGHT, tiled_map.tileheight)
        tileset.spacing = records.int_value(info, records.IMAGE_ATLAS_TILE_SPACING, 0)
        tileset.margin = records.int_value(info, records.IMAGE_ATLAS_TILE_MARGIN, 0)
        if tileset.tilewidth <= 0 or tileset.tileheight <= 0:
            raise InvalidProviderData(f"Tileset '{name}' has invalid tile size {tileset.tilewidth}x{tileset.tileheight}")

        tileset.tiles = self._tile_properties(name, info.get(records.TILE_PROPERTIES))

        tileset.image_source = records.str_value(info, records.TILESET_IMAGE_ATLAS_FILENAME, "")
        tileset.image = os.path.basename(tileset.image_source)
        size = image_size(tileset.image_source) if tileset.image_source else None
        if size is not None:
            tileset.update_image_size(*size)

        tile_count = records.int_value(info, records.IMAGE_ATLAS_TILE_COUNT, None)
        if tile_count is not None:
            tileset.tilecount = tile_count
        elif tileset.tilecount == 0:
            tileset.tilecount = max(tileset.tiles, default=0) + 1
        if tileset.tilecount <= 0:
            raise InvalidProviderData(f"Tileset '{name}' has no tiles")

        if Capability.TILESET_PROPERTIES in capabilities(self.provider):
            properties = self.provider.properties_for_tileset_named(name)
            if properties:
                tileset.properties.update(properties)

        return tileset

    @staticmethod
    def _tile_properties(name: str, tile_properties: Any) -> dict[int, dict[str, Any]]:
        if not tile_properties:
            return {}
        try:
            return {int(local_index): dict(properties) for local_index, properties in tile_properties.items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise InvalidProviderData(f"Tileset '{name}' has malformed tile properties: {e}") from e

    def _build_layers(self, session: BuildSession) -> None:
        builder = LayerGridBuilder(self.provider, session.registry, session.resolver, session.tiled_map, self.rotation_mode)
        for name in self.provider.layer_names() or []:
            layer = builder.build_layer(name)
            layer.encoding = self.encoding
            layer.compression = self.compression
            session.layers.append(layer)

    def _collect_groups(self, session: BuildSession) -> None:
        collector = ObjectGroupCollector(self.provider, session.tiled_map)
        session.object_groups.extend(collector.collect_all())

    def _serialize(self, session: BuildSession) -> None:
        tiled_map = session.tiled_map
        for tileset in session.registry.tilesets:
            tiled_map.add_tileset(tileset)
        for layer in session.layers:
            tiled_map.add_layer(layer)
        for group in session.object_groups:
            tiled_map.add_layer(group)

        try:
            tiled_map.save(session.output_path, self.backups)
        except (OSError, ValueError, TypeError, struct_error) as e:
            raise SerializationFailure(f"Cannot write map to '{session.output_path}': {e}") from e
