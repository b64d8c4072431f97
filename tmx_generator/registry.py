import logging
import os
from typing import Optional, NamedTuple

from tmx_generator.errors import DuplicateTileset, UnknownTileset, SerializationFailure
from tmx_generator.helper import AtlasCopier
from tmx_generator.tmx import TiledTileset


logger = logging.getLogger(__name__)

# GID 0 means "no tile"
MIN_GID = 1


class GIDRange(NamedTuple):
    start: int
    stop: int

    @property
    def tile_count(self) -> int:
        return self.stop - self.start

    def contains(self, gid: int) -> bool:
        return self.start <= gid < self.stop


class TilesetRegistry:
    """Tilesets of one build, in registration order, each owning a contiguous range of GIDs."""

    def __init__(self,
                 copier: Optional[AtlasCopier] = None,
                 destination_dir: Optional[str] = None,
                 copied_atlases: Optional[set[str]] = None) -> None:
        self.copier = copier
        self.destination_dir = destination_dir
        self.copied_atlases: set[str] = copied_atlases if copied_atlases is not None else set()

        self.tilesets: list[TiledTileset] = []
        self.gid_ranges: dict[str, GIDRange] = {}
        self.tilesets_by_name: dict[str, TiledTileset] = {}
        self._next_gid = MIN_GID

    def __contains__(self, tileset_name: str) -> bool:
        return tileset_name in self.gid_ranges

    def __len__(self) -> int:
        return len(self.tilesets)

    def register(self, tileset: TiledTileset, name: Optional[str] = None) -> GIDRange:
        """Gives the tileset the next free GIDs. ``name`` is what layers call the tileset, by default its own name."""
        name = name if name is not None else tileset.name
        if name in self.gid_ranges:
            raise DuplicateTileset(name)

        self._copy_atlas(tileset)

        gid_range = GIDRange(self._next_gid, self._next_gid + tileset.tilecount)
        tileset.firstgid = gid_range.start
        self._next_gid = gid_range.stop

        self.tilesets.append(tileset)
        self.gid_ranges[name] = gid_range
        self.tilesets_by_name[name] = tileset
        logger.debug(f"Registered tileset '{name}' with GIDs {gid_range.start}..{gid_range.stop - 1}")
        return gid_range

    def gid_range(self, tileset_name: str) -> GIDRange:
        try:
            return self.gid_ranges[tileset_name]
        except KeyError:
            raise UnknownTileset(tileset_name) from None

    def tileset(self, tileset_name: str) -> TiledTileset:
        try:
            return self.tilesets_by_name[tileset_name]
        except KeyError:
            raise UnknownTileset(tileset_name) from None

    def global_id(self, tileset_name: str, local_index: int) -> int:
        gid_range = self.gid_range(tileset_name)
        gid = gid_range.start + local_index
        if not gid_range.contains(gid):
            raise ValueError(f"Tile {local_index} is outside of tileset '{tileset_name}' with {gid_range.tile_count} tiles")
        return gid

    def tileset_for_gid(self, gid: int) -> Optional[TiledTileset]:
        for name, gid_range in self.gid_ranges.items():
            if gid_range.contains(gid):
                return self.tilesets_by_name[name]
        return None

    def _copy_atlas(self, tileset: TiledTileset) -> None:
        if self.copier is None or self.destination_dir is None or not tileset.image_source:
            return

        name = os.path.basename(tileset.image_source)
        if name in self.copied_atlases:
            logger.debug(f"Image atlas '{name}' already copied in this build")
            return

        try:
            tileset.image = self.copier.copy(tileset.image_source, self.destination_dir)
        except OSError as e:
            raise SerializationFailure(f"Cannot copy image atlas '{tileset.image_source}' to '{self.destination_dir}': {e}") from e
        self.copied_atlases.add(name)
