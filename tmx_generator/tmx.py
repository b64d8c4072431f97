import gzip
import io
import logging
import os
import struct
import zlib
from abc import ABC, abstractmethod
from base64 import b64encode
from typing import Any, Optional, Callable, NamedTuple, Iterable, cast

from pygame import Rect

from tmx_generator.helper import backup_file, write_atomically


logger = logging.getLogger(__name__)

GID_TRANS_FLIP_HORIZONTALLY = 1 << 31
GID_TRANS_FLIP_VERTICALLY = 1 << 30
GID_TRANS_ROTATE = 1 << 29
GID_MASK = GID_TRANS_FLIP_HORIZONTALLY | GID_TRANS_FLIP_VERTICALLY | GID_TRANS_ROTATE

TMX_VERSION = "1.0"

ENCODINGS = ("base64", "csv")
COMPRESSIONS = (None, "gzip", "zlib")

OUTPUT_ALWAYS = b"this is random value that will never appear in the value of attributes"


def escape(data: str) -> str:
    data = data.replace("&", "&amp;")
    data = data.replace(">", "&gt;")
    data = data.replace("<", "&lt;")
    data = data.replace("\"", "&quot;")
    return data


class F:
    def __init__(self, typ: type, visible: bool, default: Any = OUTPUT_ALWAYS, adjust: Callable[['TiledElement', Any], Any] = lambda x, y: y) -> None:
        self.type = typ
        self.visible = visible
        self.default = default
        self.adjust = adjust


class TileFlags(NamedTuple):
    flipped_horizontally: bool
    flipped_vertically: bool
    flipped_diagonally: bool

    def to_gid(self, gid: int) -> int:
        return (gid
                | (GID_TRANS_FLIP_HORIZONTALLY if self.flipped_horizontally else 0)
                | (GID_TRANS_FLIP_VERTICALLY if self.flipped_vertically else 0)
                | (GID_TRANS_ROTATE if self.flipped_diagonally else 0))

    @classmethod
    def from_rotation(cls, rotation: int) -> 'TileFlags':
        """Flags that turn a tile clockwise by ``rotation`` degrees, a multiple of 90."""
        if rotation % 90 != 0:
            raise ValueError(f"Rotation {rotation} is not a multiple of 90 degrees")
        return ROTATION_TILE_FLAGS[rotation % 360]


NO_TRANSFORM_TILE_FLAGS = TileFlags(False, False, False)

ROTATION_TILE_FLAGS = {
    0: NO_TRANSFORM_TILE_FLAGS,
    90: TileFlags(flipped_horizontally=True, flipped_vertically=False, flipped_diagonally=True),
    180: TileFlags(flipped_horizontally=True, flipped_vertically=True, flipped_diagonally=False),
    270: TileFlags(flipped_horizontally=False, flipped_vertically=True, flipped_diagonally=True),
}


def encode_data(values: list[int], encoding: str = "base64", compression: Optional[str] = None, columns: int = 0) -> str:
    """Encodes tile ids as the text of a TMX ``<data>`` element.

    gzip output has its timestamp fixed at zero so the same data always encodes to the same text.
    """
    if encoding == "csv":
        if compression is not None:
            raise ValueError("csv encoding cannot be compressed")
        columns = columns if columns > 0 else max(len(values), 1)
        rows = [",".join(str(v) for v in values[i: i + columns]) for i in range(0, len(values), columns)]
        return ",\n".join(rows)
    elif encoding == "base64":
        data = struct.pack("<%dL" % len(values), *values)
        if compression == "gzip":
            s = b64encode(gzip.compress(data, mtime=0))
        elif compression == "zlib":
            s = b64encode(zlib.compress(data))
        elif compression is None:
            s = b64encode(data)
        else:
            raise ValueError(f"Unknown compression {compression}")
        return s.decode("ASCII")
    raise ValueError(f"Unknown encoding for data {encoding}")


def encode_rotations(rotations: list[int]) -> str:
    return b64encode(struct.pack("<%dl" % len(rotations), *rotations)).decode("ASCII")


class TiledElement(ABC):
    ATTRIBUTES = {}

    def __init__(self, parent: Optional['TiledElement'] = None) -> None:
        self.parent = parent
        self.properties: dict[str, Any] = {}

    def _save(self, stream, indent: int) -> None:
        tag = self._tag_name()
        self._create_tag(stream, indent, tag)
        close_tag = self._xml_properties(stream, indent + 1, True)

        close_tag = self._sub_xml(stream, indent + 1, close_tag)
        if close_tag:
            stream.write("/>\n")
        else:
            stream.write(" " * indent)
            stream.write(f"</{tag}>\n")

    def _create_tag(self, stream, indent: int, tag: str) -> None:
        attrs = self._collect_xml_attributes()
        stream.write(" " * indent)
        stream.write(f"<{tag}")
        if len(attrs) > 0:
            stream.write(" ")
            stream.write(" ".join(f"{k}=\"{escape(v)}\"" for k, v in attrs.items()))

    def _get_xml_properties(self) -> dict:
        return {k: v for k, v in self.properties.items() if not k.startswith("__")}

    def _xml_properties(self, stream, indent: int, close_tag: bool) -> bool:
        return self._write_xml_properties(stream, indent, close_tag, self._get_xml_properties())

    def _write_xml_properties(self, stream, indent: int, close_tag: bool, filtered_properties: dict) -> bool:
        if len(filtered_properties) > 0:
            close_tag = self._close_tag(stream, close_tag)

            stream.write(" " * indent)
            stream.write("<properties>\n")
            for k, v in filtered_properties.items():
                k = escape(str(k))
                stream.write(" " * (indent + 1))
                if isinstance(v, str):
                    if "\n" in v:
                        stream.write(f"<property name=\"{k}\">")
                        stream.write(escape(v))
                        stream.write(f"</property>\n")
                    else:
                        stream.write(f"<property name=\"{k}\" value=\"{escape(v)}\"/>\n")
                elif isinstance(v, bool):
                    stream.write(f"<property name=\"{k}\" type=\"bool\" value=\"{str(v).lower()}\"/>\n")
                elif isinstance(v, int):
                    stream.write(f"<property name=\"{k}\" type=\"int\" value=\"{v}\"/>\n")
                elif isinstance(v, float):
                    stream.write(f"<property name=\"{k}\" type=\"float\" value=\"{v}\"/>\n")
                else:
                    stream.write(f"<property name=\"{k}\" value=\"{escape(str(v))}\"/>\n")

            stream.write(" " * indent)
            stream.write("</properties>\n")
        return close_tag

    @abstractmethod
    def _tag_name(self) -> str:
        pass

    @staticmethod
    def _close_tag(stream, close_tag: bool) -> bool:
        if close_tag:
            stream.write(">\n")
        return False

    def _sub_xml(self, stream, indent: int, close_tag: bool) -> bool:
        return close_tag

    def _collect_xml_attributes(self) -> dict[str, str]:
        attrs = {}
        for k, f in type(self).ATTRIBUTES.items():
            v = getattr(self, k)
            v = f.adjust(self, v)

            if v != f.default:
                if f.type == int:
                    v = str(int(v)) if v is not None else None
                elif f.type == bool:
                    v = ("1" if v else "0") if v is not None else None
                else:
                    v = str(v) if v is not None else None
                if v is None or (k == "name" and v == ""):
                    # Tiled itself leaves out empty names
                    pass
                else:
                    attrs[k] = v
        return attrs


class TiledSubElement(TiledElement, ABC):
    def __init__(self, parent: Optional[TiledElement] = None) -> None:
        super().__init__(parent)

        tiled_map = parent
        while tiled_map is not None and not isinstance(tiled_map, TiledMap):
            tiled_map = tiled_map.parent

        self.map: Optional[TiledMap] = tiled_map


class BaseTiledLayer(TiledSubElement, ABC):
    ATTRIBUTES = TiledElement.ATTRIBUTES | {
        "id": F(int, False, 0), "name": F(str, True),
    }

    def __init__(self, parent: Optional[TiledElement]) -> None:
        super().__init__(parent)
        self.id: int = 0
        self.name: str = ""
        self.visible: bool = True


class TiledTileLayer(BaseTiledLayer):
    ATTRIBUTES = BaseTiledLayer.ATTRIBUTES | {
        "width": F(int, True), "height": F(int, True),
        "visible": F(bool, True, True)
    }

    def __init__(self, parent: Optional[TiledElement]) -> None:
        super().__init__(parent)
        self.width: int = int(self.map.width) if self.map is not None else 0
        self.height: int = int(self.map.height) if self.map is not None else 0

        self.data: list[int] = [0] * (self.width * self.height)
        self.rotations: list[int] = [0] * (self.width * self.height)
        self.encoding: str = "base64"
        self.compression: Optional[str] = "gzip"

    def _sub_xml(self, stream, indent: int, close_tag: bool) -> bool:
        close_tag = self._close_tag(stream, close_tag)

        stream.write(" " * indent)
        stream.write(f"<data encoding=\"{self.encoding}\"")
        if self.compression is not None:
            stream.write(f" compression=\"{self.compression}\"")
        stream.write(">\n")

        encoded = encode_data(self.data, self.encoding, self.compression, self.width)
        for line in encoded.split("\n"):
            stream.write(" " * (indent + 1))
            stream.write(line)
            stream.write("\n")

        stream.write(" " * indent)
        stream.write("</data>\n")

        return close_tag

    def _tag_name(self) -> str: return "layer"

    def iter_data(self) -> Iterable[tuple[int, int, int]]:
        """Yields X, Y, GID tuples for each tile in the layer."""
        for i, gid in enumerate(self.data):
            yield i % self.width, i // self.width, gid

    def gid_at(self, x: int, y: int) -> int:
        return self.data[y * self.width + x]


class TiledObject(TiledSubElement):
    ATTRIBUTES = TiledElement.ATTRIBUTES | {
        "id": F(int, False, 0), "name": F(str, True), "type": F(str, True, ""),
        "x": F(int, True), "y": F(int, True),
        "width": F(int, True), "height": F(int, True),
    }

    def __init__(self, parent: Optional[TiledElement]) -> None:
        super().__init__(parent)
        self.id: int = 0
        self.name: str = ""
        self.type: str = ""
        self.rect = Rect(0, 0, 0, 0)

    @property
    def x(self) -> int: return self.rect.x

    @x.setter
    def x(self, v: int) -> None: self.rect.x = v

    @property
    def y(self) -> int: return self.rect.y

    @y.setter
    def y(self, v: int) -> None: self.rect.y = v

    @property
    def width(self) -> int: return self.rect.width

    @width.setter
    def width(self, v: int) -> None: self.rect.width = v

    @property
    def height(self) -> int: return self.rect.height

    @height.setter
    def height(self, v: int) -> None: self.rect.height = v

    def _tag_name(self) -> str: return "object"


class TiledObjectGroup(BaseTiledLayer):
    ATTRIBUTES = BaseTiledLayer.ATTRIBUTES | {
        "width": F(int, True), "height": F(int, True),
    }

    def __init__(self, parent: Optional[TiledElement]) -> None:
        super().__init__(parent)
        self.width: int = int(self.map.width) if self.map is not None else 0
        self.height: int = int(self.map.height) if self.map is not None else 0
        self.objects: list[TiledObject] = []

    def add_object(self, obj: TiledObject) -> None:
        if obj.id == 0:
            if self.map is not None:
                obj.id = self.map.nextobjectid
                self.map.nextobjectid += 1
            else:
                obj.id = (max(o.id for o in self.objects) + 1) if len(self.objects) > 0 else 1
        self.objects.append(obj)

    def objects_named(self, name: str) -> list[TiledObject]:
        return [o for o in self.objects if o.name == name]

    def _tag_name(self) -> str: return "objectgroup"

    def _sub_xml(self, stream, indent: int, close_tag: bool) -> bool:
        if len(self.objects) > 0:
            close_tag = self._close_tag(stream, close_tag)
            for obj in self.objects:
                obj._save(stream, indent)

        return close_tag


class TiledTileset(TiledSubElement):
    ATTRIBUTES = TiledElement.ATTRIBUTES | {
        "firstgid": F(int, False), "name": F(str, True),
        "tilewidth": F(int, True), "tileheight": F(int, True),
        "spacing": F(int, True), "margin": F(int, False, 0),
        "tilecount": F(int, False, 0), "columns": F(int, False, 0)
    }

    def __init__(self, parent: Optional[TiledElement]) -> None:
        super().__init__(parent)

        # local tile id -> properties of that tile
        self.tiles: dict[int, dict[str, Any]] = {}

        self.firstgid: int = 0
        self.name: str = ""
        self.tilewidth: int = 0
        self.tileheight: int = 0
        self.spacing: int = 0
        self.margin: int = 0
        self.columns: int = 0
        self.tilecount: int = 0

        # file name of the atlas image and where it was read from
        self.image: str = ""
        self.image_source: str = ""
        self.image_width: int = 0
        self.image_height: int = 0

    def update_image_size(self, width: int, height: int) -> None:
        self.image_width = width
        self.image_height = height
        self.columns = max((width + self.spacing - 2 * self.margin) // (self.tilewidth + self.spacing), 0)
        rows = max((height + self.spacing - 2 * self.margin) // (self.tileheight + self.spacing), 0)
        self.tilecount = self.columns * rows

    def _sub_xml(self, stream, indent: int, close_tag: bool) -> bool:
        close_tag = self._close_tag(stream, close_tag)

        stream.write(" " * indent)
        stream.write(f"<image source=\"{escape(self.image)}\"")
        if self.image_width > 0 and self.image_height > 0:
            stream.write(f" width=\"{self.image_width}\" height=\"{self.image_height}\"")
        stream.write("/>\n")

        for tile_id in sorted(self.tiles):
            props = self.tiles[tile_id]
            stream.write(" " * indent)
            stream.write(f"<tile id=\"{tile_id}\"")
            if len(props) > 0:
                self._write_xml_properties(stream, indent + 1, True, props)
                stream.write(" " * indent)
                stream.write(f"</tile>\n")
            else:
                stream.write("/>\n")

        return close_tag

    def _tag_name(self) -> str: return "tileset"


class TiledMap(TiledElement):
    ATTRIBUTES = TiledElement.ATTRIBUTES | {
        "version": F(str, False), "orientation": F(str, False), "renderorder": F(str, False),
        "width": F(int, True), "height": F(int, True), "tilewidth": F(int, True), "tileheight": F(int, True),
        "nextlayerid": F(int, False), "nextobjectid": F(int, False),
    }

    def __init__(self) -> None:
        super().__init__()
        self.filename: Optional[str] = None

        self.tilesets: list[TiledTileset] = []
        self.layer_id_map: dict[int, BaseTiledLayer] = {}

        self.version: str = TMX_VERSION
        self.orientation: str = "orthogonal"
        self.renderorder: str = "right-down"
        self.width: int = 0  # width of map in tiles
        self.height: int = 0  # height of map in tiles
        self.tilewidth: int = 0  # width of a tile in pixels
        self.tileheight: int = 0  # height of a tile in pixels

        self.nextobjectid: int = 1
        self.nextlayerid: int = 1

    @property
    def layers(self) -> Iterable[BaseTiledLayer]:
        return self.layer_id_map.values()

    @property
    def name(self) -> Optional[str]:
        if self.filename is not None:
            return ".".join(os.path.split(self.filename)[-1].split(".")[:-1])
        return None

    def add_layer(self, layer: BaseTiledLayer) -> None:
        if layer.id == 0:
            layer.id = self.nextlayerid
        self.layer_id_map[layer.id] = layer
        self.nextlayerid = max(self.nextlayerid, layer.id + 1)

    def add_tileset(self, tileset: TiledTileset) -> None:
        self.tilesets.append(tileset)

    def to_xml(self) -> str:
        stream = io.StringIO()
        stream.write("<?xml version=\"1.0\" encoding=\"UTF-8\"?>\n")
        self._save(stream, 0)
        return stream.getvalue()

    def save(self, filename: str, backups: int = 0) -> None:
        self.filename = filename
        content = self.to_xml()
        backup_file(filename, backups)
        write_atomically(filename, content)
        logger.info(f"Saved map '{self.name}' to '{filename}'")

    def _tag_name(self) -> str: return "map"

    def _sub_xml(self, stream, indent: int, close_tag: bool) -> bool:
        close_tag = self._close_tag(stream, close_tag)

        for tileset in self.tilesets:
            tileset._save(stream, indent)

        for layer in self.layers:
            cast(TiledElement, layer)._save(stream, indent)

        return close_tag


