import logging
from typing import Any, Mapping, Optional

from tmx_generator import records
from tmx_generator.provider import MapDataProvider, Capability, capabilities
from tmx_generator.tmx import TiledMap, TiledObjectGroup, TiledObject


logger = logging.getLogger(__name__)

_GROUP_KEYS = (records.OBJECT_GROUP_NAME, records.OBJECT_GROUP_WIDTH, records.OBJECT_GROUP_HEIGHT, records.OBJECT_GROUP_PROPERTIES)


class ObjectGroupCollector:
    """Turns the provider's object group descriptions into object groups.

    ``objects_group_info_for_name`` returns a list of records. Records with object group keys set the
    group's size and properties, all others describe one object each, in the order they appear.
    Objects are not checked against the group's bounds.
    """

    def __init__(self, provider: MapDataProvider, tiled_map: Optional[TiledMap] = None) -> None:
        self.provider = provider
        self.map = tiled_map
        self.capabilities = capabilities(provider)

    def collect_all(self) -> list[TiledObjectGroup]:
        names = self.provider.object_group_names()
        if not names:
            return []
        return [self.collect(name) for name in names]

    def collect(self, group_name: str) -> TiledObjectGroup:
        group = TiledObjectGroup(self.map)
        group.name = group_name

        for info in self.provider.objects_group_info_for_name(group_name) or []:
            if any(key in info for key in _GROUP_KEYS):
                self._update_group(group, info)
            else:
                group.add_object(self._make_object(group, info))

        logger.debug(f"Collected object group '{group.name}' with {len(group.objects)} objects")
        return group

    @staticmethod
    def _update_group(group: TiledObjectGroup, info: Mapping[str, Any]) -> None:
        group.name = records.str_value(info, records.OBJECT_GROUP_NAME, group.name)
        group.width = records.int_value(info, records.OBJECT_GROUP_WIDTH, group.width)
        group.height = records.int_value(info, records.OBJECT_GROUP_HEIGHT, group.height)
        properties = info.get(records.OBJECT_GROUP_PROPERTIES)
        if properties:
            group.properties.update(properties)

    def _make_object(self, group: TiledObjectGroup, info: Mapping[str, Any]) -> TiledObject:
        obj = TiledObject(group)
        obj.name = records.str_value(info, records.GROUP_OBJECT_NAME, "")
        obj.type = records.str_value(info, records.GROUP_OBJECT_TYPE, "")
        obj.x = records.int_value(info, records.GROUP_OBJECT_X, 0)
        obj.y = records.int_value(info, records.GROUP_OBJECT_Y, 0)
        obj.width = records.int_value(info, records.GROUP_OBJECT_WIDTH, 0)
        obj.height = records.int_value(info, records.GROUP_OBJECT_HEIGHT, 0)

        properties = None
        if Capability.OBJECT_PROPERTIES in self.capabilities:
            properties = self.provider.properties_for_object(obj.name, group.name)
        if properties is None:
            properties = info.get(records.GROUP_OBJECT_PROPERTIES)
        if properties:
            obj.properties.update(properties)
        return obj
