"""
Resource identity cache

Within one decode operation every reference to the same (type, id) pair has to yield
the same domain object instance: the primary resource and the relationship targets
that point to it. Attribute values that are decoded later on the primary resource
are then automatically visible through the relationship stubs created earlier.
"""
from typing import Any, Dict, Optional, Tuple

import jamap
from .errors import InvalidArgumentError
from .schema import ResourceSchema


class IdentityCache:
    def __init__(self) -> None:
        self._objects: Dict[Tuple[type, str], Any] = {}

    @staticmethod
    def _key(schema: ResourceSchema, resource_id: Any) -> Tuple[type, str]:
        return schema.mapping_class, str(resource_id)

    def get(self, schema: ResourceSchema, resource_id: Any) -> Optional[Any]:
        if resource_id is None:
            return None
        return self._objects.get(self._key(schema, resource_id))

    def add(self, schema: ResourceSchema, obj: Any, resource_id: Any = None) -> None:
        """
        Register an existing object, for ex. the persisted instance that is updated by a PATCH request

        :param schema: schema of the object
        :param obj: domain object
        :param resource_id: JSON:API id, read from the object when not given
        """
        if resource_id is None:
            resource_id = schema.get_resource_id(obj)
        if resource_id is None:
            raise InvalidArgumentError(f"Can't cache a '{schema.resource_type}' object without id")
        self._objects[self._key(schema, resource_id)] = obj

    def get_or_create(self, schema: ResourceSchema, resource_id: Any) -> Any:
        """
        :param schema: schema of the resource
        :param resource_id: JSON:API id, a new uncached object is returned for a None id
        :return: the cached instance or a new empty instance with its id set
        """
        if resource_id is None:
            return schema.create_instance()

        key = self._key(schema, resource_id)
        obj = self._objects.get(key)
        if obj is None:
            obj = schema.create_instance()
            schema.set_resource_id(obj, str(resource_id))
            self._objects[key] = obj
            jamap.log.debug(f"Created {schema.resource_type} object with id {resource_id}")
        return obj

    def __contains__(self, key: Tuple[ResourceSchema, Any]) -> bool:
        schema, resource_id = key
        return self._key(schema, resource_id) in self._objects

    def __len__(self) -> int:
        return len(self._objects)
