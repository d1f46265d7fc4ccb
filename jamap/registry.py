# -*- coding: utf-8 -*-
#
# The registry resolves schema keys to ResourceSchema instances.
# A key can be a ResourceSchema subclass, a ResourceSchema instance or a registered name.
# Instances are created lazily and cached for the lifetime of the registry.
#
from typing import Any, Dict, Iterable, Iterator, Optional, Type

import jamap
from .errors import InvalidArgumentError
from .schema import ResourceSchema


class SchemaRegistry:
    def __init__(self, schemas: Iterable[Any] = ()) -> None:
        """
        :param schemas: schema classes (or instances) that will be registered by their resource type
        """
        self._cache: Dict[Type[ResourceSchema], ResourceSchema] = {}
        self._names: Dict[str, Any] = {}
        for schema in schemas:
            self.register(schema)

    def register(self, key: Any, name: Optional[str] = None) -> None:
        """
        Make a schema addressable by name, so relationships can reference schemas
        that haven't been declared yet, for ex. `ToMany("articles", expects=["articles"])`

        :param key: ResourceSchema subclass or instance
        :param name: registered name, defaults to the schema resource type
        """
        if not self._is_schema_key(key):
            raise InvalidArgumentError(f"Can't register {key!r}, expected a ResourceSchema class or instance")
        name = name or key.resource_type
        if not name:
            raise InvalidArgumentError(f"Can't register {key!r} without a name")
        self._names[name] = key

    @staticmethod
    def _is_schema_key(key: Any) -> bool:
        return isinstance(key, ResourceSchema) or (isinstance(key, type) and issubclass(key, ResourceSchema))

    def _cached(self, schema_class: Type[ResourceSchema]) -> Optional[ResourceSchema]:
        return self._cache.get(schema_class)

    def _store(self, schema_class: Type[ResourceSchema], schema: ResourceSchema) -> ResourceSchema:
        self._cache[schema_class] = schema
        return schema

    def resolve(self, key: Any) -> ResourceSchema:
        """
        :param key: schema key
        :return: the (cached) schema instance
        """
        if isinstance(key, str):
            if key not in self._names:
                raise InvalidArgumentError(f"Unknown schema '{key}'")
            key = self._names[key]

        if isinstance(key, ResourceSchema):
            return key

        if not self._is_schema_key(key):
            raise InvalidArgumentError(f"Invalid schema key {key!r}")

        cached = self._cached(key)
        if cached is not None:
            return cached
        jamap.log.debug(f"Instantiating schema {key.__name__}")
        return self._store(key, key())

    def _candidates(self, candidates: Iterable[Any], skip_unknown: bool) -> Iterator[ResourceSchema]:
        for candidate in candidates:
            if skip_unknown and isinstance(candidate, str) and candidate not in self._names:
                jamap.log.debug(f"Skipping unknown schema '{candidate}'")
                continue
            yield self.resolve(candidate)

    def get_by_resource_type(self, resource_type: str, candidates: Iterable[Any], skip_unknown: bool = False) -> Optional[ResourceSchema]:
        """
        Linear scan over the candidate schemas
        :param resource_type: JSON:API type
        :param candidates: schema keys acceptable in this position
        :param skip_unknown: ignore names that aren't registered (relationship targets) instead of raising
        :return: the first schema with a matching resource type or None
        """
        for schema in self._candidates(candidates, skip_unknown):
            if schema.resource_type == resource_type:
                return schema
        return None

    def get_by_class(self, cls: type, candidates: Iterable[Any], skip_unknown: bool = False) -> Optional[ResourceSchema]:
        """
        :param cls: runtime class of a domain object
        :param candidates: schema keys acceptable in this position
        :param skip_unknown: ignore names that aren't registered (relationship targets) instead of raising
        :return: the first schema mapping exactly this class or None
        """
        for schema in self._candidates(candidates, skip_unknown):
            if schema.mapping_class is cls:
                return schema
        return None

    def __contains__(self, key: Any) -> bool:
        if isinstance(key, str):
            return key in self._names
        return key in self._cache

    def __repr__(self) -> str:
        return f"<SchemaRegistry {sorted(self._names)}>"


# process-wide registry used when the encoder/decoder is created without one
default_registry = SchemaRegistry()
