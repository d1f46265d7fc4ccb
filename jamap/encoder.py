# encoder.py: domain objects -> JSON:API response document
#
# pylint: disable=logging-fstring-interpolation
#
"""
The encoder walks the object graph depth-first, guided by the resource schemas.

Relationship targets are added to the "included" member of the document when the dotted path
of relationship keys that leads to them is requested, for ex. with the include paths
`["author", "comments.author"]` the article author and the authors of its comments are
included but the comments themselves aren't (only their linkage is sent).

A relationship created with `included=True` is included as if its path was requested,
the INCLUDE_ALL path ("+all") includes every readable relationship at every depth.

Every (type, id) identity is extracted at most once per document: the identity is
reserved in the Included set before its relationships are walked, so cyclic graphs
(article -> author -> articles -> ...) terminate.
"""
import json
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import jamap
from .config import get_config
from .errors import InvalidArgumentError
from .json_encoder import JAJSONEncoder
from .jsonapi_types import (
    JSONAPILinkageDocument,
    JSONAPIRelationship,
    JSONAPIResourceIdentifier,
    JSONAPIResourceObject,
    JSONAPIResponseDocument,
)
from .registry import SchemaRegistry, default_registry
from .schema import Relationship, ResourceSchema

IdentityKey = Tuple[str, Optional[str]]


class Included:
    """
    The included resources of one encode call, in the order they're first reached
    """

    def __init__(self) -> None:
        self._resources: Dict[IdentityKey, Optional[JSONAPIResourceObject]] = OrderedDict()

    def reserve(self, key: IdentityKey) -> None:
        """
        Mark the identity as included before its resource object has been extracted
        """
        self._resources[key] = None

    def set(self, key: IdentityKey, resource: JSONAPIResourceObject) -> None:
        self._resources[key] = resource

    def to_list(self) -> List[JSONAPIResourceObject]:
        return [resource for resource in self._resources.values() if resource is not None]

    def __contains__(self, key: IdentityKey) -> bool:
        return key in self._resources

    def __len__(self) -> int:
        return len(self._resources)


class _EncodeState:
    """
    Per-call encoding state

    :ivar paths: requested include paths
    :ivar include_all: INCLUDE_ALL was requested
    :ivar key_stack: relationship keys walked from the primary resource to the current node
    :ivar included: Included set
    :ivar primary: identities of the primary data, these are never added to "included"
    """

    def __init__(self, paths: Iterable[str], include_all: bool) -> None:
        self.paths: Set[str] = set(paths)
        self.include_all = include_all
        self.key_stack: List[str] = []
        self.included = Included()
        self.primary: Set[IdentityKey] = set()

    @property
    def path(self) -> str:
        return ".".join(self.key_stack)

    def is_requested(self, relationship: Relationship) -> bool:
        return self.include_all or relationship.included or self.path in self.paths

    def has_nested_paths(self) -> bool:
        """
        :return: a longer path starting with the current path is requested
        """
        prefix = self.path + "."
        return any(path.startswith(prefix) for path in self.paths)


class Encoder:
    """
    Encodes domain objects to JSON:API documents

    :param registry: SchemaRegistry used to resolve the schema keys, defaults to the process-wide registry
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None) -> None:
        self.registry = registry if registry is not None else default_registry

    def encode(self, resource: Any, candidates: Iterable[Any], include: Union[str, Iterable[str], None] = None) -> str:
        """
        :param resource: domain object or list of domain objects
        :param candidates: schema keys acceptable for the primary data
        :param include: include paths, a list or a comma separated string, DEFAULT_INCLUDED when not given
        :return: json document
        :raises InvalidArgumentError: no schema found for the resource
        """
        document = self.encode_document(resource, candidates, include)
        return self._dumps(document)

    def encode_document(self, resource: Any, candidates: Iterable[Any], include: Union[str, Iterable[str], None] = None) -> JSONAPIResponseDocument:
        """
        Same as `encode` but the document isn't serialized

        :return: {"data": ..., "included": [...]}
        """
        candidates = list(candidates)
        paths = self._parse_include(include)
        include_all = get_config("INCLUDE_ALL") in paths
        state = _EncodeState((path for path in paths if path != get_config("INCLUDE_ALL")), include_all)

        if isinstance(resource, (list, tuple)):
            roots = [(obj, self._root_schema(obj, candidates)) for obj in resource]
        else:
            roots = [(resource, self._root_schema(resource, candidates))]

        for obj, schema in roots:
            state.primary.add((schema.resource_type, schema.get_resource_id(obj)))
        self._check_paths(state, [schema for _, schema in roots])

        extracted = [self._extract_resource(obj, schema, state) for obj, schema in roots]
        document: JSONAPIResponseDocument = {"data": extracted if isinstance(resource, (list, tuple)) else extracted[0]}
        included = state.included.to_list()
        if included:
            document["included"] = included
        jamap.log.debug(f"Encoded {len(extracted)} resource(s), {len(included)} included")
        return document

    def encode_identifiers(self, resource: Any, candidates: Iterable[Any]) -> str:
        """
        Encode a relationship document, i.e. only the resource linkage,
        cfr. https://jsonapi.org/format/#fetching-relationships

        :param resource: domain object, list of domain objects or None (empty to-one relationship)
        :param candidates: schema keys
        :return: json document
        """
        candidates = list(candidates)
        if resource is None:
            data: Any = None
        elif isinstance(resource, (list, tuple)):
            data = [self._identifier(obj, self._root_schema(obj, candidates)) for obj in resource]
        else:
            data = self._identifier(resource, self._root_schema(resource, candidates))
        document: JSONAPILinkageDocument = {"data": data}
        return self._dumps(document)

    @staticmethod
    def _dumps(document: Any) -> str:
        return json.dumps(document, cls=JAJSONEncoder, ensure_ascii=get_config("JSON_ENSURE_ASCII"), indent=get_config("JSON_INDENT"))

    @staticmethod
    def _parse_include(include: Union[str, Iterable[str], None]) -> List[str]:
        if include is None:
            include = get_config("DEFAULT_INCLUDED") or ""
        if isinstance(include, str):
            include = include.split(",")
        return [path.strip() for path in include if path and path.strip()]

    @staticmethod
    def _check_paths(state: _EncodeState, schemas: List[ResourceSchema]) -> None:
        for path in state.paths:
            key = path.split(".")[0]
            if not any(key in schema.relationships for schema in schemas):
                jamap.log.debug(f"Ignoring include path '{path}': no relationship '{key}'")

    def _root_schema(self, obj: Any, candidates: List[Any]) -> ResourceSchema:
        if obj is None or isinstance(obj, (str, bytes, int, float, bool, dict)):
            raise InvalidArgumentError(f"Resource must be an object or a list of objects, not {type(obj).__name__}")
        schema = self.registry.get_by_class(type(obj), candidates)
        if schema is None:
            raise InvalidArgumentError(f"No compatible schema found for {type(obj).__name__} object")
        return schema

    @staticmethod
    def _identifier(obj: Any, schema: ResourceSchema) -> JSONAPIResourceIdentifier:
        return {"type": schema.resource_type, "id": schema.get_resource_id(obj)}

    def _extract_resource(self, obj: Any, schema: ResourceSchema, state: _EncodeState) -> JSONAPIResourceObject:
        """
        :param obj: domain object
        :param schema: schema of the object
        :param state: encode state
        :return: resource object, empty "attributes", "relationships" and "meta" members are left out
        """
        data = self._identifier(obj, schema)

        attributes = OrderedDict((key, attribute.get_value(obj)) for key, attribute in schema.attributes.items() if attribute.readable)
        if attributes:
            data["attributes"] = attributes

        relationships = self._extract_relationships(obj, schema, state)
        if relationships:
            data["relationships"] = relationships

        meta = OrderedDict((key, item.get_value(obj)) for key, item in schema.meta.items())
        if meta:
            data["meta"] = meta
        return data

    def _extract_relationships(self, obj: Any, schema: ResourceSchema, state: _EncodeState) -> Dict[str, JSONAPIRelationship]:
        relationships = OrderedDict()
        for key, relationship in schema.relationships.items():
            if not relationship.readable:
                continue
            state.key_stack.append(key)
            try:
                relationships[key] = self._extract_relationship(obj, relationship, state)
            finally:
                state.key_stack.pop()
        return relationships

    def _extract_relationship(self, obj: Any, relationship: Relationship, state: _EncodeState) -> JSONAPIRelationship:
        """
        :return: relationship object {"data": linkage}
        """
        if relationship.is_to_many:
            linkage = []
            for target in relationship.get(obj):
                identifier = self._extract_linkage(target, relationship, state)
                if identifier is not None:
                    linkage.append(identifier)
            return {"data": linkage}

        target = relationship.get(obj)
        if target is None:
            return {"data": None}
        return {"data": self._extract_linkage(target, relationship, state)}

    def _extract_linkage(self, target: Any, relationship: Relationship, state: _EncodeState) -> Optional[JSONAPIResourceIdentifier]:
        """
        Resolve the schema of a relationship target and include the target when its path is requested

        :return: resource identifier or None when the target class doesn't match the expected schemas
        """
        schema = self.registry.get_by_class(type(target), relationship.expects, skip_unknown=True)
        if schema is None:
            jamap.log.debug(f"Skipping {type(target).__name__} target of relationship '{state.path}': no expected schema")
            return None

        identifier = self._identifier(target, schema)
        key = (identifier["type"], identifier["id"])
        if key in state.primary or key in state.included:
            if not state.include_all and state.has_nested_paths():
                # the target is already in the document, longer paths may still reach other resources
                self._extract_relationships(target, schema, state)
        elif state.is_requested(relationship):
            state.included.reserve(key)
            state.included.set(key, self._extract_resource(target, schema, state))
        elif state.has_nested_paths():
            # "comments.author" was requested without "comments"
            self._extract_relationships(target, schema, state)
        return identifier
