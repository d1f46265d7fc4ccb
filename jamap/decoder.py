# decoder.py: JSON:API request document -> domain objects
#
# pylint: disable=too-many-arguments,too-many-branches,logging-fstring-interpolation
#
"""
Decoding walks every resource object of a request document in two passes:

1. context population: the filtered values of all writable attributes and the
   resource identifiers of all writable relationships are stored in the DecodeContext,
   keys that are present in the request are recorded as "modified"
2. validation and hydration: every field is validated against the full context
   (validators may depend on sibling fields), the values are set on the domain
   objects after every resource of the document has been validated

Validation errors don't abort the walk, they're accumulated so the client receives
every violation in one response. When errors were recorded the decoded data is
suppressed and no domain object is written to, a half-valid object is never returned.

All per-call state is kept in the returned DecodeResult, a Decoder instance can be
shared between threads.
"""
import json
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

import jamap
from .config import get_config
from .document_validator import DocumentValidator
from .error_document import Error, ErrorDocument
from .errors import InvalidFormatError
from .identity_cache import IdentityCache
from .jsonapi_primitives import ResourceIdentifier
from .registry import SchemaRegistry, default_registry
from .schema import Cardinality, Relationship, ResourceSchema


class _AbsentType:
    """
    Marks a field that wasn't sent in the request, as opposed to a field sent as null
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = object.__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Absent"


Absent = _AbsentType()


class DecodeContext:
    """
    Per-resource decoding state, passed to the field validators

    :ivar id: id of the resource, None if the request didn't contain one
    :ivar attributes: attribute key -> filtered value or Absent
    :ivar relationships: relationship key -> ResourceIdentifier, None, list of ResourceIdentifier or Absent
    :ivar modified: keys of the fields that were present in the request
    """

    def __init__(self, resource_id: Optional[str] = None, resource_type: Optional[str] = None) -> None:
        self.id = resource_id
        self.type = resource_type
        self.attributes: Dict[str, Any] = {}
        self.relationships: Dict[str, Any] = {}
        self.modified: List[str] = []

    def get_attribute(self, key: str, default: Any = None) -> Any:
        value = self.attributes.get(key, Absent)
        return default if value is Absent else value

    def get_relationship(self, key: str, default: Any = None) -> Any:
        value = self.relationships.get(key, Absent)
        return default if value is Absent else value

    def is_modified(self, key: str) -> bool:
        return key in self.modified

    def __repr__(self) -> str:
        return f"<DecodeContext {self.type}:{self.id} modified={self.modified}>"


class DecodeResult:
    """
    Outcome of a decode call

    :ivar data: domain object, list of domain objects or None
    :ivar errors: validation errors (jamap.error_document.Error)
    :ivar contexts: the DecodeContext of every decoded resource, in document order
    :ivar identity_cache: the IdentityCache used to materialize the objects
    """

    def __init__(self, identity_cache: Optional[IdentityCache] = None) -> None:
        self.data: Any = None
        self.errors: List[Error] = []
        self.contexts: List[DecodeContext] = []
        self.identity_cache = identity_cache if identity_cache is not None else IdentityCache()

    def add_error(self, pointer: str, detail: str) -> None:
        self.errors.append(Error(detail, pointer=pointer))

    def has_errors(self) -> bool:
        return bool(self.errors)

    has_validation_errors = has_errors

    @property
    def context(self) -> Optional[DecodeContext]:
        return self.contexts[0] if self.contexts else None

    @property
    def modified(self) -> List[str]:
        """
        :return: keys of the fields that were present in the request (partial update semantics)
        """
        result: List[str] = []
        for context in self.contexts:
            result.extend(key for key in context.modified if key not in result)
        return result

    def get_error_document(self) -> Optional[ErrorDocument]:
        if not self.errors:
            return None
        error_document = ErrorDocument()
        for error in self.errors:
            error_document.add_error(error)
        return error_document

    def __repr__(self) -> str:
        return f"<DecodeResult data={self.data!r} errors={len(self.errors)}>"


class Decoder:
    """
    Decodes JSON:API request documents into domain objects

    :param registry: SchemaRegistry used to resolve the schema keys, defaults to the process-wide registry
    :param document_validator: structural validator of the request documents
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None, document_validator: Optional[DocumentValidator] = None) -> None:
        self.registry = registry if registry is not None else default_registry
        self.document_validator = document_validator if document_validator is not None else DocumentValidator()

    def decode(
        self,
        raw_body: Union[str, bytes],
        candidates: Iterable[Any],
        ignore_missing_fields: bool = False,
        identity_cache: Optional[IdentityCache] = None,
    ) -> DecodeResult:
        """
        Decode a document holding a single resource, a collection of resources or null

        :param raw_body: request body
        :param candidates: schema keys acceptable for the primary data
        :param ignore_missing_fields: leave fields that aren't in the request untouched (PATCH semantics)
        :param identity_cache: cache used to materialize objects, a new cache is used when not given
        :return: DecodeResult
        :raises InvalidFormatError: the document isn't a valid JSON:API document
        """
        candidates = list(candidates)
        root = self._parse(raw_body)
        root["data"] = data = self._normalize_data(root["data"])
        if get_config("VALIDATE_DOCUMENTS"):
            self.document_validator.validate_resource_document(root)

        result = DecodeResult(identity_cache)
        if data is None:
            return result
        self._decode_data(data, candidates, ignore_missing_fields, result)
        return result

    def decode_post(
        self,
        raw_body: Union[str, bytes],
        candidates: Iterable[Any],
        allow_ephemeral_id: bool = False,
        identity_cache: Optional[IdentityCache] = None,
    ) -> DecodeResult:
        """
        Decode a POST request document (resource creation), all writable fields are processed

        :param allow_ephemeral_id: accept a client generated id
        :raises InvalidFormatError: invalid document or a client generated id that isn't allowed
        """
        root = self._parse(raw_body)
        if get_config("VALIDATE_DOCUMENTS"):
            self.document_validator.validate_post_document(root)
        data = root["data"]
        if not isinstance(data, dict):
            raise InvalidFormatError("Provide a single resource object to create a resource")
        if "id" in data and not allow_ephemeral_id:
            raise InvalidFormatError("Ephemeral IDs are not allowed.")

        result = DecodeResult(identity_cache)
        self._decode_data(data, list(candidates), False, result)
        return result

    def decode_patch(
        self,
        raw_body: Union[str, bytes],
        candidates: Iterable[Any],
        identity_cache: Optional[IdentityCache] = None,
    ) -> DecodeResult:
        """
        Decode a PATCH request document (resource update), fields that aren't sent are left untouched.
        Pre-seed the identity cache with the persisted object to update it in place.

        :raises InvalidFormatError: invalid document, for ex. a resource object without id
        """
        root = self._parse(raw_body)
        if get_config("VALIDATE_DOCUMENTS"):
            self.document_validator.validate_patch_document(root)
        data = root["data"]
        if not isinstance(data, dict) or data.get("id") is None:
            raise InvalidFormatError("Provide a resource object with an id to update a resource")

        result = DecodeResult(identity_cache)
        self._decode_data(data, list(candidates), True, result)
        return result

    def decode_to_one_relationship(
        self,
        raw_body: Union[str, bytes],
        candidates: Iterable[Any],
        identity_cache: Optional[IdentityCache] = None,
    ) -> Any:
        """
        Decode a to-one relationship document: `{"data": null}` or `{"data": {"type": .., "id": ..}}`,
        cfr. https://jsonapi.org/format/#crud-updating-to-one-relationships

        :return: the target object (with only its id set unless it was cached) or None
        """
        root = self._parse(raw_body)
        if get_config("VALIDATE_DOCUMENTS"):
            self.document_validator.validate_to_one_relationship_document(root)
        data = root["data"]
        if data is None:
            return None
        if isinstance(data, list):
            raise InvalidFormatError("A to-one relationship can only hold a single item")
        identity_cache = identity_cache if identity_cache is not None else IdentityCache()
        return self._resolve_identifier(self._parse_linkage(data), list(candidates), identity_cache)

    def decode_to_many_relationship(
        self,
        raw_body: Union[str, bytes],
        candidates: Iterable[Any],
        identity_cache: Optional[IdentityCache] = None,
    ) -> List[Any]:
        """
        Decode a to-many relationship document: `{"data": [{"type": .., "id": ..}, ...]}`,
        cfr. https://jsonapi.org/format/#crud-updating-to-many-relationships

        :return: list of target objects
        """
        root = self._parse(raw_body)
        if get_config("VALIDATE_DOCUMENTS"):
            self.document_validator.validate_to_many_relationship_document(root)
        data = root["data"]
        if not isinstance(data, list):
            raise InvalidFormatError("Provide a list to update a to-many relationship")
        candidates = list(candidates)
        identity_cache = identity_cache if identity_cache is not None else IdentityCache()
        return [self._resolve_identifier(self._parse_linkage(item), candidates, identity_cache) for item in data]

    @staticmethod
    def _parse(raw_body: Union[str, bytes]) -> Dict[str, Any]:
        """
        :param raw_body: request body
        :return: json-decoded document
        :raises InvalidFormatError: invalid json or no top-level "data" member
        """
        try:
            root = json.loads(raw_body)
        except (TypeError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError
            jamap.log.debug(f"JSON decoding failed: {exc}")
            raise InvalidFormatError("Invalid document format.")
        if not isinstance(root, dict):
            raise InvalidFormatError("Invalid document format.")
        if "data" not in root:
            raise InvalidFormatError("Missing top-level member 'data'.")
        return root

    @staticmethod
    def _normalize_data(data: Any) -> Any:
        """
        A json object whose keys are exactly "0" .. "n-1" is a collection:
        {"0": {...}, "1": {...}} is decoded like [{...}, {...}]
        Other objects ("00", "1" without "0", ...) are passed on as a single resource object.
        """
        if isinstance(data, dict) and data:
            indexes = [str(index) for index in range(len(data))]
            if set(data) == set(indexes):
                return [data[index] for index in indexes]
        return data

    def _decode_data(self, data: Any, candidates: List[Any], ignore_missing_fields: bool, result: DecodeResult) -> None:
        """
        Decode the primary data into result.data
        The domain objects are only written to when no resource of the document has errors,
        so a cached (persisted) object is left untouched by a request that fails validation.
        """
        collection = isinstance(data, list)
        decoded = [self._decode_resource(item, candidates, ignore_missing_fields, result) for item in (data if collection else [data])]
        if result.has_errors():
            result.data = [] if collection else None
            self._log_errors(result)
            return

        for _, setters in decoded:
            for setter in setters:
                setter()
        instances = [instance for instance, _ in decoded]
        result.data = instances if collection else instances[0]

    def _decode_resource(
        self, data: Any, candidates: List[Any], ignore_missing_fields: bool, result: DecodeResult
    ) -> Tuple[Any, List[Callable[[], None]]]:
        """
        :param data: resource object
        :param candidates: schema keys
        :param ignore_missing_fields: PATCH semantics
        :param result: DecodeResult receiving the errors and contexts
        :return: domain object and the setters that hydrate it
        """
        if not isinstance(data, dict):
            raise InvalidFormatError("Invalid resource object.")
        resource_type = data.get("type")
        if not isinstance(resource_type, str):
            raise InvalidFormatError("Missing resource 'type'.")
        schema = self.registry.get_by_resource_type(resource_type, candidates)
        if schema is None:
            raise InvalidFormatError(f"Invalid 'type' given for this resource: '{resource_type}'")

        resource_id = data.get("id")
        if resource_id is not None:
            resource_id = str(resource_id)
        context = DecodeContext(resource_id, resource_type)
        result.contexts.append(context)

        # the primary resource shares the identity cache with the relationship targets
        if not self._is_valid_id(schema, resource_id):
            raise InvalidFormatError(f"Invalid id '{resource_id}' for resource type '{resource_type}'.")
        instance = result.identity_cache.get_or_create(schema, resource_id)

        # FIRST PASS: all values have to be in the context before any validator runs
        self._populate_attributes(schema, data, context)
        self._populate_relationships(schema, data, context)

        # SECOND PASS: validate, the setters are applied by the caller
        setters = self._validate_attributes(schema, instance, context, ignore_missing_fields, result)
        setters += self._validate_relationships(schema, instance, context, ignore_missing_fields, result)
        return instance, setters

    @staticmethod
    def _is_valid_id(schema: ResourceSchema, resource_id: Optional[str]) -> bool:
        try:
            schema.identifier.convert(resource_id)
        except (TypeError, ValueError):
            jamap.log.debug(f"Invalid '{schema.resource_type}' id {resource_id!r}")
            return False
        return True

    @staticmethod
    def _populate_attributes(schema: ResourceSchema, data: Dict[str, Any], context: DecodeContext) -> None:
        attributes = data.get("attributes") or {}
        if not isinstance(attributes, dict):
            raise InvalidFormatError("Resource 'attributes' must be an object.")

        for key, attribute in schema.attributes.items():
            if not attribute.writable:
                if key in attributes:
                    jamap.log.debug(f"Ignoring read-only attribute '{key}' of '{schema.resource_type}'")
                continue
            if key in attributes:
                context.attributes[key] = attribute.filter_value(attributes[key])
                context.modified.append(key)
            else:
                context.attributes[key] = Absent

        for key in attributes:
            if key not in schema.attributes:
                jamap.log.debug(f"Ignoring unknown attribute '{key}' of '{schema.resource_type}'")

    def _populate_relationships(self, schema: ResourceSchema, data: Dict[str, Any], context: DecodeContext) -> None:
        relationships = data.get("relationships") or {}
        if not isinstance(relationships, dict):
            raise InvalidFormatError("Resource 'relationships' must be an object.")

        for key, relationship in schema.relationships.items():
            if not relationship.writable:
                continue
            if key not in relationships:
                context.relationships[key] = Absent
                continue
            payload = relationships[key]
            if not isinstance(payload, dict) or "data" not in payload:
                raise InvalidFormatError(f"Relationship '{key}' must be an object with a 'data' member.")
            linkage = payload["data"]
            if relationship.cardinality is Cardinality.TO_MANY:
                if not isinstance(linkage, list):
                    raise InvalidFormatError("Invalid to-many relationship format.")
                context.relationships[key] = [self._parse_linkage(item) for item in linkage]
            elif linkage is None:
                context.relationships[key] = None
            elif isinstance(linkage, dict):
                context.relationships[key] = self._parse_linkage(linkage)
            else:
                raise InvalidFormatError("Invalid to-one relationship format.")
            context.modified.append(key)

    @staticmethod
    def _parse_linkage(linkage: Any) -> ResourceIdentifier:
        """
        :param linkage: {"type": .., "id": ..}
        :return: ResourceIdentifier
        :raises InvalidFormatError: type or id missing or not a string
        """
        try:
            return ResourceIdentifier.model_validate(linkage)
        except PydanticValidationError:
            raise InvalidFormatError(f"Invalid resource identifier {linkage!r}, 'type' and 'id' strings are required.")

    @staticmethod
    def _validate_attributes(
        schema: ResourceSchema, instance: Any, context: DecodeContext, ignore_missing_fields: bool, result: DecodeResult
    ) -> List[Callable[[], None]]:
        setters: List[Callable[[], None]] = []
        for key, attribute in schema.attributes.items():
            if not attribute.writable:
                continue

            value = context.attributes[key]
            # empty may mean the request sent null or the request didn't contain the attribute
            if value is Absent or value is None:
                if ignore_missing_fields and not context.is_modified(key):
                    continue
                if attribute.required:
                    result.add_error(key, get_config("REQUIRED_MESSAGE"))
                    continue
                if not attribute.validate_if_empty:
                    setters.append(partial(attribute.set_value, instance, None))
                    continue
                value = None

            validation = attribute.is_valid(value, context)
            if validation:
                setters.append(partial(attribute.set_value, instance, value))
            else:
                for message in validation.messages or ["Invalid value."]:
                    result.add_error(key, message)
        return setters

    def _validate_relationships(
        self, schema: ResourceSchema, instance: Any, context: DecodeContext, ignore_missing_fields: bool, result: DecodeResult
    ) -> List[Callable[[], None]]:
        setters: List[Callable[[], None]] = []
        for key, relationship in schema.relationships.items():
            if not relationship.writable:
                continue

            value = context.relationships[key]
            # empty may mean the request sent null/[] or the request didn't contain the relationship
            if value is Absent or value is None or (relationship.is_to_many and not value):
                if ignore_missing_fields and not context.is_modified(key):
                    continue
                if relationship.required:
                    result.add_error(key, get_config("REQUIRED_MESSAGE"))
                    continue
                value = [] if relationship.is_to_many else None
                if not relationship.validate_if_empty:
                    setters += self._relationship_setters(relationship, instance, value, result)
                    continue

            validation = relationship.is_valid(value, context)
            if validation:
                setters += self._relationship_setters(relationship, instance, value, result)
            else:
                for message in validation.messages or ["Invalid value."]:
                    result.add_error(key, message)
        return setters

    def _relationship_setters(self, relationship: Relationship, instance: Any, value: Any, result: DecodeResult) -> List[Callable[[], None]]:
        """
        Resolve the relationship targets, the returned setters assign them to the parent instance
        Targets are resolved against the expected schemas of the relationship,
        identifiers with an unknown type are dropped (or recorded as error in strict mode)
        """
        if relationship.cardinality is Cardinality.TO_ONE:
            if value is None:
                return [partial(relationship.clear, instance)]
            target = self._resolve_target(relationship, value, result)
            if target is None:
                return []
            return [partial(relationship.set, instance, target)]

        targets = []
        for identifier in value:
            target = self._resolve_target(relationship, identifier, result)
            if target is not None and not any(target is existing for existing in targets):
                targets.append(target)
        return [partial(relationship.clear, instance)] + [partial(relationship.add, instance, target) for target in targets]

    def _resolve_target(self, relationship: Relationship, identifier: ResourceIdentifier, result: DecodeResult) -> Any:
        schema = self.registry.get_by_resource_type(identifier.type, relationship.expects, skip_unknown=True)
        if schema is None:
            if get_config("STRICT_RELATIONSHIP_TYPES"):
                result.add_error(relationship.key, f"Invalid type '{identifier.type}' for this relationship.")
            else:
                jamap.log.debug(f"Skipping '{identifier.type}' target of relationship '{relationship.key}': no expected schema")
            return None
        if not self._is_valid_id(schema, identifier.id):
            result.add_error(relationship.key, f"Invalid id '{identifier.id}' for this relationship.")
            return None
        return result.identity_cache.get_or_create(schema, identifier.id)

    def _resolve_identifier(self, identifier: ResourceIdentifier, candidates: List[Any], identity_cache: IdentityCache) -> Any:
        schema = self.registry.get_by_resource_type(identifier.type, candidates)
        if schema is None:
            raise InvalidFormatError(f"Invalid 'type' given for this resource: '{identifier.type}'")
        if not self._is_valid_id(schema, identifier.id):
            raise InvalidFormatError(f"Invalid id '{identifier.id}' for resource type '{identifier.type}'.")
        return identity_cache.get_or_create(schema, identifier.id)

    @staticmethod
    def _log_errors(result: DecodeResult) -> None:
        if result.errors:
            jamap.log.info(f"Decoding failed with {len(result.errors)} validation error(s): {result.errors}")
