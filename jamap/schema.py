# schema.py: declarative resource schemas and the field strategies they're built from
#
# pylint: disable=too-many-arguments,too-many-instance-attributes
#
"""
A ResourceSchema describes how a domain class maps to a JSON:API resource:

resource_type:
Type: str
Description: The JSON:API "type" of the resource, shared between client and server.

mapping_class:
Type: type
Description: The domain class, instances of this class are encoded and created while decoding.

identifier:
Type: str or Identifier
Description: Accessor of the resource id. The id is always transmitted as a string.

attributes:
Type: sequence of Attribute
Description: The fields serialized under "attributes".

relationships:
Type: sequence of Relationship
Description: The to-one and to-many references serialized under "relationships".

meta:
Type: sequence of Meta
Description: Read-only values serialized under the resource "meta".

Example:

    class ArticleSchema(ResourceSchema):
        resource_type = "articles"
        mapping_class = Article
        attributes = (Attribute("title", required=True), DateAttribute("published"))
        relationships = (ToOne("author", expects=["people"]), ToMany("comments", expects=[CommentSchema]))

Field accessors are bound when the strategy is created: by default the domain attribute
named after the key (or `mapped_as`) is read and written, custom getter/setter callables
can be passed to override this.
"""
import datetime
import enum
import operator
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import jamap
from .errors import InvalidSpecificationError, InvalidValidatorError


class ValidationResult:
    """
    Result of a field validation: a boolean and a list of human-readable messages
    """

    def __init__(self, valid: bool = True, messages: Optional[Iterable[str]] = None) -> None:
        self.valid = valid
        self.messages: List[str] = list(messages or [])

    @classmethod
    def invalid(cls, *messages: str) -> "ValidationResult":
        return cls(False, messages)

    def add_message(self, message: str) -> None:
        self.messages.append(message)

    def merge(self, other: "ValidationResult") -> None:
        self.valid = self.valid and other.valid
        self.messages.extend(other.messages)

    def is_valid(self) -> bool:
        return self.valid

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        return f"<ValidationResult valid={self.valid} messages={self.messages}>"


def _as_validation_result(result: Any, key: str) -> ValidationResult:
    """
    Validators may return a ValidationResult or a plain bool
    """
    if isinstance(result, ValidationResult):
        return result
    if isinstance(result, bool):
        return ValidationResult(result)
    raise InvalidValidatorError(f"Validator of '{key}' must return a ValidationResult or a bool, not {type(result).__name__}")


def _run_validators(validators: Sequence[Callable], key: str, *args: Any) -> ValidationResult:
    result = ValidationResult(True)
    for validator in validators:
        result.merge(_as_validation_result(validator(*args), key))
    return result


def _setter(name: str) -> Callable[[Any, Any], None]:
    def set_value(obj: Any, value: Any) -> None:
        setattr(obj, name, value)

    return set_value


class Cardinality(str, enum.Enum):
    TO_ONE = "toOne"
    TO_MANY = "toMany"


class Attribute:
    """
    Strategy to read, write and validate a single attribute

    :param key: key of the attribute in the "attributes" object
    :param mapped_as: name of the domain object attribute, defaults to `key`
    :param readable: the attribute is encoded
    :param writable: the attribute is decoded
    :param required: a value must be present when decoding
    :param validate_if_empty: run the validators when the value is null
    :param filter: callable used to pre-process decoded values, for ex. `validators.trim_to_none`
    :param validators: callables `(value, context) -> ValidationResult|bool`
    :param getter: callable `(obj) -> value`, overrides `mapped_as`
    :param setter: callable `(obj, value)`, overrides `mapped_as`
    """

    def __init__(
        self,
        key: str,
        mapped_as: Optional[str] = None,
        readable: bool = True,
        writable: bool = True,
        required: bool = False,
        validate_if_empty: bool = False,
        filter: Optional[Callable[[Any], Any]] = None,  # pylint: disable=redefined-builtin
        validators: Sequence[Callable] = (),
        getter: Optional[Callable[[Any], Any]] = None,
        setter: Optional[Callable[[Any, Any], None]] = None,
    ) -> None:
        if not key or not isinstance(key, str):
            raise InvalidSpecificationError(f"Invalid attribute key {key!r}")
        self.key = key
        self.mapped_as = mapped_as or key
        self.readable = readable
        self.writable = writable
        self.required = required
        self.validate_if_empty = validate_if_empty
        self.filter = filter
        self.validators = list(validators)
        self._getter = getter or operator.attrgetter(self.mapped_as)
        self._setter = setter or _setter(self.mapped_as)

    def get_value(self, obj: Any) -> Any:
        return self._getter(obj)

    def set_value(self, obj: Any, value: Any) -> None:
        self._setter(obj, value)

    def filter_value(self, value: Any) -> Any:
        if self.filter is None:
            return value
        return self.filter(value)

    def is_valid(self, value: Any, context: Any) -> ValidationResult:
        return _run_validators(self.validators, self.key, value, context)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.key}>"


class DateAttribute(Attribute):
    """
    Attribute holding a datetime.datetime (or datetime.date when `date_only` is set),
    encoded as an ISO 8601 string
    """

    message = "Invalid date format."

    def __init__(self, key: str, date_only: bool = False, **kwargs: Any) -> None:
        super().__init__(key, **kwargs)
        self.date_only = date_only

    def get_value(self, obj: Any) -> Any:
        value = super().get_value(obj)
        if value is None:
            return None
        if isinstance(value, (datetime.datetime, datetime.date)):
            return value.isoformat()
        # for ex. a date string that was assigned to the object directly
        jamap.log.warning(f"DateAttribute '{self.key}': {type(value).__name__} value isn't a date, encoding it as is")
        return value

    def parse(self, value: Any) -> Union[datetime.datetime, datetime.date, None]:
        """
        :param value: ISO 8601 string
        :return: parsed value
        :raises ValueError: invalid date string
        """
        if value is None or isinstance(value, (datetime.datetime, datetime.date)):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid date {value!r}")
        if self.date_only:
            return datetime.date.fromisoformat(value)
        if value.endswith(("Z", "z")):
            # python < 3.11 doesn't accept the "Z" suffix
            value = value[:-1] + "+00:00"
        return datetime.datetime.fromisoformat(value)

    def is_valid(self, value: Any, context: Any) -> ValidationResult:
        try:
            parsed = self.parse(value)
        except ValueError:
            return ValidationResult.invalid(self.message)
        return super().is_valid(parsed, context)

    def set_value(self, obj: Any, value: Any) -> None:
        super().set_value(obj, self.parse(value))


class Meta:
    """
    Read-only value encoded in the resource "meta" object
    """

    def __init__(self, key: str, mapped_as: Optional[str] = None, getter: Optional[Callable[[Any], Any]] = None) -> None:
        self.key = key
        self.mapped_as = mapped_as or key
        self._getter = getter or operator.attrgetter(self.mapped_as)

    def get_value(self, obj: Any) -> Any:
        return self._getter(obj)


class Identifier:
    """
    Accessor of the resource id

    :param key: name of the id attribute on the domain object
    :param converter: callable used to convert the (string) JSON:API id before it's set, for ex. `int`
    """

    def __init__(
        self,
        key: str = "id",
        converter: Optional[Callable[[str], Any]] = None,
        getter: Optional[Callable[[Any], Any]] = None,
        setter: Optional[Callable[[Any, Any], None]] = None,
    ) -> None:
        self.key = key
        self.converter = converter
        self._getter = getter or operator.attrgetter(key)
        self._setter = setter or _setter(key)

    def get_id(self, obj: Any) -> Optional[str]:
        value = self._getter(obj)
        if value is None:
            return None
        return str(value)

    def convert(self, resource_id: Optional[str]) -> Any:
        """
        :raises ValueError, TypeError: the converter rejects the id
        """
        if resource_id is None or self.converter is None:
            return resource_id
        return self.converter(resource_id)

    def set_id(self, obj: Any, resource_id: Optional[str]) -> None:
        self._setter(obj, self.convert(resource_id))


class Relationship:
    """
    Strategy to read, write and validate a relationship

    :param key: key of the relationship in the "relationships" object
    :param cardinality: Cardinality.TO_ONE or Cardinality.TO_MANY
    :param expects: schemas of the allowed targets (registry keys), the first matching schema is used
    :param included: include the targets in the compound document by default
    :param validators: to-one: callables `(id, type, context)`, to-many: callables `(identifiers, context)`
    :param getter: callable `(obj) -> target or collection`
    :param setter: callable `(obj, target)` for to-one relationships
    :param adder: callable `(obj, item)` for to-many relationships
    :param clearer: callable `(obj)` that empties the relationship
    """

    def __init__(
        self,
        key: str,
        cardinality: Union[Cardinality, str],
        expects: Sequence[Any] = (),
        mapped_as: Optional[str] = None,
        readable: bool = True,
        writable: bool = True,
        required: bool = False,
        validate_if_empty: bool = False,
        included: bool = False,
        validators: Sequence[Callable] = (),
        getter: Optional[Callable[[Any], Any]] = None,
        setter: Optional[Callable[[Any, Any], None]] = None,
        adder: Optional[Callable[[Any, Any], None]] = None,
        clearer: Optional[Callable[[Any], None]] = None,
    ) -> None:
        if not key or not isinstance(key, str):
            raise InvalidSpecificationError(f"Invalid relationship key {key!r}")
        try:
            self.cardinality = Cardinality(cardinality)
        except ValueError:
            raise InvalidSpecificationError(f"Invalid cardinality {cardinality!r} for relationship '{key}'")
        if isinstance(expects, (str, type)):
            expects = [expects]
        self.key = key
        self.mapped_as = mapped_as or key
        self.expects = list(expects)
        self.readable = readable
        self.writable = writable
        self.required = required
        self.validate_if_empty = validate_if_empty
        self.included = included
        self.validators = list(validators)
        self._getter = getter or operator.attrgetter(self.mapped_as)
        self._setter = setter or _setter(self.mapped_as)
        self._adder = adder
        self._clearer = clearer

    @property
    def is_to_many(self) -> bool:
        return self.cardinality is Cardinality.TO_MANY

    def get(self, obj: Any) -> Any:
        """
        :return: the target object (to-one) or a list of target objects (to-many)
        """
        value = self._getter(obj)
        if self.is_to_many:
            return list(value) if value is not None else []
        return value

    def set(self, obj: Any, target: Any) -> None:
        self._setter(obj, target)

    def add(self, obj: Any, item: Any) -> None:
        if self._adder is not None:
            self._adder(obj, item)
            return
        collection = self._getter(obj)
        if collection is None:
            self._setter(obj, [item])
        else:
            collection.append(item)

    def clear(self, obj: Any) -> None:
        if self._clearer is not None:
            self._clearer(obj)
        elif not self.is_to_many:
            self._setter(obj, None)
        else:
            collection = self._getter(obj)
            if hasattr(collection, "clear"):
                collection.clear()
            else:
                self._setter(obj, [])

    def is_valid(self, value: Any, context: Any) -> ValidationResult:
        """
        :param value: resource identifier (or None) for to-one relationships, list of identifiers for to-many
        :param context: decode context
        """
        if self.is_to_many:
            return _run_validators(self.validators, self.key, list(value or []), context)
        if value is None:
            return _run_validators(self.validators, self.key, None, None, context)
        return _run_validators(self.validators, self.key, value.id, value.type, context)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.key} ({self.cardinality.value})>"


class ToOne(Relationship):
    def __init__(self, key: str, **kwargs: Any) -> None:
        super().__init__(key, Cardinality.TO_ONE, **kwargs)


class ToMany(Relationship):
    def __init__(self, key: str, **kwargs: Any) -> None:
        super().__init__(key, Cardinality.TO_MANY, **kwargs)


class ResourceSchema:
    """
    Base class of the resource schemas, subclasses declare the class attributes documented in the module docstring.
    Instances are created (once per registry) by the SchemaRegistry, the declared sequences
    are then available as ordered key -> strategy dicts.
    """

    resource_type: Optional[str] = None
    mapping_class: Optional[type] = None
    identifier: Union[str, Identifier] = "id"
    attributes: Any = ()
    relationships: Any = ()
    meta: Any = ()

    def __init__(self) -> None:
        cls = type(self)
        if not cls.resource_type or not isinstance(cls.resource_type, str):
            raise InvalidSpecificationError(f"{cls.__name__}.resource_type must be a non-empty string")
        if not isinstance(cls.mapping_class, type):
            raise InvalidSpecificationError(f"{cls.__name__}.mapping_class must be a class")

        identifier = cls.identifier
        self.identifier: Identifier = identifier if isinstance(identifier, Identifier) else Identifier(identifier)
        self.attributes: Dict[str, Attribute] = OrderedDict()
        self.relationships: Dict[str, Relationship] = OrderedDict()
        self.meta: Dict[str, Meta] = OrderedDict()
        for attribute in cls.attributes:
            self.add_attribute(attribute)
        for relationship in cls.relationships:
            self.add_relationship(relationship)
        for meta in cls.meta:
            self.add_meta(meta)
        jamap.log.debug(f"Created schema {self}")

    def add_attribute(self, attribute: Attribute) -> None:
        if not isinstance(attribute, Attribute):
            raise InvalidSpecificationError(f"{attribute!r} is not an Attribute")
        self._check_key(attribute.key)
        self.attributes[attribute.key] = attribute

    def add_relationship(self, relationship: Relationship) -> None:
        if not isinstance(relationship, Relationship):
            raise InvalidSpecificationError(f"{relationship!r} is not a Relationship")
        self._check_key(relationship.key)
        self.relationships[relationship.key] = relationship

    def add_meta(self, meta: Meta) -> None:
        if not isinstance(meta, Meta):
            raise InvalidSpecificationError(f"{meta!r} is not a Meta")
        if meta.key in self.meta:
            raise InvalidSpecificationError(f"Duplicate meta key '{meta.key}' in schema '{self.resource_type}'")
        self.meta[meta.key] = meta

    def _check_key(self, key: str) -> None:
        """
        Attributes and relationships share a namespace (the fields of the resource object)
        """
        if key in ("id", "type"):
            raise InvalidSpecificationError(f"'{key}' can't be used as a field key in schema '{self.resource_type}'")
        if key in self.attributes or key in self.relationships:
            raise InvalidSpecificationError(f"Duplicate field key '{key}' in schema '{self.resource_type}'")

    def get_resource_id(self, obj: Any) -> Optional[str]:
        return self.identifier.get_id(obj)

    def set_resource_id(self, obj: Any, resource_id: Optional[str]) -> None:
        self.identifier.set_id(obj, resource_id)

    def create_instance(self) -> Any:
        """
        Create an empty domain object
        """
        return self.mapping_class()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.resource_type}>"
