"""
Create resource schemas from SQLAlchemy declarative models

    class Person(Base):
        __tablename__ = "people"
        id = Column(Integer, primary_key=True)
        name = Column(String, nullable=False)
        articles = relationship("Article", back_populates="author")

    PersonSchema = schema_from_model(Person)
    registry.register(PersonSchema)

- the primary key column is the identifier, the JSON:API id is converted to the column python type when decoding
- the other mapped columns are attributes, foreign key columns are read-only (they're set through the relationship)
- Date and DateTime columns are DateAttributes
- columns with `expose = False` are skipped, the `permissions` attribute of a column ("r", "w" or "rw") sets
  the readable and writable flags
- MANYTOONE relationships are ToOne relationships, ONETOMANY and MANYTOMANY relationships are ToMany
- relationships expect the schema registered under the table name of the target model

Only the mapper is inspected, sessions and queries are the responsibility of the application.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from sqlalchemy import Date, DateTime, inspect as sqla_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import MANYTOMANY, MANYTOONE, ONETOMANY

import jamap
from .errors import InvalidSpecificationError
from .schema import Attribute, DateAttribute, Identifier, Relationship, ResourceSchema, ToMany, ToOne


def _python_type(column: Any) -> Optional[type]:
    try:
        return column.type.python_type
    except NotImplementedError:
        # custom column types don't have to implement python_type
        return None


def _is_required(column: Any) -> bool:
    return not column.nullable and column.default is None and column.server_default is None


def _identifier(mapper: Any) -> Identifier:
    if len(mapper.primary_key) != 1:
        raise InvalidSpecificationError(f"{mapper.class_.__name__}: only models with a single primary key column are supported")
    column = mapper.primary_key[0]
    key = mapper.get_property_by_column(column).key
    converter = _python_type(column)
    if converter is str:
        converter = None
    return Identifier(key, converter=converter)


def _attributes(mapper: Any, exclude: Iterable[str]) -> List[Attribute]:
    result = []
    for prop in mapper.column_attrs:
        if prop.key in exclude or prop.key.startswith("_"):
            continue
        column = prop.columns[0]
        if column.primary_key or not getattr(column, "expose", True):
            continue
        permissions = getattr(column, "permissions", "rw")
        kwargs: Dict[str, Any] = dict(
            readable="r" in permissions,
            writable="w" in permissions and not column.foreign_keys,
            required=_is_required(column) and not column.foreign_keys,
        )
        if isinstance(column.type, DateTime):
            result.append(DateAttribute(prop.key, **kwargs))
        elif isinstance(column.type, Date):
            result.append(DateAttribute(prop.key, date_only=True, **kwargs))
        else:
            result.append(Attribute(prop.key, **kwargs))
    return result


def _relationships(mapper: Any, expects: Dict[str, Sequence[Any]], exclude: Iterable[str]) -> List[Relationship]:
    result: List[Relationship] = []
    for rel in mapper.relationships:
        if rel.key in exclude or not getattr(rel, "expose", True):
            continue
        rel_expects = expects.get(rel.key) or [rel.target.name]
        if rel.direction == MANYTOONE or not rel.uselist:
            # one-to-one relationships are ONETOMANY with uselist=False
            result.append(ToOne(rel.key, expects=rel_expects))
        elif rel.direction in (ONETOMANY, MANYTOMANY):
            result.append(ToMany(rel.key, expects=rel_expects))
        else:  # pragma: no cover
            jamap.log.error(f"Unknown relationship direction for relationship {rel.key}: {rel.direction}")
    return result


def schema_from_model(
    model: type,
    resource_type: Optional[str] = None,
    expects: Optional[Dict[str, Sequence[Any]]] = None,
    exclude: Iterable[str] = (),
) -> Type[ResourceSchema]:
    """
    :param model: SQLAlchemy declarative model
    :param resource_type: JSON:API type, defaults to the table name
    :param expects: relationship key -> expected schema keys, overrides the target table names
    :param exclude: column and relationship keys that shouldn't be exposed
    :return: ResourceSchema subclass
    """
    try:
        mapper = sqla_inspect(model)
    except NoInspectionAvailable:
        raise InvalidSpecificationError(f"{model!r} is not a SQLAlchemy mapped class")

    exclude = set(exclude)
    resource_type = resource_type or getattr(model, "__tablename__", None) or model.__name__
    attrs = dict(
        resource_type=resource_type,
        mapping_class=model,
        identifier=_identifier(mapper),
        attributes=tuple(_attributes(mapper, exclude)),
        relationships=tuple(_relationships(mapper, expects or {}, exclude)),
        __module__=model.__module__,
    )
    jamap.log.debug(f"Creating schema for {model.__name__} ({resource_type})")
    return type(f"{model.__name__}Schema", (ResourceSchema,), attrs)
