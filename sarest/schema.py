"""
Resource schema: the ordered field descriptors of an exposed resource.

The schema is normally derived from a declarative SQLAlchemy model with `schema_from_model`.
Column `info` keys can be used to customize the generated descriptors and the field visibility:

    secret = db.Column(db.String, info={"selected": False})        # never returned unless forced with "+secret"
    age = db.Column(db.Integer, info={"min": 0, "max": 120})       # documented as a RANGE
    name = db.Column(db.String, nullable=False)                    # required
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, fields as dataclass_fields
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple, Union

import sqlalchemy
from sqlalchemy import types as sqltypes
import sarest


class FieldType(str, enum.Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    BINARY = "binary"
    IDENTIFIER = "identifier"
    MIXED = "mixed"
    ARRAY = "array"


# The order matters: Enum is a String subclass, PickleType wraps a LargeBinary
SQLA_TYPE_MAP = (
    (sqltypes.Enum, FieldType.STRING),
    (sqltypes.Boolean, FieldType.BOOLEAN),
    (sqltypes.Integer, FieldType.NUMBER),
    (sqltypes.Numeric, FieldType.NUMBER),
    (sqltypes.DateTime, FieldType.DATE),
    (sqltypes.Date, FieldType.DATE),
    (sqltypes.Time, FieldType.DATE),
    (sqltypes.PickleType, FieldType.MIXED),
    (sqltypes.JSON, FieldType.MIXED),
    (sqltypes.LargeBinary, FieldType.BINARY),
    (sqltypes.ARRAY, FieldType.ARRAY),
    (sqltypes.String, FieldType.STRING),
    (sqltypes.Uuid, FieldType.STRING),
)


def as_field_type(value: Any) -> Union[FieldType, Any]:
    """
    Convert a type name to a FieldType, unknown names are returned as-is
    (these will be refused when the descriptor is generated)
    """
    if isinstance(value, FieldType):
        return value
    try:
        return FieldType(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Description of a single resource field
    """

    type: Union[FieldType, str] = FieldType.STRING
    required: bool = False
    enum: Optional[Tuple[Any, ...]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    # included in default projections unless explicitly deselected
    selected: bool = True

    def __post_init__(self):
        object.__setattr__(self, "type", as_field_type(self.type))
        if self.enum is not None:
            object.__setattr__(self, "enum", tuple(self.enum))

    @property
    def range(self) -> bool:
        """
        :return: whether numeric bounds have been declared
        """
        return self.min is not None or self.max is not None

    @classmethod
    def from_dict(cls, definition: Mapping) -> "FieldDescriptor":
        known = {f.name for f in dataclass_fields(cls)}
        return cls(**{k: v for k, v in definition.items() if k in known})


class ResourceSchema(Mapping):
    """
    Ordered mapping of field name -> FieldDescriptor

    :param fields: mapping of field name -> FieldDescriptor (or a dict with the descriptor fields)
    :param primary_key: name of the primary identifier field, always documented as required
    :param relationships: names of the related resources that can be populated
    """

    def __init__(self, fields: Optional[Mapping] = None, primary_key: str = "id", relationships: Sequence[str] = ()) -> None:
        self._fields: Dict[str, FieldDescriptor] = {}
        for name, definition in (fields or {}).items():
            if not isinstance(definition, FieldDescriptor):
                definition = FieldDescriptor.from_dict(definition)
            self._fields[name] = definition
        self.primary_key = primary_key
        self.relationships = tuple(relationships)

    def __getitem__(self, name: str) -> FieldDescriptor:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"<ResourceSchema {list(self._fields)}>"

    @property
    def deselected(self) -> set:
        """
        :return: the fields that are hidden from default projections
        """
        return {name for name, field in self._fields.items() if field.selected is False}


def sqla_field_type(column: sqlalchemy.Column) -> Union[FieldType, str]:
    """
    Map an SQLAlchemy column to a FieldType
    Primary and foreign keys are identifiers, unknown column types are returned by name
    """
    if column.primary_key or column.foreign_keys:
        return FieldType.IDENTIFIER

    for sqla_type, field_type in SQLA_TYPE_MAP:
        if isinstance(column.type, sqla_type):
            return field_type

    impl = getattr(column.type, "impl", None)
    for sqla_type, field_type in SQLA_TYPE_MAP:
        if impl is not None and isinstance(impl, sqla_type):
            return field_type

    type_name = type(column.type).__name__.lower()
    sarest.log.debug(f"No field type for column {column.name} ({type_name})")
    return type_name


def field_from_column(column: sqlalchemy.Column) -> FieldDescriptor:
    """
    :param column: SQLAlchemy column
    :return: FieldDescriptor, customized with the column `info` dict
    """
    info = column.info
    required = info.get("required")
    if required is None:
        required = not column.nullable and column.default is None and column.server_default is None and not column.primary_key

    enum_values = info.get("enum")
    if enum_values is None and isinstance(column.type, sqltypes.Enum):
        enum_values = column.type.enums

    return FieldDescriptor(
        type=sqla_field_type(column),
        required=bool(required),
        enum=enum_values or None,
        min=info.get("min"),
        max=info.get("max"),
        selected=info.get("selected", True),
    )


def schema_from_model(model: Any) -> ResourceSchema:
    """
    Create the resource schema of a declarative SQLAlchemy model
    The fields are ordered like the mapped columns, the relationships can be populated

    :param model: SQLAlchemy model class
    :return: ResourceSchema
    """
    mapper = sqlalchemy.inspect(model)
    fields = {}
    for column_attr in mapper.column_attrs:
        if column_attr.key.startswith("_"):
            continue
        fields[column_attr.key] = field_from_column(column_attr.columns[0])

    primary_keys = [mapper.get_property_by_column(column).key for column in mapper.primary_key]
    primary_key = primary_keys[0] if primary_keys else "id"
    if len(primary_keys) > 1:
        sarest.log.warning(f"Composite primary key for {model.__name__}, using {primary_key} as the identifier")

    relationships = [rel.key for rel in mapper.relationships]
    return ResourceSchema(fields, primary_key=primary_key, relationships=relationships)
