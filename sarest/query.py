# ShapedQuery: the request-scoped query builder configured by the shaping stages
#
# The builder accumulates the shaping instructions and compiles them to an SQLAlchemy `Select`:
# - where: filter conditions (https://docs.mongodb.com/manual/reference/operator/query/ style subset)
# - sort: order_by
# - skip/limit: offset/limit
# - select: load_only projection
# - populate: selectinload of relationships, optionally restricted with load_only
#
# Every method returns the builder so calls can be chained.
# Visibility is not enforced here, the shaper rejects forbidden selections before they reach the builder.
#
# pylint: disable=logging-format-interpolation
import operator
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, List, Optional

import sqlalchemy
from sqlalchemy.orm import load_only, selectinload
import sarest
from .config import get_config
from .errors import MalformedInputError
from .util import split_fields, unique

OPERATORS = {
    "$eq": operator.eq,
    "$ne": operator.ne,
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
    "$in": lambda column, operand: column.in_(operand),
    "$nin": lambda column, operand: column.not_in(operand),
}
LIST_OPERATORS = ("$in", "$nin")
DESCENDING = (-1, "-1", "desc", "descending")


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float))


def scalar_list(name: str, operand: Any) -> list:
    """
    :return: operand, if it's a list of scalars
    """
    if not isinstance(operand, list) or not all(is_scalar(item) for item in operand):
        raise MalformedInputError(f"{name} requires a list of values")
    return operand


def condition_expressions(column, value) -> list:
    """
    :param column: model attribute
    :param value: condition value: scalar, list or dict of operators
    :return: list of sqlalchemy expressions
    """
    if isinstance(value, Mapping):
        expressions = []
        for op_name, operand in value.items():
            op = OPERATORS.get(op_name)
            if op is None:
                raise MalformedInputError(f"Invalid condition operator {op_name}")
            if op_name in LIST_OPERATORS:
                operand = scalar_list(op_name, operand)
            elif not is_scalar(operand):
                raise MalformedInputError(f"{op_name} requires a single value")
            expressions.append(op(column, operand))
        return expressions
    if isinstance(value, list):
        return [column.in_(scalar_list(column.key, value))]
    if value is None:
        return [column.is_(None)]
    if not is_scalar(value):
        raise MalformedInputError(f"Invalid condition value for {column.key}")
    return [column == value]


def to_int(value: Any, name: str) -> int:
    """
    :return: value as a non-negative integer
    """
    if isinstance(value, bool):
        raise MalformedInputError(f"Invalid {name} value: {value}")
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise MalformedInputError(f"Invalid {name} value: {value}")
    if result < 0:
        raise MalformedInputError(f"{name} must not be negative: {value}")
    return result


def visible_fields(model, spec: Optional[str] = None, hidden=()) -> List[str]:
    """
    Apply a projection string to the columns of `model`

    :param model: sqla model
    :param spec: select string, eg. "name age" or "-secret" or "+password"
    :param hidden: fields that are only returned when forced with "+"
    :return: names of the columns to load, in column order, primary key(s) included
    """
    mapper = sqlalchemy.inspect(model)
    names = [attr.key for attr in mapper.column_attrs]
    pk_names = [mapper.get_property_by_column(column).key for column in mapper.primary_key]
    include, exclude, forced = [], set(), set()
    for token in split_fields(spec):
        if token.startswith("-"):
            exclude.add(token[1:])
            forced.discard(token[1:])
        elif token.startswith("+"):
            forced.add(token[1:])
            exclude.discard(token[1:])
        else:
            include.append(token)
    return project(names, pk_names, include, exclude, forced, hidden)


def project(names, pk_names, include, exclude, forced, hidden) -> List[str]:
    if include:
        result = [name for name in names if name in include or name in forced]
    else:
        result = list(names)
    result = [name for name in result if name not in exclude and (name not in hidden or name in forced)]
    # the identifier is always loaded
    return [name for name in names if name in result or name in pk_names]


@dataclass
class Population:
    """
    A relationship that will be loaded along with the results
    """

    path: str
    select: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"path": self.path}
        if self.select:
            result["select"] = self.select
        return result


class ShapedQuery:
    """
    Chainable query builder for a single request

    :param model: sqla model class to be queried
    :param hidden: fields that are not loaded unless forced with a "+" select
    :param related_hidden: relationship name -> fields of the related resource that are not loaded unless forced
    """

    def __init__(self, model, hidden=(), related_hidden=None) -> None:
        self.model = model
        self.hidden = frozenset(hidden)
        self.related_hidden = dict(related_hidden or {})
        mapper = sqlalchemy.inspect(model)
        self._columns = {attr.key: getattr(model, attr.key) for attr in mapper.column_attrs}
        self._relationships = {rel.key: rel for rel in mapper.relationships}
        self._pk_names = [mapper.get_property_by_column(column).key for column in mapper.primary_key]
        self.conditions = {}
        self._expressions = []
        self._order_by = []
        self._offset = None
        self._limit = None
        self._include = []
        self._exclude = set()
        self._forced = set()
        self._populate: List[Population] = []

    def __repr__(self):
        return f"<ShapedQuery {self.model.__name__} {self.state()}>"

    def where(self, conditions: Mapping) -> "ShapedQuery":
        """
        Add filter conditions, eg. {"color": "red", "age": {"$gte": 18}, "size": ["S", "M"]}
        """
        if not isinstance(conditions, Mapping):
            raise MalformedInputError(f"Conditions must be an object, not {type(conditions).__name__}")
        expressions = []
        for name, value in conditions.items():
            column = self._columns.get(name)
            if column is None:
                raise MalformedInputError(f"Invalid condition path {name}")
            expressions += condition_expressions(column, value)
        self._expressions += expressions
        self.conditions.update(conditions)
        return self

    def where_id(self, object_id: Any) -> "ShapedQuery":
        """
        Restrict the query to the instance with the given identifier
        """
        column = self._columns[self._pk_names[0]]
        try:
            object_id = column.type.python_type(object_id)
        except (NotImplementedError, TypeError, ValueError) as exc:
            sarest.log.debug(f"Identifier {object_id} not converted ({exc})")
        self._expressions.append(column == object_id)
        return self

    def sort(self, spec: Any) -> "ShapedQuery":
        """
        :param spec: "name -age", "name,-age" or {"name": 1, "age": -1}
        """
        if isinstance(spec, Mapping):
            tokens = [("-" if direction in DESCENDING else "") + name for name, direction in spec.items()]
        else:
            tokens = split_fields(spec)
        for token in tokens:
            reverse = token.startswith("-")
            name = token.lstrip("+-")
            column = self._columns.get(name)
            if column is None:
                sarest.log.warning(f"{self.model.__name__} has no sortable attribute {name}")
                continue
            self._order_by.append(column.desc() if reverse else column.asc())
        return self

    def skip(self, value: Any) -> "ShapedQuery":
        self._offset = to_int(value, "skip")
        return self

    def limit(self, value: Any) -> "ShapedQuery":
        limit = to_int(value, "limit")
        max_limit = int(get_config("MAX_PAGE_LIMIT"))
        if limit > max_limit:
            sarest.log.warning(f"limit {limit} exceeds MAX_PAGE_LIMIT, using {max_limit}")
            limit = max_limit
        self._limit = limit
        return self

    def select(self, spec: Optional[str]) -> "ShapedQuery":
        """
        Merge a projection string into the current projection:
        - "name age": only load these fields
        - "-secret": don't load secret
        - "+password": load password even if it's hidden
        """
        for token in split_fields(spec):
            name = token.lstrip("+-")
            if name not in self._columns:
                sarest.log.debug(f"{self.model.__name__} has no attribute {name}, ignored in select")
            if token.startswith("-"):
                self._exclude.add(name)
                self._forced.discard(name)
            elif token.startswith("+"):
                self._forced.add(name)
                self._exclude.discard(name)
            else:
                self._include.append(name)
        self._include = unique(self._include)
        return self

    def populate(self, entry: Any) -> "ShapedQuery":
        """
        :param entry: relationship path(s) string or a {"path": .., "select": ..} mapping
        """
        if isinstance(entry, Population):
            entries = [entry]
        elif isinstance(entry, str):
            entries = [Population(path) for path in split_fields(entry)]
        elif isinstance(entry, Mapping) and isinstance(entry.get("path"), str):
            entries = [Population(entry["path"], entry.get("select"))]
        else:
            raise MalformedInputError(f"Invalid populate entry {entry}")

        for population in entries:
            if population.path not in self._relationships:
                sarest.log.warning(f"Invalid relationship : {self.model.__name__}.{population.path}")
                continue
            self._populate.append(population)
        return self

    def projected_fields(self) -> List[str]:
        """
        :return: the fields that will be loaded and returned
        """
        return project(list(self._columns), self._pk_names, self._include, self._exclude, self._forced, self.hidden)

    def related_model(self, path: str):
        return self._relationships[path].mapper.class_

    def related_fields(self, population: Population) -> List[str]:
        """
        :return: the fields of the populated relationship that will be returned
        """
        model = self.related_model(population.path)
        hidden = {column.key for column in sqlalchemy.inspect(model).column_attrs if column.columns[0].info.get("selected") is False}
        hidden |= set(self.related_hidden.get(population.path, ()))
        return visible_fields(model, population.select, hidden)

    def state(self) -> dict:
        """
        :return: a summary of the accumulated instructions, used for logging and tests
        """
        return {
            "conditions": dict(self.conditions),
            "sort": [str(clause) for clause in self._order_by],
            "skip": self._offset,
            "limit": self._limit,
            "select": self.projected_fields(),
            "populate": [population.to_dict() for population in self._populate],
        }

    @property
    def statement(self) -> sqlalchemy.Select:
        """
        :return: the sqla select statement
        """
        columns = [self._columns[name] for name in self.projected_fields()]
        stmt = sqlalchemy.select(self.model).options(load_only(*columns))
        for population in self._populate:
            related_model = self.related_model(population.path)
            related_columns = [getattr(related_model, name) for name in self.related_fields(population)]
            loader = selectinload(getattr(self.model, population.path))
            if related_columns:
                loader = loader.load_only(*related_columns)
            stmt = stmt.options(loader)
        if self._expressions:
            stmt = stmt.where(*self._expressions)
        if self._order_by:
            stmt = stmt.order_by(*self._order_by)
        if self._offset:
            stmt = stmt.offset(self._offset)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    def all(self, session) -> list:
        return list(session.scalars(self.statement).all())

    def first(self, session):
        return session.scalars(self.statement.limit(1)).first()

    def count(self, session) -> int:
        stmt = sqlalchemy.select(sqlalchemy.func.count()).select_from(self.model)
        if self._expressions:
            stmt = stmt.where(*self._expressions)
        return session.scalar(stmt)

    def serialize(self, instance) -> dict:
        """
        :param instance: query result
        :return: dict with the projected fields and the populated relationships
        """
        result = {name: getattr(instance, name) for name in self.projected_fields()}
        for population in self._populate:
            related = getattr(instance, population.path)
            fields = self.related_fields(population)
            if related is None:
                result[population.path] = None
            elif self._relationships[population.path].uselist:
                result[population.path] = [{name: getattr(item, name) for name in fields} for item in related]
            else:
                result[population.path] = {name: getattr(related, name) for name in fields}
        return result
