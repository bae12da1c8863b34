"""
Resource: an SQLAlchemy model exposed by the api, together with its schema and configuration

The configuration can be passed as keyword arguments or in the yaml part of the model docstring:

    class Widget(db.Model):
        '''
            description: Widgets
            plural: widgets
            select: -secret
            verbs: [get, post, delete]
        '''

Keyword arguments take precedence over the docstring.
"""

from collections.abc import Mapping
from typing import Any, Dict, Optional

import inflect
import sqlalchemy
import sarest
from .attr_parse import parse_attr
from .errors import MalformedInputError
from .model_config import ResourceConfig
from .query import ShapedQuery
from .schema import ResourceSchema, schema_from_model
from .swagger_doc import generate_api_definition, parse_object_doc
from .util import excluded_fields

CONFIG_KEYS = ("singular", "plural", "select", "deselected", "verbs", "restrict", "description")

inflect_engine = inflect.engine()


class Resource:
    """
    :param model: SQLAlchemy model class
    :param schema: resource schema, derived from the model when omitted
    :param config: ResourceConfig fields

    `registry` maps the models exposed by the same api to their Resource,
    populated relationships are shown the way their own resource shows them
    """

    def __init__(self, model, schema: Optional[ResourceSchema] = None, **config) -> None:
        self.model = model
        self.registry: Dict[Any, "Resource"] = {}
        self.schema = schema if schema is not None else schema_from_model(model)

        settings = self.docstring_config(model)
        settings.update({k: v for k, v in config.items() if k in CONFIG_KEYS})
        unknown = set(config) - set(CONFIG_KEYS)
        if unknown:
            sarest.log.warning(f"Ignoring unknown configuration for {model.__name__}: {sorted(unknown)}")

        singular = settings.pop("singular", None) or model.__name__.lower()
        plural = settings.pop("plural", None) or inflect_engine.plural(singular)
        config = ResourceConfig(singular=singular, plural=plural, **settings)

        # fields hidden by the schema or by the default projection can't be selected either
        deselected = set(config.deselected) | self.schema.deselected | excluded_fields(config.select)
        self.config = config.with_overrides({"deselected": frozenset(deselected)})

    def __repr__(self):
        return f"<Resource {self.config.plural}>"

    @staticmethod
    def docstring_config(model) -> Dict[str, Any]:
        """
        :return: the configuration found in the model's own docstring (inherited docstrings are ignored)
        """
        if not model.__dict__.get("__doc__"):
            return {}
        return {k: v for k, v in parse_object_doc(model).items() if k in CONFIG_KEYS}

    @property
    def singular(self) -> str:
        return self.config.singular

    @property
    def plural(self) -> str:
        return self.config.plural

    def related_deselected(self, path: str) -> frozenset:
        """
        :param path: relationship name
        :return: the fields the related resource never exposes,
                 from its exposed configuration when available, else from its schema
        """
        related_model = sqlalchemy.inspect(self.model).relationships[path].mapper.class_
        related = self.registry.get(related_model)
        if related is not None:
            return related.config.deselected
        return frozenset(schema_from_model(related_model).deselected)

    def related_hidden(self) -> Dict[str, frozenset]:
        """
        :return: relationship name -> deselected fields of the related resource
        """
        return {rel.key: self.related_deselected(rel.key) for rel in sqlalchemy.inspect(self.model).relationships}

    def query(self) -> ShapedQuery:
        """
        :return: a new query builder, deselected fields are only loaded when forced
        """
        return ShapedQuery(self.model, hidden=self.config.deselected, related_hidden=self.related_hidden())

    def api_definition(self, base_path: Optional[str] = None) -> Dict[str, Any]:
        return generate_api_definition(self.schema, self.config, base_path=base_path)

    def assign(self, instance, attributes: Mapping) -> Any:
        """
        Set the (parsed) attribute values on a model instance
        """
        if not isinstance(attributes, Mapping):
            raise MalformedInputError(f"Invalid document {attributes}")
        columns = {attr.key: attr.columns[0] for attr in sqlalchemy.inspect(self.model).column_attrs}
        unknown = [name for name in attributes if name not in columns]
        if unknown:
            raise MalformedInputError(f"Invalid {self.singular} attributes: {', '.join(unknown)}")
        for name, value in attributes.items():
            setattr(instance, name, parse_attr(columns[name], value))
        return instance

    def create(self, attributes: Mapping) -> Any:
        return self.assign(self.model(), attributes)
