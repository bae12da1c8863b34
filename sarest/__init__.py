# flake8: noqa: F401
#
# sarest: expose SQLAlchemy models as REST resources with shaped queries and swagger descriptors
#
from .sarest_init import DB, log, SAREST
from . import config
from .errors import (
    MalformedInputError,
    ForbiddenSelectionError,
    UnsupportedConfigurationError,
    UnsupportedTypeError,
    UnrecognizedTypeError,
    GenericError,
    NotFoundError,
)
from .schema import FieldType, FieldDescriptor, ResourceSchema, schema_from_model
from .model_config import ResourceConfig
from .query import ShapedQuery
from .resource import Resource
from .shaper import RequestShaper, ShapingPipeline, parse_structured
from .swagger_doc import generate_api_definition, generate_model, generate_operations, type_for
from .api import SARESTAPI
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "SAREST",
    "SARESTAPI",
    "Resource",
    # schema & configuration:
    "FieldType",
    "FieldDescriptor",
    "ResourceSchema",
    "ResourceConfig",
    "schema_from_model",
    # query shaping:
    "ShapedQuery",
    "RequestShaper",
    "ShapingPipeline",
    "parse_structured",
    # descriptors:
    "generate_api_definition",
    "generate_model",
    "generate_operations",
    "type_for",
    # Errors:
    "MalformedInputError",
    "ForbiddenSelectionError",
    "UnsupportedConfigurationError",
    "UnsupportedTypeError",
    "UnrecognizedTypeError",
    "GenericError",
    "NotFoundError",
)
