#
# Functions for api documentation: these generate the swagger 1.1 resource descriptors
#
# All generators are pure functions of the resource schema and configuration,
# the same configuration is used by the shaping stages so both agree on the exposed fields.
#
# pylint: disable=redefined-builtin,line-too-long,logging-format-interpolation
import inspect
from typing import Any, Dict, Iterable, List, Optional

import yaml
import sarest
from .config import get_config
from .errors import UnrecognizedTypeError, UnsupportedTypeError
from .model_config import ResourceConfig, normalize_verb
from .schema import FieldType, ResourceSchema, as_field_type
from .util import capitalize, excluded_fields

DOC_DELIMITER = "---"  # used as delimiter between the yaml configuration and regular documentation

SWAGGER_TYPES = {
    FieldType.STRING: "string",
    FieldType.NUMBER: "double",
    FieldType.DATE: "Date",
    FieldType.BOOLEAN: "boolean",
    FieldType.IDENTIFIER: "string",
    FieldType.ARRAY: "Array",
}
UNSUPPORTED_TYPES = (FieldType.BINARY, FieldType.MIXED)

# (verb, plural) -> whether the operation is documented
# head is only used for discovery, post creates (collection only), put replaces (instance only)
OPERATION_POLICY = {
    ("head", False): False,
    ("head", True): False,
    ("get", False): True,
    ("get", True): True,
    ("post", False): False,
    ("post", True): True,
    ("put", False): True,
    ("put", True): False,
    ("delete", False): True,
    ("delete", True): True,
}


def parse_object_doc(object: Any) -> Dict[str, Any]:
    """
    Parse the yaml description from the documented objects (the part of the docstring before "---")
    """
    api_doc = {}
    obj_doc = str(inspect.getdoc(object))
    raw_doc = obj_doc.split(DOC_DELIMITER)[0]

    try:
        yaml_doc = yaml.safe_load(raw_doc)
    except yaml.YAMLError as exc:
        sarest.log.error(f"Failed to parse documentation {raw_doc} ({exc})")
        yaml_doc = {"description": raw_doc}

    if isinstance(yaml_doc, dict):
        api_doc.update(yaml_doc)

    return api_doc


def type_for(field_type: Any) -> str:
    """
    Convert a field type into a swagger type
    """
    field_type = as_field_type(field_type)
    if field_type in UNSUPPORTED_TYPES:
        raise UnsupportedTypeError(f"No descriptor type for {field_type.value} fields")
    try:
        return SWAGGER_TYPES[field_type]
    except (KeyError, TypeError):
        raise UnrecognizedTypeError(f"Unrecognized type: {field_type}")


def generate_model(schema: ResourceSchema, config: ResourceConfig) -> Dict[str, Any]:
    """
    Generate the swagger model definition of a resource, deselected fields are kept private
    """
    definition = {"id": capitalize(config.singular), "properties": {}}
    excluded = excluded_fields(config.select)

    for name, field in schema.items():
        if field.selected is False or name in excluded or name in config.deselected:
            continue

        property = {"type": type_for(field.type), "required": bool(field.required) or name == schema.primary_key}

        # an enumeration takes precedence over the range
        if field.enum:
            property["allowableValues"] = {"valueType": "LIST", "values": list(field.enum)}
        elif field.range:
            property["allowableValues"] = {"valueType": "RANGE"}

        if field.min is not None:
            property["allowableValues"]["min"] = field.min
        if field.max is not None:
            property["allowableValues"]["max"] = field.max

        definition["properties"][name] = property

    return definition


def generate_parameters(config: ResourceConfig, plural: bool) -> List[Dict[str, Any]]:
    """
    Generate the parameter list for the singular (instance) or plural (collection) operations
    """
    parameters = []

    if not plural:
        parameters.append(
            {
                "paramType": "path",
                "name": "id",
                "description": f"The ID of a {config.singular}",
                "dataType": "string",
                "required": True,
                "allowMultiple": False,
            }
        )

    if plural:
        parameters.append(
            {
                "paramType": "query",
                "name": "skip",
                "description": "How many documents to skip.",
                "dataType": "int",
                "required": False,
                "allowMultiple": False,
            }
        )
        parameters.append(
            {
                "paramType": "query",
                "name": "limit",
                "description": "The maximum number of documents to send.",
                "dataType": "int",
                "required": False,
                "allowMultiple": False,
            }
        )

    parameters.append(
        {
            "paramType": "query",
            "name": "select",
            "description": "Select which paths will be returned by the query.",
            "dataType": "string",
            "required": False,
            "allowMultiple": False,
        }
    )
    parameters.append(
        {
            "paramType": "query",
            "name": "populate",
            "description": "Specify which paths to populate.",
            "dataType": "string",
            "required": False,
            "allowMultiple": False,
        }
    )
    return parameters


def generate_error_responses(config: ResourceConfig, plural: bool) -> List[Dict[str, Any]]:
    if plural:
        return [{"code": 404, "reason": f"No {config.plural} matched that query."}]
    return [{"code": 404, "reason": f"No {config.singular} was found with that ID."}]


def is_documented(verb: str, plural: bool) -> bool:
    """
    :return: whether the verb is documented for singular/plural routes, unknown verbs never are
    """
    return OPERATION_POLICY.get((normalize_verb(verb), bool(plural)), False)


def generate_operations(config: ResourceConfig, plural: bool) -> List[Dict[str, Any]]:
    """
    Generate the operations of the instance route (plural False) or collection route (plural True)
    """
    operations = []
    title_plural = capitalize(config.plural)
    title_singular = capitalize(config.singular)

    for verb in config.active_verbs():
        if not is_documented(verb, plural):
            continue
        # use the full word, eg. "del" => "delete"
        verb = normalize_verb(verb)

        operation = {"httpMethod": verb.upper()}
        if plural:
            operation["nickname"] = verb + title_plural
            operation["responseClass"] = f"List[{title_singular}]"
            operation["summary"] = f"{capitalize(verb)} some {config.plural}"
        else:
            operation["nickname"] = verb + title_singular + "ById"
            operation["responseClass"] = title_singular
            operation["summary"] = f"{capitalize(verb)} a {config.singular} by its unique ID"
        operation["parameters"] = generate_parameters(config, plural)
        operation["errorResponses"] = generate_error_responses(config, plural)
        operations.append(operation)

    return operations


def generate_api_definition(
    schema: ResourceSchema, config: ResourceConfig, base_path: Optional[str] = None, api_version: Optional[str] = None
) -> Dict[str, Any]:
    """
    Generate the swagger API declaration of a resource

    :param base_path: url the api paths are relative to, defaults to the BASE_PATH setting
    :param api_version: defaults to the API_VERSION setting
    """
    model_name = capitalize(config.singular)
    definition = {
        "apiVersion": api_version or get_config("API_VERSION"),
        "swaggerVersion": get_config("SWAGGER_VERSION"),
        "basePath": base_path or get_config("BASE_PATH"),
        "resourcePath": f"/{config.plural}",
        "apis": [],
        "models": {},
    }

    definition["models"][model_name] = generate_model(schema, config)

    # Instance route
    definition["apis"].append(
        {
            "path": f"/{config.plural}/{{id}}",
            "description": f"Operations about a given {config.singular}",
            "operations": generate_operations(config, plural=False),
        }
    )

    # Collection route
    definition["apis"].append(
        {
            "path": f"/{config.plural}",
            "description": f"Operations about {config.plural}",
            "operations": generate_operations(config, plural=True),
        }
    )

    return definition


def generate_resource_listing(configs: Iterable[ResourceConfig], api_version: Optional[str] = None) -> Dict[str, Any]:
    """
    Generate the swagger resource listing: one entry per exposed resource, pointing to its API declaration
    """
    return {
        "apiVersion": api_version or get_config("API_VERSION"),
        "swaggerVersion": get_config("SWAGGER_VERSION"),
        "apis": [{"path": f"/{config.plural}", "description": config.description or f"Operations about {config.plural}"} for config in configs],
    }
