"""
Request shaping: translate the request parameters into query builder instructions

Field visibility protection overrides all client supplied shaping:
- a select containing "+" (forcing a hidden field) is refused
- a select naming a deselected field is refused
- populating a deselected path, or populating with a "+" sub-select, is refused
- a populate sub-select naming a field hidden by the related resource is refused

The shaping steps are exposed as pipeline stages with the signature

    stage(request, response, proceed)

A stage calls proceed() when it's done or proceed(error) to abort the request.
`request.sarest` holds the request-scoped ShapingContext (resource, query builder, conditions).
"""

import json
from collections.abc import Mapping
from functools import wraps
from typing import Any, Callable, Iterable, List, Optional

import sarest
from .errors import SARESTError, ForbiddenSelectionError, GenericError, MalformedInputError, UnsupportedConfigurationError
from .model_config import ResourceConfig
from .util import included_fields, split_fields

FORBIDDEN_SELECTION = "Including excluded fields is not permitted."


def parse_structured(raw: Any, name: str) -> Any:
    """
    :param raw: json string, or an already parsed value
    :param name: parameter name, used in the error message
    :return: parsed value
    """
    if not isinstance(raw, (str, bytes)):
        return raw
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise MalformedInputError(f"Invalid {name} parameter: {exc}")


def is_set(value: Any) -> bool:
    return value is not None and value != ""


class RequestShaper:
    """
    Apply the shaping parameters of a request to a query builder

    :param config: configuration of the requested resource
    :param related_hidden: relationship name -> fields of the related resource that can't be populated
    """

    def __init__(self, config: ResourceConfig, related_hidden: Optional[Mapping] = None) -> None:
        self.config = config
        self.related_hidden = dict(related_hidden or {})

    @classmethod
    def for_resource(cls, resource) -> "RequestShaper":
        related_hidden = resource.related_hidden() if hasattr(resource, "related_hidden") else None
        return cls(resource.config, related_hidden)

    def apply_conditions(self, request, builder) -> Optional[dict]:
        """
        Parse the conditions parameter and use it as the query filter
        :return: the parsed conditions
        """
        if not is_set(request.conditions):
            return None
        conditions = parse_structured(request.conditions, "conditions")
        if not isinstance(conditions, Mapping):
            raise MalformedInputError("conditions must be an object")
        builder.where(conditions)
        return conditions

    def apply_sort(self, request, builder) -> None:
        if is_set(request.sort):
            builder.sort(request.sort)

    def apply_skip(self, request, builder) -> None:
        if is_set(request.skip):
            builder.skip(request.skip)

    def apply_limit(self, request, builder) -> None:
        if is_set(request.limit):
            builder.limit(request.limit)

    def apply_select(self, request, builder) -> None:
        select = request.select
        if not is_set(select):
            return
        if "+" in select:
            raise ForbiddenSelectionError(FORBIDDEN_SELECTION)
        forbidden = [name for name in included_fields(select) if name in self.config.deselected]
        if forbidden:
            raise ForbiddenSelectionError(f"{FORBIDDEN_SELECTION} ({', '.join(forbidden)})")
        builder.select(select)

    def populate_entries(self, raw: Any) -> List[Any]:
        populate = parse_structured(raw, "populate")
        if not isinstance(populate, list):
            populate = [populate]
        return populate

    def check_population(self, entry: Any) -> None:
        """
        Refuse populating deselected paths, "+" sub-selects
        and sub-selects naming fields the related resource doesn't expose
        """
        if isinstance(entry, Mapping):
            path, select = entry.get("path"), entry.get("select")
        else:
            path, select = entry, None
        if not isinstance(path, str) or not path:
            raise MalformedInputError(f"Invalid populate entry {entry}")
        names = split_fields(path)
        for name in names:
            if name in self.config.deselected:
                raise ForbiddenSelectionError(f"{FORBIDDEN_SELECTION} ({name})")
        if select is None:
            return
        if "+" in str(select):
            raise ForbiddenSelectionError(FORBIDDEN_SELECTION)
        hidden = set().union(*(self.related_hidden.get(name, ()) for name in names))
        forbidden = [field for field in included_fields(select) if field in hidden]
        if forbidden:
            raise ForbiddenSelectionError(f"{FORBIDDEN_SELECTION} ({', '.join(forbidden)})")

    def apply_populate(self, request, builder) -> None:
        """
        Entries are registered in order, the first refused entry aborts the remainder
        """
        if not is_set(request.populate):
            return
        for entry in self.populate_entries(request.populate):
            self.check_population(entry)
            builder.populate(entry)

    def apply_controller_defaults(self, builder) -> None:
        """
        Apply the resource defaults, before the request parameters
        """
        if self.config.restrict:
            raise UnsupportedConfigurationError("Use query middleware instead")
        if self.config.select:
            builder.select(self.config.select)

    def apply_query(self, request, builder, paged: bool = True) -> None:
        """
        :param paged: skip and limit only apply to collection requests
        """
        self.apply_sort(request, builder)
        if paged:
            self.apply_skip(request, builder)
            self.apply_limit(request, builder)
        self.apply_select(request, builder)
        self.apply_populate(request, builder)

    def shape(self, request, builder) -> Optional[dict]:
        """
        Apply the defaults and all request parameters
        :return: the parsed conditions
        """
        self.apply_controller_defaults(builder)
        conditions = self.apply_conditions(request, builder)
        self.apply_query(request, builder)
        return conditions


def shaping_stage(fun: Callable) -> Callable:
    """Decorator turning a shaping step into a pipeline stage
    errors are passed to the continuation instead of being raised

    :param fun: function(shaper, request, context)
    :return: stage(request, response, proceed)
    """

    @wraps(fun)
    def stage(request, response, proceed):
        context = request.sarest
        try:
            fun(RequestShaper.for_resource(context.resource), request, context)
        except SARESTError as exc:
            sarest.log.info(f"Shaping stage '{fun.__name__}' aborted the request: {exc}")
            return proceed(exc)
        return proceed()

    return stage


@shaping_stage
def conditions(shaper, request, context):
    """
    Set the conditions used for finding/removing documents
    """
    context.conditions = shaper.apply_conditions(request, context.query)


@shaping_stage
def controller(shaper, request, context):
    """
    Apply the options set on the resource configuration
    """
    shaper.apply_controller_defaults(context.query)


@shaping_stage
def query(shaper, request, context):
    """
    Apply sort, skip, limit, select and populate from the request parameters
    """
    shaper.apply_query(request, context.query, paged=context.plural)


DEFAULT_STAGES = (conditions, controller, query)


class ShapingPipeline:
    """
    Run the shaping stages in order, the first error aborts the pipeline and is raised

    :param stages: stage(request, response, proceed) callables
    """

    def __init__(self, stages: Iterable[Callable] = DEFAULT_STAGES) -> None:
        self.stages = tuple(stages)

    def __call__(self, request, response=None):
        """
        :return: the shaped query builder
        """
        for stage in self.stages:
            outcome = []

            def proceed(error=None):
                outcome.append(error)

            stage(request, response, proceed)
            stage_name = getattr(stage, "__name__", repr(stage))
            if not outcome:
                raise GenericError(f"Shaping stage '{stage_name}' did not call its continuation")
            error = outcome[0]
            if error is None:
                continue
            if not isinstance(error, Exception):
                error = GenericError(f"Shaping stage '{stage_name}' failed: {error}")
            raise error

        return request.sarest.query
