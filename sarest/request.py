"""
Request parsing for the query shaping stages

The shaping parameters are read from the url query string:
    conditions, sort, skip, limit, select, populate

e.g.
    GET /widgets?conditions={"color":"red"}&sort=-age&limit=10&select=name age&populate={"path":"owner"}

The parameters are kept as raw strings, the shaping stages parse and validate them.
The request-scoped state that the stages mutate (the query builder and the parsed conditions)
is stored in the `sarest` attribute.
"""

from dataclasses import dataclass
from typing import Any, Optional
from flask import Request

SHAPING_PARAMS = ("conditions", "sort", "skip", "limit", "select", "populate")


@dataclass
class ShapingContext:
    """
    Request-scoped shaping state, created when a resource handles the request
    """

    resource: Any = None
    query: Any = None
    conditions: Optional[dict] = None
    # collection request, instance requests are not paged
    plural: bool = True


# pylint: disable=too-many-ancestors
class SARESTRequest(Request):
    """
    Flask request class exposing the shaping parameters as attributes
    """

    conditions = None
    sort = None
    skip = None
    limit = None
    select = None
    populate = None
    sarest = None

    def __init__(self, *args, **kwargs):
        """
        constructor
        """
        super().__init__(*args, **kwargs)
        self.parse_shaping_args()

    def parse_shaping_args(self):
        """
        Copy the shaping parameters from the query string, empty values count as absent
        """
        for param in SHAPING_PARAMS:
            value = self.args.get(param)
            setattr(self, param, value if value not in (None, "") else None)

    def shaping_context(self, resource, plural: bool = True) -> ShapingContext:
        """
        :param resource: the resource handling this request
        :param plural: whether a collection route handles this request
        :return: a new shaping context with a fresh query builder
        """
        self.sarest = ShapingContext(resource=resource, query=resource.query(), plural=plural)
        return self.sarest
