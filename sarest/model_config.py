"""Resource-level sarest configuration.

This module contains the configuration object used by :class:`~sarest.resource.Resource`.
The configuration is read-only at request time: the shaping stages and the descriptor generator
receive the same instance, so they agree on which fields are exposed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from .util import split_fields

# canonical verb order, "head" is only used for discovery
VERBS = ("head", "get", "post", "put", "delete")
VERB_ALIASES = {"del": "delete"}


def normalize_verb(verb: str) -> str:
    verb = str(verb).lower()
    return VERB_ALIASES.get(verb, verb)


@dataclass(frozen=True)
class ResourceConfig:
    """Configuration for a single exposed resource.

    All fields are immutable, use ``with_overrides`` to derive a modified configuration.
    """

    singular: str
    plural: str
    # default projection, eg. "-password -salt"
    select: Optional[str] = None
    # field paths that clients can never select or populate
    deselected: FrozenSet[str] = frozenset()
    verbs: Tuple[str, ...] = VERBS
    # retired: restrictions must be implemented with query shaping stages
    restrict: Any = None
    description: str = ""

    def __post_init__(self):
        deselected = self.deselected or ()
        if isinstance(deselected, str):
            deselected = split_fields(deselected)
        object.__setattr__(self, "deselected", frozenset(deselected))
        verbs = self.verbs or ()
        if isinstance(verbs, str):
            verbs = split_fields(verbs)
        object.__setattr__(self, "verbs", tuple(normalize_verb(verb) for verb in verbs))

    def active_verbs(self) -> Tuple[str, ...]:
        """
        :return: the enabled verbs, in canonical order
        """
        return tuple(verb for verb in VERBS if verb in self.verbs)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "ResourceConfig":
        """Return a new config where known fields are replaced by ``overrides``."""
        valid = {k: v for k, v in overrides.items() if k in self.__dataclass_fields__}
        if not valid:
            return self
        return replace(self, **valid)
