#
import re
from typing import Iterable, List, Optional, Set

FIELD_SEPARATOR = re.compile(r"[\s,]+")


def capitalize(s: Optional[str]) -> Optional[str]:
    """
    Capitalize the first letter of a string, leave the rest untouched (unlike str.capitalize)
    """
    if not s:
        return s
    return s[0].upper() + s[1:]


def split_fields(spec: Optional[str]) -> List[str]:
    """
    :param spec: comma and/or space separated field list, eg. "name -age,+secret"
    :return: list of tokens, prefixes included
    """
    if not spec:
        return []
    return [token for token in FIELD_SEPARATOR.split(str(spec).strip()) if token]


def excluded_fields(spec: Optional[str]) -> Set[str]:
    """
    :param spec: select string
    :return: names of the fields excluded with a leading "-"
    """
    return {token[1:] for token in split_fields(spec) if token.startswith("-") and len(token) > 1}


def included_fields(spec: Optional[str]) -> List[str]:
    """
    :param spec: select string
    :return: names of the fields selected without prefix
    """
    return [token for token in split_fields(spec) if token[0] not in "+-"]


def unique(items: Iterable) -> list:
    """
    Remove duplicates, keep the order
    """
    return list(dict.fromkeys(items))
