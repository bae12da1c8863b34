# Configuration settings should be set in app.config
# The defaults are kept as class variables on sarest.SAREST, environment variables are used as a last resort
import os
import logging
from flask import current_app
from functools import lru_cache
import sarest
from typing import Any


@lru_cache(maxsize=128)
def get_config(option: str) -> Any:
    """Retrieve a configuration parameter from the app
    :param option: configuration parameter
    :return: configuration value
    """

    try:
        result = current_app.config[option]
    except (KeyError, RuntimeError):
        # RuntimeError: working outside of application context
        result = getattr(sarest.SAREST, option, os.environ.get(option, None))
    return result


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return sarest.log.getEffectiveLevel() < logging.INFO
