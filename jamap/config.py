# Configuration settings can be set in the flask app.config or as JAMAP class variables.
# Options that aren't defined in either of these are looked up in the environment.
# The get_config function resolves an option from these sources.
import os
import logging
from flask import current_app
from functools import lru_cache
import jamap
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
        # KeyError: not set in the app config
        # RuntimeError: working outside of application context
        result = getattr(jamap.JAMAP, option, os.environ.get(option, None))
    return result


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return jamap.log.getEffectiveLevel() < logging.INFO
