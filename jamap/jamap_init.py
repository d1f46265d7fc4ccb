import logging
import os
import sys
from typing import Any


class JAMAP:
    """This class holds the process-wide jamap configuration.
    Settings are stored as class variables, they can be overridden with :meth:`configure`,
    with the flask app config (cfr. :func:`jamap.config.get_config`) or with environment variables.

    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration settings are stored as class variables
    LOGLEVEL = logging.WARNING
    JSON_INDENT = 4
    JSON_ENSURE_ASCII = False
    INCLUDE_ALL = "+all"  # include path that tells the encoder to include all related resources
    DEFAULT_INCLUDED = ""  # comma separated include paths used when the caller passes none
    STRICT_RELATIONSHIP_TYPES = False  # record a validation error for unknown relationship types
    VALIDATE_DOCUMENTS = True  # structural validation of request documents before decoding
    REQUIRED_MESSAGE = "Field is required."

    @classmethod
    def configure(cls, **kwargs: Any) -> None:
        """
        Set configuration options and reset the cached lookups
        :param kwargs: option name -> value
        """
        from .config import get_config

        for conf_name, conf_val in kwargs.items():
            setattr(cls, conf_name, conf_val)
        get_config.cache_clear()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used by the package logger,
        everything is written to sys.stderr
        """
        log = logging.getLogger(__name__.split(".")[0])
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# logging initialization
#
try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = JAMAP.init_logging(LOGLEVEL)
