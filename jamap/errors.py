# Exceptions
#
# Structural errors are raised immediately and abort the encode/decode call.
# Field validation errors are never raised: the decoder accumulates them
# in the DecodeResult, cfr. jamap.error_document.
#
# The application loglevel determines the level of detail in the exception message.
# If set to debug, server side details are added to the message !
#
from http import HTTPStatus
import jamap
from .config import is_debug

HIDDEN_LOG = "(debug logging disabled)"


class JsonapiError(Exception):
    """
    Base class of the jamap exceptions
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "JSON:API Error: "

    def __init__(self, message="", status_code=None):
        """
        :param message: detail message
        :param status_code: HTTP Status code that should be used when the error is sent back to a client
        """
        Exception.__init__(self, message)
        if status_code is not None:
            self.status_code = status_code
        self.detail = message


class InvalidFormatError(JsonapiError):
    """
    This exception is raised when a request document doesn't have the JSON:API structure:
    malformed json, missing "data" or "type", invalid relationship linkage ...
    The message is always sent back to the client
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Invalid Format: "

    def __init__(self, message="", status_code=HTTPStatus.BAD_REQUEST.value):
        JsonapiError.__init__(self, message, status_code)
        jamap.log.warning("InvalidFormatError: %s", message)
        self.message += message


class InvalidArgumentError(JsonapiError, TypeError):
    """
    This exception is raised when the library is called with arguments it can't handle,
    for ex. encoding an object for which no schema is available
    """

    message = "Invalid Argument: "

    def __init__(self, message="", status_code=HTTPStatus.INTERNAL_SERVER_ERROR.value):
        JsonapiError.__init__(self, message, status_code)
        jamap.log.error("InvalidArgumentError: %s", message)
        if is_debug():
            self.message += message
        else:
            self.message += HIDDEN_LOG


class InvalidSpecificationError(JsonapiError):
    """
    This exception is raised when a schema is misconfigured (duplicate keys, invalid cardinality, ...)
    """

    message = "Invalid Specification: "

    def __init__(self, message="", status_code=HTTPStatus.INTERNAL_SERVER_ERROR.value):
        JsonapiError.__init__(self, message, status_code)
        jamap.log.error("InvalidSpecificationError: %s", message)
        if is_debug():
            self.message += message
        else:
            self.message += HIDDEN_LOG


class InvalidValidatorError(JsonapiError):
    """
    This exception is raised when a field validator returns something other than a ValidationResult or a bool
    """

    message = "Invalid Validator: "

    def __init__(self, message="", status_code=HTTPStatus.INTERNAL_SERVER_ERROR.value):
        JsonapiError.__init__(self, message, status_code)
        jamap.log.error("InvalidValidatorError: %s", message)
        if is_debug():
            self.message += message
        else:
            self.message += HIDDEN_LOG
