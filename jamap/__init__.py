# flake8: noqa: F401
#
# jamap: JSON:API encoding and decoding of domain objects
#
from .jamap_init import log, JAMAP
from .errors import JsonapiError, InvalidFormatError, InvalidArgumentError, InvalidSpecificationError, InvalidValidatorError
from .schema import (
    ValidationResult,
    Cardinality,
    Attribute,
    DateAttribute,
    Meta,
    Identifier,
    Relationship,
    ToOne,
    ToMany,
    ResourceSchema,
)
from .registry import SchemaRegistry, default_registry
from .identity_cache import IdentityCache
from .error_document import Error, ErrorDocument
from .decoder import Decoder, DecodeContext, DecodeResult, Absent
from .encoder import Encoder, Included
from .document_validator import DocumentValidator
from .json_encoder import JAJSONEncoder, JAJSONProvider
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "JAMAP",
    "log",
    # schemas:
    "ValidationResult",
    "Cardinality",
    "Attribute",
    "DateAttribute",
    "Meta",
    "Identifier",
    "Relationship",
    "ToOne",
    "ToMany",
    "ResourceSchema",
    "SchemaRegistry",
    "default_registry",
    # engines:
    "Decoder",
    "DecodeContext",
    "DecodeResult",
    "Absent",
    "Encoder",
    "Included",
    "IdentityCache",
    "DocumentValidator",
    # json:
    "JAJSONEncoder",
    "JAJSONProvider",
    # Errors:
    "JsonapiError",
    "InvalidFormatError",
    "InvalidArgumentError",
    "InvalidSpecificationError",
    "InvalidValidatorError",
    "Error",
    "ErrorDocument",
)
