"""
Structural validation of JSON:API request documents

https://jsonapi.org/format/#crud

The documents are checked against the pydantic envelope models in jamap.jsonapi_primitives
before they're decoded:
- unexpected top-level and resource object members are rejected
- resource objects must have a string "type" (and a string "id" for PATCH requests)
- relationship objects must have a "data" member holding null, a resource identifier or a list of identifiers
- resource identifiers must have a string "type" and a string "id"
"""
from typing import Any, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

import jamap
from .errors import InvalidFormatError
from .jsonapi_primitives import (
    PatchDocument,
    PostDocument,
    ResourceDocument,
    ToManyRelationshipDocument,
    ToOneRelationshipDocument,
)


class DocumentValidator:
    def validate_resource_document(self, root: Any) -> None:
        self._validate(ResourceDocument, root, "resource")

    def validate_post_document(self, root: Any) -> None:
        self._validate(PostDocument, root, "POST")

    def validate_patch_document(self, root: Any) -> None:
        self._validate(PatchDocument, root, "PATCH")

    def validate_to_one_relationship_document(self, root: Any) -> None:
        self._validate(ToOneRelationshipDocument, root, "to-one relationship")

    def validate_to_many_relationship_document(self, root: Any) -> None:
        self._validate(ToManyRelationshipDocument, root, "to-many relationship")

    @staticmethod
    def _validate(model: Type[BaseModel], root: Any, kind: str) -> None:
        """
        :param model: envelope model
        :param root: json-decoded document
        :param kind: document kind, used in the error message
        :raises InvalidFormatError: the document doesn't match the model
        """
        try:
            model.model_validate(root)
        except PydanticValidationError as exc:
            errors = exc.errors()
            jamap.log.debug(f"Invalid {kind} document: {errors}")
            location = ".".join(str(loc) for loc in errors[0]["loc"]) if errors else ""
            raise InvalidFormatError(f"Invalid {kind} document format: {location} {errors[0]['msg'] if errors else ''}".rstrip())
