"""
JSON:API error objects, cfr. https://jsonapi.org/format/#error-objects

The decoder collects one Error per failed field validation message,
the ErrorDocument bundles them in a response document:

    {
        "errors": [
            {
                "source": {"pointer": "title"},
                "detail": "Field is required."
            }
        ]
    }
"""
import json
from http import HTTPStatus
from typing import Any, Dict, List, Optional
from .jsonapi_primitives import JsonApiErrorDocument, JsonApiErrorObject, JsonApiErrorSource


class Error:
    """
    A single error object, the pointer references the attribute or relationship key
    """

    def __init__(self, detail: str, pointer: Optional[str] = None, status: Optional[str] = None, title: Optional[str] = None, code: Optional[str] = None) -> None:
        self.detail = detail
        self.pointer = pointer
        self.status = status
        self.title = title
        self.code = code

    def to_model(self) -> JsonApiErrorObject:
        source = JsonApiErrorSource(pointer=self.pointer) if self.pointer is not None else None
        return JsonApiErrorObject(status=self.status, code=self.code, title=self.title, detail=self.detail, source=source)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Error):
            return NotImplemented
        return (self.pointer, self.detail, self.status, self.title, self.code) == (other.pointer, other.detail, other.status, other.title, other.code)

    def __repr__(self) -> str:
        return f"<Error pointer={self.pointer!r} detail={self.detail!r}>"


class ErrorDocument:
    """
    Collection of errors, conventionally sent with the HTTP 422 status code (Unprocessable Entity)
    """

    def __init__(self, status_code: str = str(HTTPStatus.UNPROCESSABLE_ENTITY.value)) -> None:
        self.status_code = status_code
        self.errors: List[Error] = []

    def add_error(self, error: Error) -> None:
        self.errors.append(error)

    def get_errors(self) -> List[Error]:
        return list(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        """
        :return: json-encodable error document, members without a value are left out
        """
        document = JsonApiErrorDocument(errors=[error.to_model() for error in self.errors])
        return document.model_dump(exclude_none=True)

    def to_json(self, **kwargs: Any) -> str:
        kwargs.setdefault("ensure_ascii", False)
        return json.dumps(self.to_dict(), **kwargs)

    def __len__(self) -> int:
        return len(self.errors)
