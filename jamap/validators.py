"""
Filters and validators for Attribute strategies

A filter is a callable `(value) -> value` that is applied to the decoded value before validation,
a validator is a callable `(value, context) -> ValidationResult`.
The context is the jamap.decoder.DecodeContext of the resource being decoded,
it holds the (filtered) values of the other fields of the request.
"""
import re
from typing import Any, Callable, Iterable, Optional

from .schema import ValidationResult


def trim_to_none(value: Any) -> Any:
    """
    Strip whitespace from strings, empty strings become None
    """
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def required_string(value: Any, context: Any) -> ValidationResult:
    if isinstance(value, str) and value.strip():
        return ValidationResult(True)
    return ValidationResult.invalid("Value must be a non-empty string.")


def length(min: Optional[int] = None, max: Optional[int] = None) -> Callable:  # pylint: disable=redefined-builtin
    def validate(value, context):
        if value is None:
            return ValidationResult(True)
        if not isinstance(value, (str, list, dict)):
            return ValidationResult.invalid("Value must be a string.")
        size = len(value)
        if min is not None and size < min:
            return ValidationResult.invalid(f"Value must be at least {min} characters long.")
        if max is not None and size > max:
            return ValidationResult.invalid(f"Value must be at most {max} characters long.")
        return ValidationResult(True)

    return validate


def one_of(choices: Iterable[Any]) -> Callable:
    choices = list(choices)

    def validate(value, context):
        if value in choices:
            return ValidationResult(True)
        return ValidationResult.invalid(f"Value must be one of {', '.join(map(str, choices))}.")

    return validate


def regex(pattern: str, message: str = "Value has an invalid format.") -> Callable:
    compiled = re.compile(pattern)

    def validate(value, context):
        if isinstance(value, str) and compiled.fullmatch(value):
            return ValidationResult(True)
        return ValidationResult.invalid(message)

    return validate


def equals_field(other_key: str, message: Optional[str] = None) -> Callable:
    """
    Interdependent validation: the value must be equal to the value of another attribute of the same request,
    for ex. a password confirmation
    """
    message = message or f"Value must match '{other_key}'."

    def validate(value, context):
        if value == context.get_attribute(other_key):
            return ValidationResult(True)
        return ValidationResult.invalid(message)

    return validate
