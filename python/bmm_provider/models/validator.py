"""
bmm_provider/models/validator.py

Validates decoded JSON against a pydantic-based type using TypeAdapter,
raising a caller-chosen ValueError subclass so that codec failures surface
as typed provider errors.
"""

from functools import lru_cache
from typing import Any, Type, TypeVar
from pydantic import ValidationError, TypeAdapter

T = TypeVar("T")


@lru_cache(maxsize=None)
def _adapter(expected_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(expected_type)


def validate_type(
    obj: Any,
    expected_type: Type[T],
    *,
    error_cls: Type[ValueError] = ValueError,
    what: str = "",
) -> T:
    """
    Validates that obj conforms to expected_type.

    Args:
        obj (Any): The object to validate, e.g. a dict decoded from JSON.
        expected_type (Type[T]): Pydantic model or typing construct to validate against.
        error_cls (Type[ValueError]): Exception class raised on failure.
        what (str): Human-readable name of the object, used in the message.

    Returns:
        T: The validated object.

    Raises:
        ValueError: (or error_cls) If validation fails.
    """
    try:
        return _adapter(expected_type).validate_python(obj)
    except ValidationError as e:
        label = what or str(expected_type)
        raise error_cls(f"Validation failed for {label}: {e}") from e
