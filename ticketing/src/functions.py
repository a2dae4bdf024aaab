import types
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union, get_args, get_origin
from pydantic import BaseModel
from pydantic.fields import FieldInfo

from ticketing.src.schemas import Reference


MISSING = object()


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    "CREATED": ["PAID"],
                    "PAID": ["VALIDATED"],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
        - Both states can be any type (enum, str), as long as they match keys/values in the mapping.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def enumValue(value: Any) -> Any:
    """Return the stored value of an enum member, or the value unchanged."""
    return value.value if isinstance(value, Enum) else value


def fieldValue(document: Dict[str, Any], path: str) -> Any:
    """
    Read a dotted field path from a dumped document.

    Args:
        document (Dict[str, Any]): Document as returned by `model_dump()`.
        path (str): Dotted path such as `currentLocation.stopId`.

    Returns:
        Any: The value found, or `MISSING` when any segment is absent.

    Example:
        >>> fieldValue({"seats": {"capacity": 40}}, "seats.capacity")
        40
        >>> fieldValue({"seats": None}, "seats.capacity") is MISSING
        True
    """
    current = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return MISSING
        current = current[part]
    return MISSING if current is None else current


def indexValue(value: Any) -> Optional[str]:
    """
    Canonicalize a field value into the text stored in an index column.

    Equal values of the same semantic type always produce the same text:
    enums use their value, datetimes are converted to UTC ISO format,
    decimals are normalized and booleans are lower-cased.

    Args:
        value (Any): Python or JSON-compatible value, or `MISSING`.

    Returns:
        Optional[str]: The canonical text, or None for missing values.
    """
    if value is MISSING or value is None:
        return None
    value = enumValue(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat()
    if isinstance(value, (Decimal, int, float)):
        normalized = Decimal(str(value)).normalize()
        return format(normalized, "f")
    return str(value)


def indexColumn(path: str) -> str:
    """Name of the extracted column holding the values of a field path."""
    return "ix_" + path.replace(".", "_")


def referenceTarget(field: FieldInfo) -> Optional[str]:
    """
    Find the entity type a model field softly references.

    Looks at the field metadata and inside `Optional[...]`/`Annotated[...]`
    wrappers of its annotation.

    Returns:
        Optional[str]: The referenced entity type, or None.
    """
    for metadata in field.metadata:
        if isinstance(metadata, Reference):
            return metadata.entity
    return _annotationReference(field.annotation)


def _annotationReference(annotation: Any) -> Optional[str]:
    if get_origin(annotation) is Annotated:
        for metadata in annotation.__metadata__:
            if isinstance(metadata, Reference):
                return metadata.entity
    if get_origin(annotation) in (Union, Annotated, types.UnionType):
        for argument in get_args(annotation):
            entity = _annotationReference(argument)
            if entity is not None:
                return entity
    return None


def modelFields(model: type[BaseModel], required: bool) -> List[str]:
    """Names of the required (or optional) fields of a document model."""
    return [
        name
        for name, field in model.model_fields.items()
        if field.is_required() == required
    ]


def utcNow() -> datetime:
    return datetime.now(timezone.utc)
