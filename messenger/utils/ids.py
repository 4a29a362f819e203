from typing import Any

from bson import ObjectId
from bson.errors import InvalidId


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    # ObjectId(None) would mint a fresh id
    if value is None:
        raise ValueError("Missing id")
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise ValueError(f"Invalid id: {value!r}") from exc
