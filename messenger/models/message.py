from datetime import datetime
from typing import TypedDict


class MessageDocument(TypedDict, total=False):
    # ids normalized to str; stored as ObjectId
    _id: str
    sender: str
    receiver: str
    message: str
    seen: bool
    created_at: datetime
    updated_at: datetime
