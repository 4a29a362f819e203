from typing import Any, Dict, Optional

from pydantic import BaseModel


class UserPublic(BaseModel):

    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    image: Optional[str] = None
    is_online: bool = False

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserPublic":
        return cls(
            id=str(doc["_id"]),
            username=doc.get("username"),
            full_name=doc.get("full_name"),
            image=doc.get("image"),
            is_online=bool(doc.get("is_online", False)),
        )
