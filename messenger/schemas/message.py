from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from messenger.schemas.user import UserPublic


class CreateMessageInput(BaseModel):

    sender: str
    receiver: str
    message: str = Field(min_length=1)


class UpdateMessageSeenInput(BaseModel):

    sender: str
    receiver: str


class MessagePublic(BaseModel):

    id: str
    # None when the referenced user no longer exists
    sender: Optional[UserPublic] = None
    receiver: Optional[UserPublic] = None
    message: str
    seen: bool = False
    created_at: datetime
    updated_at: datetime
    is_first_message: Optional[bool] = None


class ConversationSummary(BaseModel):
    """A conversation partner together with the last message exchanged."""

    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    image: Optional[str] = None
    is_online: bool = False
    seen: Optional[bool] = None
    last_message: Optional[str] = None
    # True when the requesting user wrote the last message
    last_message_sender: Optional[bool] = None
    last_message_created_at: Optional[datetime] = None


class ConversationNotification(ConversationSummary):

    receiver_id: str


class SeenUpdateResult(BaseModel):
    """Outcome of marking messages seen.

    ``ok=True, matched=0`` means nothing was unseen; ``ok=False`` means the
    write failed and ``error`` carries the reason.
    """

    ok: bool
    matched: int = 0
    modified: int = 0
    error: Optional[str] = None
