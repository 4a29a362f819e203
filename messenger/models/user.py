from typing import List, Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    username: str
    full_name: Optional[str]
    image: Optional[str]
    is_online: bool
    # conversation partners (user ids), not message ids
    messages: List[str]
