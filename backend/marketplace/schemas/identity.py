from typing import Literal, Optional

from marketplace.schemas.common import CamelModel


class IdentityOut(CamelModel):
    user_id: str
    role: Literal["sponsor", "publisher"]
    sponsor_id: Optional[str] = None
    publisher_id: Optional[str] = None
