from fastapi import APIRouter, Depends

from marketplace.core.deps import get_identity
from marketplace.core.identity import Identity, SponsorIdentity
from marketplace.schemas.identity import IdentityOut

router = APIRouter(tags=["identity"])


@router.get("/me", response_model=IdentityOut, response_model_exclude_none=True)
async def me(identity: Identity = Depends(get_identity)):
    """Role and scoped id of the signed-in caller, used to pick a dashboard."""

    if isinstance(identity, SponsorIdentity):
        return IdentityOut(user_id=identity.user_id, role="sponsor", sponsor_id=identity.sponsor_id)
    return IdentityOut(user_id=identity.user_id, role="publisher", publisher_id=identity.publisher_id)
