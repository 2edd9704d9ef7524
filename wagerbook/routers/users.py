from fastapi import APIRouter, Depends

from wagerbook.deps import get_current_user_id
from wagerbook.services import accounts as accounts_service

router = APIRouter()


@router.get("/user-info")
async def user_info(user_id: str = Depends(get_current_user_id)):
    """Return the caller's username and balance."""
    return await accounts_service.get_profile(user_id)
