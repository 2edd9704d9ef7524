from fastapi import APIRouter, Depends
from pydantic import BaseModel

from wagerbook.db.init import Datastore
from wagerbook.deps import get_current_user_id, get_datastore
from wagerbook.services import accounts as accounts_service

router = APIRouter()


class SetBalanceRequest(BaseModel):
    balance: int


@router.get("/balance")
async def read_balance(user_id: str = Depends(get_current_user_id)):
    """Return the caller's current balance."""
    balance = await accounts_service.get_balance(user_id)
    return {"balance": balance}


@router.post("/balance")
async def overwrite_balance(
    body: SetBalanceRequest,
    user_id: str = Depends(get_current_user_id),
    datastore: Datastore = Depends(get_datastore),
):
    """Administrative overwrite; serialised with settlements and audited."""
    await accounts_service.set_balance(datastore, user_id, body.balance)
    return {"message": "Balance updated successfully"}
