from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from wagerbook.core.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from wagerbook.db.init import Datastore
from wagerbook.deps import get_current_user_id, get_datastore, get_idempotency_key
from wagerbook.models.outcome_record import OutcomeRecord
from wagerbook.services import ledger
from wagerbook.services import settlement as settlement_service
from wagerbook.services.accounts import to_object_id

router = APIRouter()


class OutcomeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bet_amount: int = Field(alias="betAmount", ge=0)
    panels: Any = Field(default=None, alias="numberOfPanels")
    outcome: Any = None
    payout: int = Field(ge=0)


def _entry(record: OutcomeRecord) -> dict:
    return {
        "id": str(record.id),
        "bet_amount": record.bet_amount,
        "payout": record.payout,
        "panels": record.panels,
        "outcome": record.outcome,
        "balance_after": record.balance_after,
        "created_at": record.created_at.isoformat(),
    }


@router.post("/outcome")
async def settle_outcome(
    body: OutcomeRequest,
    user_id: str = Depends(get_current_user_id),
    idempotency_key: str | None = Depends(get_idempotency_key),
    datastore: Datastore = Depends(get_datastore),
):
    """Record a wager outcome and apply it to the balance atomically."""
    wager = settlement_service.Wager(
        bet_amount=body.bet_amount,
        payout=body.payout,
        panels=body.panels,
        outcome=body.outcome,
    )
    settlement = await settlement_service.settle(datastore, user_id, wager, idempotency_key=idempotency_key)
    return {
        "message": "Game outcome processed successfully",
        "newBalance": settlement.new_balance,
        "replayed": settlement.replayed,
    }


@router.get("/outcomes")
async def list_outcomes(
    user_id: str = Depends(get_current_user_id),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(0, ge=0),
):
    """Return the caller's settled wagers, oldest first."""
    limit, offset = paginate(limit, offset)
    oid = to_object_id(user_id)
    records = await ledger.list_for_user(oid, limit=limit, offset=offset)
    total = await ledger.count_for_user(oid)
    return {"entries": [_entry(r) for r in records], "limit": limit, "offset": offset, "total": total}
