from fastapi import FastAPI, HTTPException, Header
from fastapi.responses import Response
from pydantic import BaseModel
from typing import Optional, List
from ...protocol.types.common import (
    LedgerError,
    ValidationError,
    AuthorizationError,
    ReentrancyError,
    PausedError,
    CollaboratorFailure,
    MigrationOrderError,
)
from ..core.ledger import StakingLedger
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="StakeLedger Node RPC")

# Injected by the node CLI (or tests)
ledger: Optional[StakingLedger] = None
# Called after every committed mutation (the CLI persists the store here)
on_commit = None

_STATUS_BY_ERROR = [
    (ValidationError, 400),
    (AuthorizationError, 403),
    (PausedError, 423),
    (ReentrancyError, 409),
    (MigrationOrderError, 409),
    (CollaboratorFailure, 502),
]


class AmountRequest(BaseModel):
    amount: int

class RateRequest(BaseModel):
    rate: int

class BatchStakeRequest(BaseModel):
    recipients: List[str]
    amounts: List[int]


def _require_ledger() -> StakingLedger:
    if not ledger:
        raise HTTPException(status_code=503, detail="Ledger not initialized")
    return ledger


def _run(operation, *args):
    try:
        result = operation(*args)
    except LedgerError as e:
        status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(e, cls)), 400)
        raise HTTPException(status_code=status, detail=str(e))
    if on_commit:
        on_commit()
    return result


@app.get("/status")
async def get_status():
    return _require_ledger().status()

@app.get("/account/{principal}")
async def get_account(principal: str):
    lg = _require_ledger()
    acc = lg.account(principal)
    return {
        "principal": principal,
        "balance": str(acc.balance),
        "earned": str(lg.earned(principal)),
        "reward_per_unit_paid": str(acc.reward_per_unit_paid),
        "lock_time_remaining": lg.lock_time_remaining(principal),
    }

@app.get("/events")
async def get_events(limit: int = 100, event_type: Optional[str] = None):
    """Most recent published events, oldest first."""
    events = _require_ledger().bus.recent(limit, event_type)
    return [e.model_dump() for e in events]

@app.post("/stake")
async def stake(req: AmountRequest, x_principal: str = Header(...)):
    lg = _require_ledger()
    _run(lg.stake, x_principal, req.amount)
    return {"status": "staked", "balance": str(lg.balances(x_principal))}

@app.post("/withdraw")
async def withdraw(req: AmountRequest, x_principal: str = Header(...)):
    lg = _require_ledger()
    paid, fee = _run(lg.withdraw, x_principal, req.amount)
    return {"status": "withdrawn", "paid": str(paid), "fee": str(fee)}

@app.post("/claim")
async def claim(x_principal: str = Header(...)):
    lg = _require_ledger()
    reward = _run(lg.get_reward, x_principal)
    return {"status": "claimed", "reward": str(reward)}

@app.post("/batch-stake")
async def batch_stake(req: BatchStakeRequest, x_principal: str = Header(...)):
    lg = _require_ledger()
    total = _run(lg.batch_stake, x_principal, req.recipients, req.amounts)
    return {"status": "staked", "total": str(total)}

@app.post("/admin/reward-rate")
async def set_reward_rate(req: RateRequest, x_principal: str = Header(...)):
    lg = _require_ledger()
    _run(lg.set_reward_rate, x_principal, req.rate)
    return {"status": "updated", "reward_rate": str(lg.reward_rate)}

@app.post("/admin/pause")
async def pause(x_principal: str = Header(...)):
    _run(_require_ledger().pause, x_principal)
    return {"status": "paused"}

@app.post("/admin/unpause")
async def unpause(x_principal: str = Header(...)):
    _run(_require_ledger().unpause, x_principal)
    return {"status": "unpaused"}

@app.get("/metrics")
async def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
    from ..observability.metrics import metrics_registry, update_metrics

    lg = _require_ledger()
    try:
        update_metrics(lg)
        metrics_data = generate_latest(metrics_registry)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Metrics error: {str(e)}")

    return Response(
        content=metrics_data,
        media_type=CONTENT_TYPE_LATEST
    )
