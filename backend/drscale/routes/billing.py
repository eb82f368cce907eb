import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import JSONResponse
from drscale.core.errors import NotFound, UnknownBalance
from drscale.core.permissions import Permission
from drscale.core.security import AuthSession, get_auth_session, require_permission
from drscale.models.billing import (
    AdminTopupRequest,
    AuthorizeCallRequest,
    BalanceStatus,
    BulkAdjustRequest,
    BulkAdjustResult,
    CallAuthorization,
    CallCompletionRequest,
    DeductionResult,
    EstimateRequest,
    EstimateResponse,
    UserBalance,
    UserBalanceOverview,
)
from drscale.services.balance_guard import BalanceGuard
from drscale.services.balance_status import classify
from drscale.services.deduction import DeductionGateway
from drscale.services.pricing import build_estimate, remaining_minutes
from drscale.storage import get_balance_store

router = APIRouter(prefix="/billing", tags=["billing"])
logger = logging.getLogger(__name__)


def get_deduction_gateway(store=Depends(get_balance_store)) -> DeductionGateway:
    return DeductionGateway(store)


def get_balance_guard(
    session: AuthSession = Depends(get_auth_session),
    store=Depends(get_balance_store),
    gateway: DeductionGateway = Depends(get_deduction_gateway),
) -> BalanceGuard:
    return BalanceGuard(session, store, gateway)


# ── Balance ──

@router.get("/balance", response_model=UserBalance)
async def get_balance(
    session: AuthSession = Depends(require_permission(Permission.VIEW_BALANCE)),
    store=Depends(get_balance_store),
):
    if not session.company_id:
        raise HTTPException(status_code=400, detail="No company")
    bal = await store.get_balance(session.user_id, session.company_id)
    if not bal:
        raise HTTPException(status_code=404, detail="No credit account found")
    return bal


@router.get("/status", response_model=BalanceStatus)
async def get_status(guard: BalanceGuard = Depends(get_balance_guard)):
    status = await guard.get_balance_status()
    if status is None:
        return JSONResponse(status_code=UnknownBalance.status_code, content={"error": UnknownBalance.code})
    return status


# ── Calls ──

@router.post("/estimate", response_model=EstimateResponse)
async def estimate(data: EstimateRequest, guard: BalanceGuard = Depends(get_balance_guard)):
    est = build_estimate(data.duration_sec, data.rate_per_minute)
    status = await guard.get_balance_status()
    minutes = remaining_minutes(status.balance, est.rate_per_minute) if status and est.rate_per_minute > 0 else None
    return EstimateResponse(**est.model_dump(), remaining_minutes=minutes)


@router.post("/authorize", response_model=CallAuthorization)
async def authorize_call(data: AuthorizeCallRequest, guard: BalanceGuard = Depends(get_balance_guard)):
    return await guard.authorize_call(data.expected_duration_sec, data.rate_per_minute)


@router.post("/calls/{call_id}/complete", response_model=DeductionResult)
async def complete_call(
    call_id: str,
    data: CallCompletionRequest,
    guard: BalanceGuard = Depends(get_balance_guard),
):
    result = await guard.complete_call(call_id, data.duration_sec, data.rate_per_minute, data.status)
    if not result.success:
        return JSONResponse(status_code=_deduction_status(result.error), content=result.model_dump())
    return result


def _deduction_status(error: str) -> int:
    return {
        "invalid_input": 400,
        "not_found": 404,
        "account_blocked": 402,
        "insufficient_balance": 402,
        "access_denied": 403,
        "transient_network_error": 503,
    }.get(error, 500)


# ── Ledger ──

@router.get("/transactions")
async def list_transactions(
    limit: int = 50,
    skip: int = 0,
    session: AuthSession = Depends(require_permission(Permission.VIEW_BALANCE)),
    store=Depends(get_balance_store),
):
    if not session.company_id:
        raise HTTPException(status_code=400, detail="No company")
    txns = await store.list_transactions(session.user_id, session.company_id, limit=limit, skip=skip)
    return {"items": txns, "count": len(txns)}


@router.post("/admin/topup")
async def admin_topup(
    data: AdminTopupRequest,
    session: AuthSession = Depends(require_permission(Permission.MANAGE_BALANCES)),
    store=Depends(get_balance_store),
):
    session.require_company(data.company_id)
    if data.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be positive")

    new_balance = await store.top_up(
        data.user_id,
        data.company_id,
        data.amount,
        data.description or "Manual top-up",
        session.user_id,
    )
    logger.info(f"Admin topup: user={data.user_id} company={data.company_id} amount={data.amount} by={session.user_id}")
    return {"message": f"Credited ${data.amount:.2f}", "balance": new_balance}


# ── Admin console ──

def _admin_company(session: AuthSession, company_id: Optional[str]) -> str:
    company_id = company_id or session.company_id
    if not company_id:
        raise HTTPException(status_code=400, detail="No company")
    session.require_company(company_id)
    return company_id


@router.get("/admin/balances", response_model=List[UserBalanceOverview])
async def admin_list_balances(
    company_id: Optional[str] = None,
    session: AuthSession = Depends(require_permission(Permission.MANAGE_BALANCES)),
    store=Depends(get_balance_store),
):
    company_id = _admin_company(session, company_id)
    rows = []
    for bal in await store.list_balances(company_id):
        status = classify(bal.balance, bal.warning_threshold)
        rows.append(UserBalanceOverview(
            user_id=bal.user_id,
            balance=bal.balance,
            warning_threshold=bal.warning_threshold,
            critical_threshold=status.critical_threshold,
            status=status.level,
            last_updated=bal.last_updated,
        ))
    return rows


@router.get("/admin/users/{user_id}/transactions")
async def admin_user_transactions(
    user_id: str,
    company_id: Optional[str] = None,
    limit: int = 50,
    skip: int = 0,
    session: AuthSession = Depends(require_permission(Permission.MANAGE_BALANCES)),
    store=Depends(get_balance_store),
):
    company_id = _admin_company(session, company_id)
    if not await store.get_balance(user_id, company_id):
        raise HTTPException(status_code=404, detail="No credit account found")
    txns = await store.list_transactions(user_id, company_id, limit=limit, skip=skip)
    return {"items": txns, "count": len(txns)}


@router.post("/admin/bulk-adjust", response_model=BulkAdjustResult)
async def admin_bulk_adjust(
    data: BulkAdjustRequest,
    session: AuthSession = Depends(require_permission(Permission.MANAGE_BALANCES)),
    store=Depends(get_balance_store),
):
    session.require_company(data.company_id)
    if not data.user_ids:
        raise HTTPException(status_code=400, detail="No users selected")
    if data.amount == 0:
        raise HTTPException(status_code=400, detail="Amount must not be zero")

    result = BulkAdjustResult(success_count=0)
    for user_id in dict.fromkeys(data.user_ids):
        try:
            await store.adjust_balance(
                user_id,
                data.company_id,
                data.amount,
                data.description or "Bulk adjustment",
                session.user_id,
            )
            result.success_count += 1
        except NotFound:
            result.failed.append(user_id)
    logger.info(
        f"Admin bulk adjust: company={data.company_id} amount={data.amount} "
        f"ok={result.success_count} failed={len(result.failed)} by={session.user_id}"
    )
    return result
