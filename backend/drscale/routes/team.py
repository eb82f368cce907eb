import logging
from typing import Optional, List
from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import JSONResponse
from drscale.core.config import DEFAULT_WARNING_THRESHOLD, INITIAL_BALANCE
from drscale.core.security import AuthSession, get_auth_session
from drscale.models.team import (
    AcceptInviteRequest,
    CreateInviteRequest,
    InviteCreated,
    InviteLookupResponse,
    SeatUsage,
    Team,
)
from drscale.services.invites import InviteAcceptanceFlow
from drscale.storage import get_balance_store, get_team_store

router = APIRouter(prefix="/team", tags=["team"])
logger = logging.getLogger(__name__)


def get_invite_flow(
    session: AuthSession = Depends(get_auth_session),
    store=Depends(get_team_store),
) -> InviteAcceptanceFlow:
    return InviteAcceptanceFlow(store, session)


@router.get("", response_model=List[Team])
async def list_teams(session: AuthSession = Depends(get_auth_session), store=Depends(get_team_store)):
    if not session.company_id:
        return []
    return await store.list_teams(session.company_id)


@router.get("/check", response_model=InviteLookupResponse)
async def check_invitation(token: Optional[str] = None, store=Depends(get_team_store)):
    """Public endpoint - no auth required."""
    if not token:
        return JSONResponse(status_code=400, content={"valid": False, "error": "missing token"})
    return await InviteAcceptanceFlow(store).lookup(token)


@router.post("/accept")
async def accept_invitation(
    data: AcceptInviteRequest,
    flow: InviteAcceptanceFlow = Depends(get_invite_flow),
    teams=Depends(get_team_store),
    balances=Depends(get_balance_store),
):
    if not data.token or not data.user_id:
        return JSONResponse(status_code=400, content={"error": "missing token or userId"})
    if data.user_id != flow.session.user_id:
        return JSONResponse(status_code=403, content={"error": "access_denied"})

    result = await flow.accept(data.token)
    if not result.accepted:
        return JSONResponse(status_code=result.status_code, content={"error": result.reason})

    team = await teams.get_team(result.team_id)
    if team:
        await balances.ensure_balance(data.user_id, team.company_id, INITIAL_BALANCE, DEFAULT_WARNING_THRESHOLD)
    return {"ok": True}


@router.post("/invite", response_model=InviteCreated)
async def create_invitation(data: CreateInviteRequest, flow: InviteAcceptanceFlow = Depends(get_invite_flow)):
    return await flow.create_invite(data.team_id, data.email, data.role)


@router.get("/{team_id}/invites")
async def list_invitations(team_id: str, flow: InviteAcceptanceFlow = Depends(get_invite_flow)):
    return await flow.list_invites(team_id)


@router.post("/invites/{invite_id}/revoke")
async def revoke_invitation(invite_id: str, flow: InviteAcceptanceFlow = Depends(get_invite_flow)):
    await flow.revoke_invite(invite_id)
    return {"message": "Invitation revoked"}


@router.get("/{team_id}/seats", response_model=SeatUsage)
async def get_seats(
    team_id: str,
    session: AuthSession = Depends(get_auth_session),
    store=Depends(get_team_store),
):
    team = await store.get_team(team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    session.require_company(team.company_id)
    return await store.get_seat_usage(team_id)
