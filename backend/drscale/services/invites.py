"""
Team invitations: lookup, one-shot acceptance, creation and revocation.

Acceptance is a sequence of hard gates; the first one that fails rejects the
invite with a short reason code and nothing is written:

1. the token resolves to a pending invite whose ``expires_at`` is in the future;
2. the team still has a free seat (advisory, to fail fast);
3. the store's atomic accept re-checks both inside one transaction and
   creates the membership.

Lookups never say whether a token exists, was used or expired: all of these
come back as ``invalid_or_expired``.
"""
import uuid
import logging
from datetime import timedelta
from typing import Optional, List

from drscale.core.config import INVITE_EXPIRY_DAYS, PUBLIC_APP_URL
from drscale.core.errors import (
    AuthorizationError,
    DrScaleError,
    InvalidInput,
    InvalidOrExpired,
    NotFound,
    SeatLimitReached,
    TransactionFailed,
)
from drscale.core.permissions import Permission
from drscale.core.security import AuthSession
from drscale.models.team import (
    AcceptanceResult,
    InvitationInfo,
    InviteCreated,
    InviteLookupResponse,
    TeamInvite,
)
from drscale.services.mailer import send_invite_email
from drscale.services.retry import is_permission_error
from drscale.storage.interface import TeamStore
from drscale.utils import is_expired, now_iso, utc_now

logger = logging.getLogger(__name__)


def is_open(invite: Optional[TeamInvite]) -> bool:
    return invite is not None and invite.status == "pending" and not is_expired(invite.expires_at)


def _reject(error: DrScaleError, team_id: str = None) -> AcceptanceResult:
    return AcceptanceResult(accepted=False, reason=error.code, status_code=error.status_code, team_id=team_id)


class InviteAcceptanceFlow:
    def __init__(self, store: TeamStore, session: AuthSession = None, send_email=send_invite_email):
        self._store = store
        self.session = session
        self._send_email = send_email

    async def lookup(self, token: str) -> InviteLookupResponse:
        if not token:
            raise InvalidInput("missing token")
        try:
            invite = await self._store.get_invite_by_token(token)
            if not is_open(invite):
                return InviteLookupResponse(valid=False, error=InvalidOrExpired.code)
            team = await self._store.get_team(invite.team_id)
        except Exception as e:
            logger.error(f"Invite lookup failed for token {token[:8]}...: {e}")
            raise TransactionFailed("invite lookup failed")

        return InviteLookupResponse(
            valid=True,
            invitation=InvitationInfo(
                email=invite.email,
                role=invite.role,
                team_id=invite.team_id,
                team_name=team.name if team else "Unknown team",
                token=invite.token,
                expires_at=invite.expires_at,
            ),
        )

    async def accept(self, token: str) -> AcceptanceResult:
        if not token or self.session is None:
            return _reject(InvalidInput())
        user_id = self.session.user_id

        try:
            invite = await self._store.get_invite_by_token(token)
        except Exception as e:
            logger.error(f"[accept] lookup failed for token {token[:8]}...: {e}")
            return _reject(TransactionFailed())
        if not is_open(invite):
            logger.info(f"[accept] rejected token {token[:8]}... for user={user_id}: invalid_or_expired")
            return _reject(InvalidOrExpired())

        try:
            usage = await self._store.get_seat_usage(invite.team_id)
        except Exception as e:
            logger.error(f"[accept] seat usage read failed for team={invite.team_id}: {e}")
            return _reject(TransactionFailed(), invite.team_id)
        if usage is None:
            return _reject(InvalidOrExpired())
        if not usage.has_free_seat:
            logger.info(f"[accept] team={invite.team_id} is full ({usage.seats_used}/{usage.seat_limit})")
            return _reject(SeatLimitReached(), invite.team_id)

        try:
            await self._store.accept_invite(invite.team_id, user_id, invite.role, invite.id)
        except (InvalidOrExpired, SeatLimitReached) as e:
            logger.info(f"[accept] transaction rejected invite={invite.id} user={user_id}: {e.code}")
            return _reject(e, invite.team_id)
        except Exception as e:
            if is_permission_error(e):
                logger.warning(f"[accept] store denied invite={invite.id} user={user_id}: {e}")
                return _reject(AuthorizationError(), invite.team_id)
            logger.error(f"[accept] transaction failed invite={invite.id} user={user_id}: {e}")
            return _reject(TransactionFailed(), invite.team_id)

        logger.info(f"[accept] user={user_id} joined team={invite.team_id} as {invite.role}")
        return AcceptanceResult(accepted=True, team_id=invite.team_id)

    async def _team_for_admin(self, team_id: str):
        self.session.require(Permission.SEND_INVITATIONS)
        team = await self._store.get_team(team_id)
        if not team:
            raise NotFound("team not found")
        self.session.require_company(team.company_id)
        return team

    async def create_invite(self, team_id: str, email: str, role: str = "member") -> InviteCreated:
        team = await self._team_for_admin(team_id)

        usage = await self._store.get_seat_usage(team_id)
        if usage is not None and not usage.has_free_seat:
            raise SeatLimitReached()

        now = utc_now()
        invite = TeamInvite(
            id=str(uuid.uuid4()),
            token=str(uuid.uuid4()),
            team_id=team_id,
            email=email.lower(),
            role=role,
            status="pending",
            expires_at=(now + timedelta(days=INVITE_EXPIRY_DAYS)).isoformat(),
            created_at=now.isoformat(),
        )
        await self._store.insert_invite(invite)
        link = f"{PUBLIC_APP_URL}/accept?token={invite.token}"

        # Email is best-effort: the link is returned either way
        warn = None
        try:
            await self._send_email(invite.email, team.name, link)
            await self._store.mark_invite_emailed(invite.id, now_iso())
        except Exception as e:
            logger.error(f"Failed to send invite email to {invite.email}: {e}")
            warn = "failed to send"

        logger.info(f"Invite created: team={team_id} email={invite.email} role={role} by={self.session.user_id}")
        return InviteCreated(id=invite.id, link=link, expires_at=invite.expires_at, warn=warn)

    async def revoke_invite(self, invite_id: str):
        invite = await self._store.get_invite(invite_id)
        if not invite:
            raise NotFound("invitation not found")
        await self._team_for_admin(invite.team_id)
        if not await self._store.revoke_invite(invite_id):
            raise InvalidInput("invitation is not pending")
        logger.info(f"Invite revoked: id={invite_id} by={self.session.user_id}")

    async def list_invites(self, team_id: str) -> List[TeamInvite]:
        await self._team_for_admin(team_id)
        invites = await self._store.list_invites(team_id)
        for inv in invites:
            if inv.status == "pending" and is_expired(inv.expires_at):
                inv.status = "expired"
        return invites
