import asyncio
import uuid
from typing import Optional, List

from drscale.core.errors import (
    AccountBlocked,
    InvalidInput,
    InvalidOrExpired,
    NotFound,
    SeatLimitReached,
)
from drscale.models.billing import UserBalance, CreditTransaction
from drscale.models.team import TeamInvite, Team, SeatUsage, TeamMember
from drscale.storage.interface import BalanceStore, TeamStore
from drscale.utils import now_iso, is_expired


class MemoryBalanceStore(BalanceStore):
    """
    In-process balance store for tests and local development.

    A single lock serialises every mutation, which stands in for the
    serializable transaction of the database-backed store. State is lost
    when the process exits.
    """

    def __init__(self):
        self._balances = {}        # (user_id, company_id) -> UserBalance
        self._transactions = []    # CreditTransaction, oldest first
        self._charges = {}         # call_id -> CreditTransaction
        self._lock = asyncio.Lock()

    async def get_balance(self, user_id: str, company_id: str) -> Optional[UserBalance]:
        bal = self._balances.get((user_id, company_id))
        return bal.model_copy() if bal else None

    async def ensure_balance(self, user_id, company_id, initial_balance, warning_threshold) -> UserBalance:
        async with self._lock:
            key = (user_id, company_id)
            if key not in self._balances:
                self._balances[key] = UserBalance(
                    user_id=user_id,
                    company_id=company_id,
                    balance=initial_balance,
                    warning_threshold=warning_threshold,
                    last_updated=now_iso(),
                )
            return self._balances[key].model_copy()

    async def deduct(self, user_id: str, company_id: str, call_id: str, amount: float) -> tuple:
        if amount < 0:
            raise InvalidInput("amount must not be negative")
        async with self._lock:
            existing = self._charges.get(call_id)
            if existing:
                return existing.balance_after, True

            bal = self._balances.get((user_id, company_id))
            if not bal:
                raise NotFound("no balance for user")
            if bal.balance <= 0:
                raise AccountBlocked()

            await asyncio.sleep(0)
            now = now_iso()
            new_balance = round(bal.balance - amount, 4)
            bal.balance = new_balance
            bal.last_updated = now
            txn = CreditTransaction(
                id=str(uuid.uuid4()),
                user_id=user_id,
                company_id=company_id,
                call_id=call_id,
                type="call_charge",
                amount=-amount,
                description=f"Call charge for {call_id}",
                balance_after=new_balance,
                created_at=now,
            )
            self._charges[call_id] = txn
            self._transactions.append(txn)
            return new_balance, False

    async def _credit(self, user_id, company_id, amount, description, txn_type) -> float:
        async with self._lock:
            bal = self._balances.get((user_id, company_id))
            if not bal:
                raise NotFound("no balance for user")
            now = now_iso()
            bal.balance = round(bal.balance + amount, 4)
            bal.last_updated = now
            self._transactions.append(CreditTransaction(
                id=str(uuid.uuid4()),
                user_id=user_id,
                company_id=company_id,
                type=txn_type,
                amount=amount,
                description=description,
                balance_after=bal.balance,
                created_at=now,
            ))
            return bal.balance

    async def top_up(self, user_id, company_id, amount, description, actor_id) -> float:
        if amount <= 0:
            raise InvalidInput("amount must be positive")
        return await self._credit(user_id, company_id, amount, description or f"Top-up by {actor_id}", "topup")

    async def adjust_balance(self, user_id, company_id, amount, description, actor_id) -> float:
        if amount == 0:
            raise InvalidInput("amount must not be zero")
        return await self._credit(
            user_id, company_id, amount, description or f"Adjustment by {actor_id}", "adjustment"
        )

    async def list_balances(self, company_id) -> List[UserBalance]:
        rows = [b.model_copy() for (_, cid), b in self._balances.items() if cid == company_id]
        return sorted(rows, key=lambda b: b.user_id)

    async def list_transactions(self, user_id, company_id, limit=50, skip=0) -> List[CreditTransaction]:
        rows = [
            t for t in reversed(self._transactions)
            if t.user_id == user_id and t.company_id == company_id
        ]
        return [t.model_copy() for t in rows[skip:skip + limit]]


class MemoryTeamStore(TeamStore):
    """In-process team store; the lock plays the part of the accept transaction."""

    def __init__(self):
        self._teams = {}       # team_id -> Team
        self._members = {}     # (team_id, user_id) -> TeamMember
        self._invites = {}     # invite_id -> TeamInvite
        self._users = {}       # user_id -> (company_id, role)
        self._lock = asyncio.Lock()

    async def create_team(self, company_id, name, seat_limit, owner_id) -> Team:
        async with self._lock:
            team = Team(id=str(uuid.uuid4()), company_id=company_id, name=name, seat_limit=seat_limit, seats_used=0)
            if owner_id:
                self._users.setdefault(owner_id, (company_id, "owner"))
                self._members[(team.id, owner_id)] = TeamMember(
                    team_id=team.id, user_id=owner_id, role="owner", joined_at=now_iso()
                )
                team.seats_used = 1
            self._teams[team.id] = team
            return team.model_copy()

    async def get_team(self, team_id) -> Optional[Team]:
        team = self._teams.get(team_id)
        return team.model_copy() if team else None

    async def list_teams(self, company_id) -> List[Team]:
        return [t.model_copy() for t in self._teams.values() if t.company_id == company_id]

    async def get_seat_usage(self, team_id) -> Optional[SeatUsage]:
        team = self._teams.get(team_id)
        if not team:
            return None
        await asyncio.sleep(0)
        return SeatUsage(team_id=team_id, seats_used=team.seats_used, seat_limit=team.seat_limit)

    async def list_members(self, team_id) -> List[TeamMember]:
        return [m.model_copy() for (tid, _), m in self._members.items() if tid == team_id]

    async def insert_invite(self, invite: TeamInvite) -> TeamInvite:
        async with self._lock:
            if any(i.token == invite.token for i in self._invites.values()):
                raise InvalidInput("duplicate token")
            self._invites[invite.id] = invite.model_copy()
            return invite

    async def get_invite_by_token(self, token) -> Optional[TeamInvite]:
        for invite in self._invites.values():
            if invite.token == token:
                return invite.model_copy()
        return None

    async def get_invite(self, invite_id) -> Optional[TeamInvite]:
        invite = self._invites.get(invite_id)
        return invite.model_copy() if invite else None

    async def list_invites(self, team_id) -> List[TeamInvite]:
        rows = [i.model_copy() for i in self._invites.values() if i.team_id == team_id]
        return sorted(rows, key=lambda i: i.created_at, reverse=True)

    async def mark_invite_emailed(self, invite_id, sent_at):
        async with self._lock:
            if invite_id in self._invites:
                self._invites[invite_id].email_sent_at = sent_at

    async def revoke_invite(self, invite_id) -> bool:
        async with self._lock:
            invite = self._invites.get(invite_id)
            if not invite or invite.status != "pending":
                return False
            invite.status = "revoked"
            return True

    async def get_user_company(self, user_id) -> Optional[str]:
        entry = self._users.get(user_id)
        return entry[0] if entry else None

    async def accept_invite(self, team_id, user_id, role, invite_id) -> TeamMember:
        async with self._lock:
            invite = self._invites.get(invite_id)
            if not invite or invite.status != "pending" or is_expired(invite.expires_at):
                raise InvalidOrExpired()
            team = self._teams.get(team_id)
            if not team or invite.team_id != team_id:
                raise InvalidOrExpired()

            await asyncio.sleep(0)
            existing = self._members.get((team_id, user_id))
            if not existing:
                usage = SeatUsage(team_id=team_id, seats_used=team.seats_used, seat_limit=team.seat_limit)
                if not usage.has_free_seat:
                    raise SeatLimitReached()
                team.seats_used += 1

            now = now_iso()
            member = TeamMember(team_id=team_id, user_id=user_id, role=role, joined_at=existing.joined_at if existing else now)
            self._members[(team_id, user_id)] = member
            self._users.setdefault(user_id, (team.company_id, role))
            invite.status = "accepted"
            invite.accepted_at = now
            invite.accepted_by = user_id
            return member.model_copy()
