from abc import ABC, abstractmethod
from typing import Optional, List

from drscale.models.billing import UserBalance, CreditTransaction
from drscale.models.team import TeamInvite, Team, SeatUsage, TeamMember


class BalanceStore(ABC):
    """
    Persistence contract for user balances and the credit ledger.

    ``deduct`` is the authoritative, atomic operation: it must be idempotent
    per ``call_id`` and must serialise concurrent callers on the balance row.
    Everything else only reads, or (top-ups, provisioning) increases/creates.
    """

    @abstractmethod
    async def get_balance(self, user_id: str, company_id: str) -> Optional[UserBalance]:
        ...

    @abstractmethod
    async def ensure_balance(
        self,
        user_id: str,
        company_id: str,
        initial_balance: float,
        warning_threshold: float,
    ) -> UserBalance:
        ...

    @abstractmethod
    async def deduct(self, user_id: str, company_id: str, call_id: str, amount: float) -> tuple:
        """Atomically charge ``amount`` for ``call_id``.

        Returns ``(new_balance, duplicate)``. A repeated ``call_id`` returns
        the balance recorded by the first charge with ``duplicate=True`` and
        changes nothing. Raises ``NotFound`` when no balance row exists and
        ``AccountBlocked`` when the balance is already at or below zero.
        """

    @abstractmethod
    async def top_up(
        self,
        user_id: str,
        company_id: str,
        amount: float,
        description: str,
        actor_id: str,
    ) -> float:
        ...

    @abstractmethod
    async def adjust_balance(
        self,
        user_id: str,
        company_id: str,
        amount: float,
        description: str,
        actor_id: str,
    ) -> float:
        """Admin correction; ``amount`` may be negative but not zero."""

    @abstractmethod
    async def list_balances(self, company_id: str) -> List[UserBalance]:
        ...

    @abstractmethod
    async def list_transactions(
        self, user_id: str, company_id: str, limit: int = 50, skip: int = 0
    ) -> List[CreditTransaction]:
        ...


class TeamStore(ABC):
    """
    Persistence contract for teams, seats and invitations.

    ``accept_invite`` is the authoritative, atomic operation: invite status
    and seat limit are re-validated inside the same transaction that creates
    the membership.
    """

    @abstractmethod
    async def create_team(self, company_id: str, name: str, seat_limit: Optional[int], owner_id: str) -> Team:
        ...

    @abstractmethod
    async def get_team(self, team_id: str) -> Optional[Team]:
        ...

    @abstractmethod
    async def list_teams(self, company_id: str) -> List[Team]:
        ...

    @abstractmethod
    async def get_seat_usage(self, team_id: str) -> Optional[SeatUsage]:
        ...

    @abstractmethod
    async def list_members(self, team_id: str) -> List[TeamMember]:
        ...

    @abstractmethod
    async def insert_invite(self, invite: TeamInvite) -> TeamInvite:
        ...

    @abstractmethod
    async def get_invite_by_token(self, token: str) -> Optional[TeamInvite]:
        ...

    @abstractmethod
    async def get_invite(self, invite_id: str) -> Optional[TeamInvite]:
        ...

    @abstractmethod
    async def list_invites(self, team_id: str) -> List[TeamInvite]:
        ...

    @abstractmethod
    async def mark_invite_emailed(self, invite_id: str, sent_at: str):
        ...

    @abstractmethod
    async def revoke_invite(self, invite_id: str) -> bool:
        """pending -> revoked. Returns False when the invite was not pending."""

    @abstractmethod
    async def get_user_company(self, user_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def accept_invite(self, team_id: str, user_id: str, role: str, invite_id: str) -> TeamMember:
        """Atomically consume the invite and create the membership.

        The role applies to the team membership only. A user without a
        company is attached to the team's company with that role; a user
        who already belongs to a company keeps their company and role.

        Raises ``InvalidOrExpired`` when the invite is no longer pending or
        has expired, ``SeatLimitReached`` when the team is full.
        """
