"""
MongoDB-backed stores.

The two authoritative operations, ``deduct`` and ``accept_invite``, run in
multi-document transactions. Both write to the contended document (the
balance row, the team row) so that concurrent transactions raise a write
conflict and are retried by ``with_transaction`` against fresh state.
"""
import uuid
import logging
from typing import Optional, List
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

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
from drscale.utils import now_iso

logger = logging.getLogger(__name__)


class MongoBalanceStore(BalanceStore):
    def __init__(self, client, db):
        self._client = client
        self._db = db

    async def get_balance(self, user_id: str, company_id: str) -> Optional[UserBalance]:
        doc = await self._db.user_balances.find_one(
            {"user_id": user_id, "company_id": company_id}, {"_id": 0}
        )
        return UserBalance(**doc) if doc else None

    async def ensure_balance(self, user_id, company_id, initial_balance, warning_threshold) -> UserBalance:
        await self._db.user_balances.update_one(
            {"user_id": user_id, "company_id": company_id},
            {"$setOnInsert": {
                "user_id": user_id,
                "company_id": company_id,
                "balance": initial_balance,
                "warning_threshold": warning_threshold,
                "last_updated": now_iso(),
            }},
            upsert=True,
        )
        return await self.get_balance(user_id, company_id)

    async def _existing_charge(self, call_id: str, session=None) -> Optional[dict]:
        return await self._db.credit_transactions.find_one(
            {"call_id": call_id}, {"_id": 0}, session=session
        )

    async def deduct(self, user_id: str, company_id: str, call_id: str, amount: float) -> tuple:
        if amount < 0:
            raise InvalidInput("amount must not be negative")

        async def charge(session):
            existing = await self._existing_charge(call_id, session)
            if existing:
                return existing["balance_after"], True

            bal = await self._db.user_balances.find_one(
                {"user_id": user_id, "company_id": company_id}, {"_id": 0}, session=session
            )
            if not bal:
                raise NotFound("no balance for user")

            now = now_iso()
            updated = await self._db.user_balances.find_one_and_update(
                {"user_id": user_id, "company_id": company_id, "balance": {"$gt": 0}},
                {"$inc": {"balance": -amount}, "$set": {"last_updated": now}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            if not updated:
                raise AccountBlocked()

            new_balance = round(updated["balance"], 4)
            await self._db.credit_transactions.insert_one({
                "id": str(uuid.uuid4()),
                "user_id": user_id,
                "company_id": company_id,
                "call_id": call_id,
                "type": "call_charge",
                "amount": -amount,
                "description": f"Call charge for {call_id}",
                "balance_after": new_balance,
                "created_at": now,
            }, session=session)
            return new_balance, False

        try:
            async with await self._client.start_session() as session:
                return await session.with_transaction(charge)
        except DuplicateKeyError:
            # A concurrent charge for the same call committed first.
            existing = await self._existing_charge(call_id)
            logger.info(f"Deduction for call {call_id} already recorded by a concurrent request")
            return existing["balance_after"], True

    async def top_up(self, user_id, company_id, amount, description, actor_id) -> float:
        if amount <= 0:
            raise InvalidInput("amount must be positive")
        return await self._credit(
            user_id, company_id, amount, description or f"Top-up by {actor_id}", actor_id, "topup"
        )

    async def adjust_balance(self, user_id, company_id, amount, description, actor_id) -> float:
        if amount == 0:
            raise InvalidInput("amount must not be zero")
        return await self._credit(
            user_id, company_id, amount, description or f"Adjustment by {actor_id}", actor_id, "adjustment"
        )

    async def list_balances(self, company_id) -> List[UserBalance]:
        docs = await self._db.user_balances.find(
            {"company_id": company_id}, {"_id": 0}
        ).sort("user_id", 1).to_list(1000)
        return [UserBalance(**d) for d in docs]

    async def _credit(self, user_id, company_id, amount, description, actor_id, txn_type) -> float:
        async def credit(session):
            now = now_iso()
            updated = await self._db.user_balances.find_one_and_update(
                {"user_id": user_id, "company_id": company_id},
                {"$inc": {"balance": amount}, "$set": {"last_updated": now}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            if not updated:
                raise NotFound("no balance for user")
            new_balance = round(updated["balance"], 4)
            await self._db.credit_transactions.insert_one({
                "id": str(uuid.uuid4()),
                "user_id": user_id,
                "company_id": company_id,
                "type": txn_type,
                "amount": amount,
                "description": description,
                "actor_id": actor_id,
                "balance_after": new_balance,
                "created_at": now,
            }, session=session)
            return new_balance

        async with await self._client.start_session() as session:
            return await session.with_transaction(credit)

    async def list_transactions(self, user_id, company_id, limit=50, skip=0) -> List[CreditTransaction]:
        docs = (
            await self._db.credit_transactions.find(
                {"user_id": user_id, "company_id": company_id}, {"_id": 0}
            )
            .sort("created_at", -1)
            .skip(skip)
            .limit(limit)
            .to_list(limit)
        )
        return [CreditTransaction(**d) for d in docs]


class MongoTeamStore(TeamStore):
    def __init__(self, client, db):
        self._client = client
        self._db = db

    async def create_team(self, company_id, name, seat_limit, owner_id) -> Team:
        team = Team(
            id=str(uuid.uuid4()),
            company_id=company_id,
            name=name,
            seat_limit=seat_limit,
            seats_used=1 if owner_id else 0,
        )
        await self._db.teams.insert_one(team.model_dump())
        if owner_id:
            await self._db.team_members.insert_one({
                "team_id": team.id,
                "user_id": owner_id,
                "role": "owner",
                "joined_at": now_iso(),
            })
        return team

    async def get_team(self, team_id) -> Optional[Team]:
        doc = await self._db.teams.find_one({"id": team_id}, {"_id": 0})
        return Team(**doc) if doc else None

    async def list_teams(self, company_id) -> List[Team]:
        docs = await self._db.teams.find({"company_id": company_id}, {"_id": 0}).sort("name", 1).to_list(100)
        return [Team(**d) for d in docs]

    async def get_seat_usage(self, team_id) -> Optional[SeatUsage]:
        doc = await self._db.teams.find_one(
            {"id": team_id}, {"_id": 0, "id": 1, "seats_used": 1, "seat_limit": 1}
        )
        if not doc:
            return None
        return SeatUsage(team_id=doc["id"], seats_used=doc.get("seats_used", 0), seat_limit=doc.get("seat_limit"))

    async def list_members(self, team_id) -> List[TeamMember]:
        docs = await self._db.team_members.find({"team_id": team_id}, {"_id": 0}).to_list(1000)
        return [TeamMember(**d) for d in docs]

    async def insert_invite(self, invite: TeamInvite) -> TeamInvite:
        await self._db.team_invites.insert_one(invite.model_dump())
        return invite

    async def get_invite_by_token(self, token) -> Optional[TeamInvite]:
        doc = await self._db.team_invites.find_one({"token": token}, {"_id": 0})
        return TeamInvite(**doc) if doc else None

    async def get_invite(self, invite_id) -> Optional[TeamInvite]:
        doc = await self._db.team_invites.find_one({"id": invite_id}, {"_id": 0})
        return TeamInvite(**doc) if doc else None

    async def list_invites(self, team_id) -> List[TeamInvite]:
        docs = await self._db.team_invites.find(
            {"team_id": team_id}, {"_id": 0}
        ).sort("created_at", -1).to_list(500)
        return [TeamInvite(**d) for d in docs]

    async def mark_invite_emailed(self, invite_id, sent_at):
        await self._db.team_invites.update_one({"id": invite_id}, {"$set": {"email_sent_at": sent_at}})

    async def revoke_invite(self, invite_id) -> bool:
        result = await self._db.team_invites.update_one(
            {"id": invite_id, "status": "pending"},
            {"$set": {"status": "revoked"}},
        )
        return result.modified_count == 1

    async def get_user_company(self, user_id) -> Optional[str]:
        doc = await self._db.users.find_one({"id": user_id}, {"_id": 0, "company_id": 1})
        return doc.get("company_id") if doc else None

    async def accept_invite(self, team_id, user_id, role, invite_id) -> TeamMember:
        async def accept(session):
            now = now_iso()
            invite = await self._db.team_invites.find_one_and_update(
                {"id": invite_id, "team_id": team_id, "status": "pending", "expires_at": {"$gt": now}},
                {"$set": {"status": "accepted", "accepted_at": now, "accepted_by": user_id}},
                projection={"_id": 0},
                session=session,
            )
            if not invite:
                raise InvalidOrExpired()

            team = await self._db.teams.find_one({"id": team_id}, {"_id": 0}, session=session)
            if not team:
                raise InvalidOrExpired()

            existing = await self._db.team_members.find_one(
                {"team_id": team_id, "user_id": user_id}, {"_id": 0}, session=session
            )
            if existing:
                await self._db.team_members.update_one(
                    {"team_id": team_id, "user_id": user_id},
                    {"$set": {"role": role}},
                    session=session,
                )
                joined_at = existing["joined_at"]
            else:
                seat = await self._db.teams.find_one_and_update(
                    {"id": team_id, "$or": [
                        {"seat_limit": None},
                        {"seat_limit": {"$lt": 0}},
                        {"$expr": {"$lt": ["$seats_used", "$seat_limit"]}},
                    ]},
                    {"$inc": {"seats_used": 1}},
                    session=session,
                )
                if not seat:
                    raise SeatLimitReached()
                await self._db.team_members.insert_one({
                    "team_id": team_id,
                    "user_id": user_id,
                    "role": role,
                    "joined_at": now,
                }, session=session)
                joined_at = now

            # Only company-less users are attached; existing company and role stay
            await self._db.users.update_one(
                {"id": user_id, "company_id": None},
                {"$set": {"company_id": team["company_id"], "role": role}},
                session=session,
            )
            return TeamMember(team_id=team_id, user_id=user_id, role=role, joined_at=joined_at)

        async with await self._client.start_session() as session:
            return await session.with_transaction(accept)
