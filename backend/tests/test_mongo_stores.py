"""
Integration tests for the MongoDB stores (need a replica set for transactions)
- concurrent charges for one call_id land once
- concurrent accepts never push seats_used past seat_limit
- accepting keeps an existing company

Skipped unless MONGO_URL is set.
"""
import asyncio
import os
import uuid
from contextlib import asynccontextmanager

import pytest
from motor.motor_asyncio import AsyncIOMotorClient

from drscale.core.database import ensure_indexes
from drscale.services.deduction import DeductionGateway
from drscale.services.invites import InviteAcceptanceFlow
from drscale.storage.mongo import MongoBalanceStore, MongoTeamStore
from conftest import COMPANY_ID, OTHER_COMPANY_ID, make_invite, make_session

MONGO_URL = os.environ.get("MONGO_URL")

pytestmark = pytest.mark.skipif(not MONGO_URL, reason="MONGO_URL not set")


@asynccontextmanager
async def mongo_stores():
    client = AsyncIOMotorClient(MONGO_URL)
    db = client[f"drscale_test_{uuid.uuid4().hex[:12]}"]
    try:
        await ensure_indexes(db)
        yield MongoBalanceStore(client, db), MongoTeamStore(client, db), db
    finally:
        await client.drop_database(db.name)
        client.close()


class TestMongoDeduction:

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_call_charged_once(self):
        async with mongo_stores() as (balances, _, db):
            await balances.ensure_balance("member-1", COMPANY_ID, 5.0, 10.0)
            gw = DeductionGateway(balances, max_retries=3, base_delay_ms=1, max_delay_ms=5)

            results = await asyncio.gather(*[
                gw.deduct("member-1", COMPANY_ID, "call-dup", 0.5) for _ in range(6)
            ])

            assert all(r.success for r in results)
            assert sum(1 for r in results if not r.duplicate) == 1
            assert {r.new_balance for r in results} == {4.5}
            assert (await balances.get_balance("member-1", COMPANY_ID)).balance == 4.5
            assert await db.credit_transactions.count_documents({"call_id": "call-dup"}) == 1

    @pytest.mark.asyncio
    async def test_sequential_retry_reports_duplicate(self):
        async with mongo_stores() as (balances, _, _db):
            await balances.ensure_balance("member-1", COMPANY_ID, 5.0, 10.0)
            first = await balances.deduct("member-1", COMPANY_ID, "call-1", 1.25)
            second = await balances.deduct("member-1", COMPANY_ID, "call-1", 1.25)
            assert first == (3.75, False)
            assert second == (3.75, True)


class TestMongoSeats:

    @pytest.mark.asyncio
    async def test_concurrent_accepts_respect_seat_limit(self):
        async with mongo_stores() as (_, teams, db):
            team = await teams.create_team(COMPANY_ID, "Sales", 3, owner_id="owner-1")
            invites = [await teams.insert_invite(make_invite(team.id)) for _ in range(6)]

            results = await asyncio.gather(*[
                InviteAcceptanceFlow(teams, make_session(f"user-{n}")).accept(inv.token)
                for n, inv in enumerate(invites)
            ])

            accepted = [r for r in results if r.accepted]
            assert len(accepted) == 2
            assert {r.reason for r in results if not r.accepted} == {"seat_limit_reached"}
            usage = await teams.get_seat_usage(team.id)
            assert usage.seats_used == 3
            assert await db.team_members.count_documents({"team_id": team.id}) == 3

    @pytest.mark.asyncio
    async def test_accept_keeps_existing_company(self):
        async with mongo_stores() as (_, teams, db):
            await db.users.insert_one({
                "id": "user-9", "email": "user9@example.com", "company_id": COMPANY_ID, "role": "admin",
            })
            await db.users.insert_one({"id": "user-10", "email": "user10@example.com", "company_id": None})
            team = await teams.create_team(OTHER_COMPANY_ID, "Partners", 5, owner_id="owner-2")
            first = await teams.insert_invite(make_invite(team.id, role="viewer"))
            second = await teams.insert_invite(make_invite(team.id, role="viewer"))

            await teams.accept_invite(team.id, "user-9", "viewer", first.id)
            await teams.accept_invite(team.id, "user-10", "viewer", second.id)

            assert await teams.get_user_company("user-9") == COMPANY_ID
            assert (await db.users.find_one({"id": "user-9"}))["role"] == "admin"
            assert await teams.get_user_company("user-10") == OTHER_COMPANY_ID
