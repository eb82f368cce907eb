"""Shared fixtures: in-memory stores, sessions per role, and an API client wired to them."""
import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient, ASGITransport

from drscale.core.security import AuthSession, get_auth_session
from drscale.main import app
from drscale.models.team import TeamInvite
from drscale.storage import MemoryBalanceStore, MemoryTeamStore, get_balance_store, get_team_store
from drscale.utils import utc_now

COMPANY_ID = "company-1"
OTHER_COMPANY_ID = "company-2"


def make_session(user_id: str, role: str = "member", company_id: str = COMPANY_ID, **kwargs) -> AuthSession:
    return AuthSession(user_id=user_id, company_id=company_id, role=role, **kwargs)


def make_invite(team_id: str, token: str = None, status: str = "pending",
                expires_in: timedelta = timedelta(days=7), role: str = "member",
                email: str = "new.member@example.com") -> TeamInvite:
    now = utc_now()
    return TeamInvite(
        id=str(uuid.uuid4()),
        token=token or str(uuid.uuid4()),
        team_id=team_id,
        email=email,
        role=role,
        status=status,
        expires_at=(now + expires_in).isoformat(),
        created_at=now.isoformat(),
    )


@pytest.fixture
def balance_store():
    return MemoryBalanceStore()


@pytest.fixture
def team_store():
    return MemoryTeamStore()


@pytest.fixture
def owner_session():
    return make_session("owner-1", role="owner", is_company_owner=True)


@pytest.fixture
def member_session():
    return make_session("member-1", role="member")


@pytest.fixture
def viewer_session():
    return make_session("viewer-1", role="viewer")


@pytest.fixture
def api_client(balance_store, team_store):
    """Factory: API client that authenticates every request as ``session``."""
    def make(session: AuthSession) -> AsyncClient:
        app.dependency_overrides[get_auth_session] = lambda: session
        app.dependency_overrides[get_balance_store] = lambda: balance_store
        app.dependency_overrides[get_team_store] = lambda: team_store
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    yield make
    app.dependency_overrides.clear()
