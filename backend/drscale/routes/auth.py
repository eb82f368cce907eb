import uuid
import logging
from fastapi import APIRouter, HTTPException, Depends
from drscale.core.config import DEFAULT_SEAT_LIMIT, DEFAULT_WARNING_THRESHOLD, INITIAL_BALANCE
from drscale.core.database import db
from drscale.core.security import (
    AuthSession,
    create_token,
    get_auth_session,
    hash_password,
    revoke_session,
    verify_password,
)
from drscale.core.permissions import resolve_permissions
from drscale.models.user import UserCreate, UserLogin, UserResponse, TokenResponse
from drscale.storage import get_balance_store, get_team_store
from drscale.utils import now_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def _get_company(company_id):
    if not company_id:
        return None
    return await db.companies.find_one({"id": company_id}, {"_id": 0})


def _user_response(user_doc, company=None):
    is_owner = bool(company and company.get("owner_id") == user_doc["id"])
    permissions = resolve_permissions(user_doc.get("role"), is_owner, bool(user_doc.get("is_super_admin")))
    return UserResponse(
        id=user_doc["id"],
        email=user_doc["email"],
        name=user_doc["name"],
        role=user_doc["role"],
        company_id=user_doc.get("company_id"),
        company_name=company["name"] if company else None,
        permissions=sorted(p.value for p in permissions),
        created_at=user_doc["created_at"],
    )


@router.post("/register", response_model=TokenResponse)
async def register(
    data: UserCreate,
    balances=Depends(get_balance_store),
    teams=Depends(get_team_store),
):
    existing = await db.users.find_one({"email": data.email})
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    now = now_iso()
    user_id = str(uuid.uuid4())
    company_id = str(uuid.uuid4())
    company = {
        "id": company_id,
        "name": data.company_name or f"{data.name} Company",
        "owner_id": user_id,
        "created_at": now,
        "updated_at": now,
    }
    await db.companies.insert_one(company)
    company.pop("_id", None)

    user_doc = {
        "id": user_id,
        "email": data.email,
        "password": hash_password(data.password),
        "name": data.name,
        "role": "owner",
        "company_id": company_id,
        "is_super_admin": False,
        "created_at": now,
    }
    await db.users.insert_one(user_doc)

    await teams.create_team(company_id, company["name"], DEFAULT_SEAT_LIMIT, owner_id=user_id)
    await balances.ensure_balance(user_id, company_id, INITIAL_BALANCE, DEFAULT_WARNING_THRESHOLD)
    logger.info(f"Registered user={user_id} company={company_id}")

    return TokenResponse(
        access_token=create_token(user_id),
        user=_user_response(user_doc, company),
    )


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin):
    user = await db.users.find_one({"email": data.email}, {"_id": 0})
    if not user or not verify_password(data.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    company = await _get_company(user.get("company_id"))
    return TokenResponse(
        access_token=create_token(user["id"]),
        user=_user_response(user, company),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(session: AuthSession = Depends(get_auth_session)):
    user = await db.users.find_one({"id": session.user_id}, {"_id": 0, "password": 0})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    company = await _get_company(user.get("company_id"))
    return _user_response(user, company)


@router.post("/logout")
async def logout(session: AuthSession = Depends(get_auth_session)):
    await revoke_session(session)
    return {"message": "Signed out"}
