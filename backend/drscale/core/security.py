import uuid
import jwt
import bcrypt
from datetime import datetime, timezone, timedelta
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from drscale.core.config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRATION_HOURS
from drscale.core.database import db
from drscale.core.errors import AuthorizationError
from drscale.core.permissions import Permission, Role, parse_role, resolve_permissions

security = HTTPBearer()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_token(user_id: str) -> str:
    payload = {
        "user_id": user_id,
        "jti": str(uuid.uuid4()),
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not payload.get("user_id"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


class AuthSession:
    """The signed-in user's identity and permissions for one request.

    Permissions are resolved once, when the session is opened, and the
    session object is handed explicitly to every guarded operation.
    """

    def __init__(
        self,
        user_id: str,
        company_id: str = None,
        role=Role.VIEWER,
        is_company_owner: bool = False,
        is_super_admin: bool = False,
        token_id: str = None,
    ):
        self.user_id = user_id
        self.company_id = company_id
        self.role = parse_role(role)
        self.is_company_owner = is_company_owner
        self.is_super_admin = is_super_admin
        self.token_id = token_id
        self.permissions = resolve_permissions(self.role, is_company_owner, is_super_admin)
        self.closed = False

    @classmethod
    def from_user(cls, user: dict, company: dict = None, token_id: str = None) -> "AuthSession":
        return cls(
            user_id=user["id"],
            company_id=user.get("company_id"),
            role=user.get("role"),
            is_company_owner=bool(company and company.get("owner_id") == user["id"]),
            is_super_admin=bool(user.get("is_super_admin")),
            token_id=token_id,
        )

    def can(self, permission: Permission) -> bool:
        return not self.closed and permission in self.permissions

    def require(self, permission: Permission):
        if self.closed:
            raise AuthorizationError("session closed")
        if permission not in self.permissions:
            raise AuthorizationError(f"missing permission: {permission.value}")

    def require_company(self, company_id: str):
        """Tenant isolation: super admins may act on any company."""
        if self.is_super_admin:
            return
        if not self.company_id or self.company_id != company_id:
            raise AuthorizationError("company mismatch")

    def close(self):
        self.closed = True
        self.permissions = frozenset()

    def __repr__(self):
        return f"AuthSession(user_id={self.user_id!r}, company_id={self.company_id!r}, role={self.role.value!r})"


async def open_session(token: str) -> AuthSession:
    payload = decode_token(token)
    jti = payload.get("jti")
    if jti and await db.revoked_sessions.find_one({"jti": jti}, {"_id": 0, "jti": 1}):
        raise HTTPException(status_code=401, detail="Session ended")

    user = await db.users.find_one({"id": payload["user_id"]}, {"_id": 0, "password": 0})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    company = None
    if user.get("company_id"):
        company = await db.companies.find_one({"id": user["company_id"]}, {"_id": 0})
    return AuthSession.from_user(user, company, token_id=jti)


async def get_auth_session(credentials: HTTPAuthorizationCredentials = Depends(security)) -> AuthSession:
    return await open_session(credentials.credentials)


async def revoke_session(session: AuthSession):
    """Sign-out: persist the token id so the bearer token stops working."""
    if session.token_id:
        await db.revoked_sessions.update_one(
            {"jti": session.token_id},
            {"$set": {
                "jti": session.token_id,
                "user_id": session.user_id,
                "revoked_at": datetime.now(timezone.utc).isoformat(),
            }},
            upsert=True,
        )
    session.close()


def require_permission(permission: Permission):
    async def dependency(session: AuthSession = Depends(get_auth_session)) -> AuthSession:
        if not session.can(permission):
            raise HTTPException(status_code=403, detail="Access denied")
        return session
    return dependency
