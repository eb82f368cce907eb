from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, Literal


InviteStatusValue = Literal["pending", "accepted", "expired", "revoked"]
InviteRole = Literal["admin", "member", "viewer"]


class TeamInvite(BaseModel):
    id: str
    token: str
    team_id: str
    email: str
    role: str
    status: InviteStatusValue
    expires_at: str
    created_at: str
    accepted_at: Optional[str] = None
    accepted_by: Optional[str] = None
    email_sent_at: Optional[str] = None


class Team(BaseModel):
    id: str
    company_id: str
    name: str
    seat_limit: Optional[int] = None
    seats_used: int = 0


class SeatUsage(BaseModel):
    team_id: str
    seats_used: int
    seat_limit: Optional[int] = None

    @property
    def is_limited(self) -> bool:
        return self.seat_limit is not None and self.seat_limit >= 0

    @property
    def has_free_seat(self) -> bool:
        return not self.is_limited or self.seats_used < self.seat_limit


class TeamMember(BaseModel):
    team_id: str
    user_id: str
    role: str
    joined_at: str


class InvitationInfo(BaseModel):
    email: str
    role: str
    team_id: str
    team_name: str
    token: str
    expires_at: str


class InviteLookupResponse(BaseModel):
    valid: bool
    invitation: Optional[InvitationInfo] = None
    error: Optional[str] = None


class AcceptanceResult(BaseModel):
    accepted: bool
    reason: Optional[str] = None
    status_code: int = 200
    team_id: Optional[str] = None


class InviteCreated(BaseModel):
    ok: bool = True
    id: str
    link: str
    expires_at: str
    warn: Optional[str] = None


class AcceptInviteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class CreateInviteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_id: str = Field(alias="teamId")
    email: EmailStr
    role: InviteRole = "member"
