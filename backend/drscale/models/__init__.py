# Models exports
from drscale.models.user import UserCreate, UserLogin, UserResponse, TokenResponse
from drscale.models.billing import (
    UserBalance, BalanceStatus, CallCostEstimate, CallAuthorization,
    DeductionResult, CreditTransaction
)
from drscale.models.team import (
    TeamInvite, Team, SeatUsage, TeamMember,
    InviteLookupResponse, AcceptanceResult, InviteCreated
)
