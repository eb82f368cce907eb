from pydantic import BaseModel
from typing import Optional, List


class UserBalance(BaseModel):
    user_id: str
    company_id: str
    balance: float
    warning_threshold: float
    last_updated: str


class BalanceStatus(BaseModel):
    balance: float
    warning_threshold: float
    critical_threshold: float
    is_low: bool
    is_critical: bool
    is_blocked: bool

    @property
    def level(self) -> str:
        if self.is_blocked:
            return "blocked"
        if self.is_critical:
            return "critical"
        if self.is_low:
            return "low"
        return "normal"


class CallCostEstimate(BaseModel):
    duration_sec: float
    rate_per_minute: float
    cost: float


class CallAuthorization(BaseModel):
    allowed: bool
    reason: Optional[str] = None  # unknown_balance | account_blocked | insufficient_balance
    estimate: CallCostEstimate
    status: Optional[BalanceStatus] = None


class DeductionResult(BaseModel):
    success: bool
    call_id: str
    amount: float
    new_balance: Optional[float] = None
    duplicate: bool = False
    skipped: bool = False
    error: Optional[str] = None
    attempts: int = 0


class CreditTransaction(BaseModel):
    id: str
    user_id: str
    company_id: str
    call_id: Optional[str] = None
    type: str  # call_charge | topup | adjustment
    amount: float
    description: str
    balance_after: float
    created_at: str


class EstimateRequest(BaseModel):
    duration_sec: float
    rate_per_minute: Optional[float] = None


class EstimateResponse(CallCostEstimate):
    remaining_minutes: Optional[int] = None


class AuthorizeCallRequest(BaseModel):
    expected_duration_sec: float
    rate_per_minute: Optional[float] = None


class CallCompletionRequest(BaseModel):
    duration_sec: float
    rate_per_minute: Optional[float] = None
    status: str = "completed"


class AdminTopupRequest(BaseModel):
    user_id: str
    company_id: str
    amount: float
    description: str = ""


class UserBalanceOverview(BaseModel):
    user_id: str
    balance: float
    warning_threshold: float
    critical_threshold: float
    status: str  # normal | low | critical | blocked
    last_updated: str


class BulkAdjustRequest(BaseModel):
    user_ids: List[str]
    company_id: str
    amount: float  # negative to debit
    description: str = ""


class BulkAdjustResult(BaseModel):
    success_count: int
    failed: List[str] = []
