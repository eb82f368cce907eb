from drscale.services.pricing import estimate_cost, build_estimate, remaining_minutes
from drscale.services.balance_status import classify
from drscale.services.deduction import DeductionGateway
from drscale.services.balance_guard import BalanceGuard
from drscale.services.invites import InviteAcceptanceFlow
