# Routes exports
from drscale.routes.auth import router as auth_router
from drscale.routes.billing import router as billing_router
from drscale.routes.team import router as team_router
