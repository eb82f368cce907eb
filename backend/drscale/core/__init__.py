# Core module exports
from drscale.core.config import *
from drscale.core.database import db, client
from drscale.core.security import (
    hash_password,
    verify_password,
    create_token,
    get_auth_session,
    require_permission,
    AuthSession,
    security
)
