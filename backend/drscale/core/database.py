import logging
from motor.motor_asyncio import AsyncIOMotorClient
from drscale.core.config import MONGO_URL, DB_NAME

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]


async def ensure_indexes(database=db):
    """Create the unique indexes the atomic operations rely on."""
    await database.user_balances.create_index([("user_id", 1), ("company_id", 1)], unique=True)
    await database.credit_transactions.create_index("call_id", unique=True, sparse=True)
    await database.credit_transactions.create_index([("user_id", 1), ("created_at", -1)])
    await database.team_invites.create_index("token", unique=True)
    await database.team_members.create_index([("team_id", 1), ("user_id", 1)], unique=True)
    await database.users.create_index("email", unique=True)
    await database.revoked_sessions.create_index("jti", unique=True)
    logger.info("MongoDB indexes ensured")
