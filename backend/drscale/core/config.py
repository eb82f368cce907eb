import os
from dotenv import load_dotenv

load_dotenv()

# Database
MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "drscale")

# JWT
JWT_SECRET = os.environ.get("JWT_SECRET", "your-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.environ.get("JWT_EXPIRATION_HOURS", "24"))

# Call pricing (USD)
DEFAULT_RATE_PER_MINUTE = float(os.environ.get("DEFAULT_RATE_PER_MINUTE", "0.02"))
COST_PRECISION = 4

# Balance thresholds (USD)
DEFAULT_WARNING_THRESHOLD = float(os.environ.get("DEFAULT_WARNING_THRESHOLD", "10.0"))
CRITICAL_BALANCE_THRESHOLD = float(os.environ.get("CRITICAL_BALANCE_THRESHOLD", "1.0"))
INITIAL_BALANCE = float(os.environ.get("INITIAL_BALANCE", "0.0"))
BALANCE_FETCH_TIMEOUT_SEC = float(os.environ.get("BALANCE_FETCH_TIMEOUT_SEC", "20"))

# Deduction retry policy
DEDUCTION_MAX_RETRIES = int(os.environ.get("DEDUCTION_MAX_RETRIES", "3"))
DEDUCTION_BASE_DELAY_MS = int(os.environ.get("DEDUCTION_BASE_DELAY_MS", "300"))
DEDUCTION_MAX_DELAY_MS = int(os.environ.get("DEDUCTION_MAX_DELAY_MS", "5000"))

# Teams
DEFAULT_SEAT_LIMIT = int(os.environ.get("DEFAULT_SEAT_LIMIT", "5"))
INVITE_EXPIRY_DAYS = int(os.environ.get("INVITE_EXPIRY_DAYS", "7"))

# Email (Resend)
RESEND_API_KEY = os.environ.get("RESEND_API_KEY", "")
RESEND_FROM = os.environ.get("RESEND_FROM", "no-reply@drscale.ai")
PUBLIC_APP_URL = os.environ.get("PUBLIC_APP_URL", "https://app.drscale.ai")
