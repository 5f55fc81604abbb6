import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",") if origin.strip()
]

# Booking workflow
PAYMENT_DEADLINE_MINUTES = int(os.getenv("PAYMENT_DEADLINE_MINUTES", "15"))
OWNER_RESPONSE_MINUTES = int(os.getenv("OWNER_RESPONSE_MINUTES", "1440"))
ADMIN_COMMISSION_RATE = float(os.getenv("ADMIN_COMMISSION_RATE", "10"))

# Expiration sweeper
SWEEPER_ENABLED = os.getenv("SWEEPER_ENABLED", "false").lower() == "true"
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))

# Collaborator services
PROPERTY_SERVICE_URL = os.getenv("PROPERTY_SERVICE_URL", "http://localhost:8001/")
NOTIFICATION_SERVICE_URL = os.getenv("NOTIFICATION_SERVICE_URL", "http://localhost:8002/")

# Payment processor webhook credentials (HTTP Basic)
WEBHOOK_USERNAME = os.getenv("WEBHOOK_USERNAME", "")
WEBHOOK_PASSWORD = os.getenv("WEBHOOK_PASSWORD", "")
