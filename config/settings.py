"""
Bookmart - Centralized Configuration
=====================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")

if os.getenv("DATABASE_URL"):
    DATABASE_URL = os.getenv("DATABASE_URL")
elif all([DB_USER, DB_PASSWORD, DB_NAME]):
    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
else:
    DATABASE_URL = "sqlite:///./bookmart.db"


# ==========================================
# 🔐 Security
# ==========================================
SECRET_KEY = os.getenv("SECRET_KEY")

if not SECRET_KEY:
    print("[ERROR] Critical: SECRET_KEY missing in .env")
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


# ==========================================
# 💳 Payment (UPI)
# ==========================================
PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "simulated")

UPI_PAYEE_ID = os.getenv("UPI_PAYEE_ID", "bookmart@upi")
UPI_PAYEE_NAME = os.getenv("UPI_PAYEE_NAME", "Bookmart")
UPI_CURRENCY = os.getenv("UPI_CURRENCY", "INR")
UPI_CALLBACK_SECRET = os.getenv("UPI_CALLBACK_SECRET", "")

# Simulated gateway
UPI_SIMULATED_SUCCESS_RATE = float(os.getenv("UPI_SIMULATED_SUCCESS_RATE") or "0.9")
UPI_SIMULATED_DELAY_SECONDS = float(os.getenv("UPI_SIMULATED_DELAY_SECONDS") or "2")

# Real gateway over HTTP
UPI_GATEWAY_URL = os.getenv("UPI_GATEWAY_URL", "")
UPI_MERCHANT_ID = os.getenv("UPI_MERCHANT_ID", "")
UPI_API_KEY = os.getenv("UPI_API_KEY", "")
UPI_GATEWAY_TIMEOUT = float(os.getenv("UPI_GATEWAY_TIMEOUT") or "15")


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Pending UPI orders are cancelled after this many minutes without verification
PENDING_ORDER_EXPIRE_MINUTES = int(os.getenv("PENDING_ORDER_EXPIRE_MINUTES") or "30")
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
