"""
Application settings
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Public URLs (links in emails, origin checks)
APP_URL = os.getenv("APP_URL", "http://localhost:3000")
PUBLIC_APP_URL = os.getenv("PUBLIC_APP_URL", "")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# AI settings
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
AI_TIMEOUT_SECONDS = int(os.getenv("AI_TIMEOUT_SECONDS", "60"))

AI_MODEL = "gpt-4o-mini"
AI_MAX_TOKENS = 500
AI_TEMPERATURE = 0.7
AI_CACHE_SECONDS = 5 * 60
AI_USER_REQUESTS_PER_MINUTE = 10

# AI Model Configuration by Plan
AI_MODEL_BY_PLAN = {
    "free": {
        "primary": "openai",
        "fallback_order": ["openai", "gemini", "claude"]
    },
    "pro": {
        "primary": "openai",
        "fallback_order": ["openai", "claude", "gemini"]
    },
    "enterprise": {
        "primary": "claude",
        "fallback_order": ["claude", "openai", "gemini"]
    }
}

# Used when the plan is unknown
DEFAULT_FALLBACK_ORDER = ["openai", "claude", "gemini"]

# AI usage quotas per plan
AI_QUOTAS = {
    "free": {"monthly_tokens": 50000, "daily_api_calls": 20, "monthly_api_calls": 300},
    "pro": {"monthly_tokens": 500000, "daily_api_calls": 200, "monthly_api_calls": 3000},
    "enterprise": {"monthly_tokens": 2000000, "daily_api_calls": 1000, "monthly_api_calls": 10000},
}

# Price per token in USD
TOKEN_COSTS = {
    "gpt-4o-mini": {"input": 0.00015 / 1000, "output": 0.0006 / 1000},
    "gpt-4": {"input": 0.03 / 1000, "output": 0.06 / 1000},
}

# Estimated tokens charged per AI endpoint
AI_ENDPOINT_TOKENS = {
    "generate-actions": 500,
    "analyze-vision": 300,
    "insights": 400,
}

# Active visions allowed per plan
VISION_LIMITS = {"free": 2, "pro": 10, "enterprise": 50}

# Request rate limits: requests per window, keyed by identifier type
RATE_LIMIT_CONFIGS = {
    "register": {"requests": 3, "window": "1h", "identifier": "ip",
                 "message": "Too many registration attempts. Please try again in 1 hour."},
    "forgot_password": {"requests": 3, "window": "1h", "identifier": "combined",
                        "message": "Too many password reset requests. Please try again in 1 hour."},
    "reset_password": {"requests": 5, "window": "1h", "identifier": "ip",
                       "message": "Too many password reset attempts. Please try again in 1 hour."},
}

# Failed login attempts before lockout
MAX_LOGIN_ATTEMPTS = 5
LOGIN_ATTEMPT_WINDOW_MINUTES = 15

# Token lifetimes
EMAIL_VERIFICATION_TOKEN_HOURS = 24
PASSWORD_RESET_TOKEN_HOURS = 1
# Skip the verification email and activate new accounts immediately
AUTO_VERIFY_EMAIL = os.getenv("AUTO_VERIFY_EMAIL", "false").lower() == "true"

# Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_PRO_PRICE_ID = os.getenv("STRIPE_PRO_PRICE_ID", "")
STRIPE_ENTERPRISE_PRICE_ID = os.getenv("STRIPE_ENTERPRISE_PRICE_ID", "")

# SMTP
SMTP_SERVER = os.getenv("SMTP_SERVER", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SENDER_EMAIL = os.getenv("SENDER_EMAIL", "")
SENDER_PASSWORD = os.getenv("SENDER_PASSWORD", "")
