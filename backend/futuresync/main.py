"""
FutureSync API - main application
"""
import logging
from datetime import datetime
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from dotenv import load_dotenv

from futuresync import config, stripe_service
from futuresync.ai_service import ai_service
from futuresync.database import get_db, check_database
from futuresync.exception_handlers import setup_exception_handlers
from futuresync.rate_limit import SecurityHeadersMiddleware
from futuresync.routers import auth, visions, actions, ai, analytics, users, billing

load_dotenv()
logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

app = FastAPI(
    title="FutureSync API",
    description="Visions, AI-generated daily actions and progress tracking",
    version=config.APP_VERSION
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

@app.get("/")
async def root():
    return {
        "message": "Welcome to the FutureSync API",
        "status": "running",
        "version": config.APP_VERSION
    }

@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    database_ok = check_database(db)
    return {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "services": {
            "database": "connected" if database_ok else "unavailable",
            "ai": "configured" if ai_service.is_configured() else "not_configured",
            "stripe": "configured" if stripe_service.is_configured() else "not_configured",
        },
    }

app.include_router(auth.router)
app.include_router(visions.router)
app.include_router(actions.router)
app.include_router(ai.router)
app.include_router(analytics.router)
app.include_router(users.router)
app.include_router(billing.router)
