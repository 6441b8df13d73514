"""
Authentication routes
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import List, Optional
from urllib.parse import quote

from futuresync import config, email_service
from futuresync.database import get_db
from futuresync.crud import user as crud_user
from futuresync.crud import token as crud_token
from futuresync.crud import audit as crud_audit
from futuresync.crud.subscription import get_user_plan
from futuresync.rate_limit import (
    rate_limit, rate_limiter, require_request_size, require_valid_origin,
    login_attempts, RateLimitExceeded, get_client_ip, log_security_event,
)
from futuresync.security import (
    create_access_token, decode_access_token, sanitize_input, validate_password_strength,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

GENERIC_REGISTER_MESSAGE = "If this email is not already registered, you will receive a verification email shortly."
GENERIC_RESET_MESSAGE = "If an account with that email exists, you will receive a password reset link shortly."

class UserRegister(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(min_length=1, max_length=255)
    acceptTerms: bool = True

class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None
    role: str
    is_active: bool
    onboarding_completed: bool
    email_verified_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class TokenBody(BaseModel):
    token: str = Field(min_length=1)

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str

def password_errors(password: str) -> List[dict]:
    _, errors = validate_password_strength(password)
    return [{"field": "password", "message": message} for message in errors]

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
):
    """Resolve the bearer token to a user"""
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    email: str = payload.get("sub")
    if email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = crud_user.get_user_by_email(db, email=email)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active"
        )

    return user

def get_current_plan(
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> str:
    return get_user_plan(db, current_user.id)

@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[
        Depends(require_request_size(10)),
        Depends(require_valid_origin),
        Depends(rate_limit("register")),
    ],
)
async def register(
    user_data: UserRegister,
    request: Request,
    db: Session = Depends(get_db)
):
    """Create an account and send the verification email"""
    errors = password_errors(user_data.password)
    if not user_data.acceptTerms:
        errors.append({"field": "acceptTerms", "message": "You must accept the terms and conditions"})
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Validation failed", "details": errors}
        )

    email = user_data.email.lower()
    if crud_user.get_user_by_email(db, email=email):
        # Same answer as a fresh registration
        logger.info("Registration attempted for an existing email")
        return JSONResponse(status_code=status.HTTP_200_OK, content={
            "success": True,
            "message": GENERIC_REGISTER_MESSAGE,
        })

    try:
        user = crud_user.create_user(
            db=db,
            email=email,
            password=user_data.password,
            name=sanitize_input(user_data.name),
            is_active=config.AUTO_VERIFY_EMAIL,
            email_verified=config.AUTO_VERIFY_EMAIL,
        )
        if not config.AUTO_VERIFY_EMAIL:
            verification_token = crud_token.create_email_verification_token(db, user.id)
            if not email_service.send_verification_email(user.email, verification_token, user.name):
                logger.warning(f"Verification email could not be sent to user {user.id}")

        crud_audit.log_action(
            db, user.id, "create", "user", user.id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except Exception as e:
        logger.error(f"Registration error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Registration failed. Please try again.", "code": "REGISTRATION_ERROR"}
        )

    return {
        "success": True,
        "message": "Registration successful. Please check your email to verify your account.",
        "userId": user.id,
    }

@router.post("/login", response_model=Token)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Exchange email and password for a bearer token"""
    email = form_data.username.lower()
    attempt_key = f"{email}:{get_client_ip(request)}"
    locked = login_attempts.lockout(attempt_key)
    if locked:
        raise RateLimitExceeded(locked, "Too many failed login attempts. Please try again in 15 minutes.")

    user = crud_user.get_user_by_email(db, email=email)
    if user and not user.password_hash:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This account uses social sign-in. Please sign in with your provider."
        )

    if not user or not crud_user.authenticate_user(db, email=email, password=form_data.password):
        login_attempts.record_failure(attempt_key)
        log_security_event("authentication_failure", {"ip": get_client_ip(request)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account not verified. Please check your email."
        )

    login_attempts.clear(attempt_key)
    crud_user.update_last_login(db, user)
    crud_audit.log_action(
        db, user.id, "login", "user", user.id,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    access_token = create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {"access_token": access_token, "token_type": "bearer"}

@router.get("/me")
async def read_users_me(
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Current user with plan and progress"""
    progress = crud_user.get_progress(db, current_user.id)
    return {
        "success": True,
        "data": {
            "user": UserResponse.model_validate(current_user).model_dump(mode="json"),
            "plan": get_user_plan(db, current_user.id),
            "progress": {
                "currentStreak": progress.current_streak,
                "longestStreak": progress.longest_streak,
                "totalDaysCompleted": progress.total_days_completed,
                "totalActionsCompleted": progress.total_actions_completed,
                "totalTimeInvestedMinutes": progress.total_time_invested_minutes,
                "lastCompletionDate": progress.last_completion_date.isoformat() if progress.last_completion_date else None,
            } if progress else None,
        },
    }

@router.post("/verify")
async def verify_email(body: TokenBody, db: Session = Depends(get_db)):
    user = crud_token.verify_email(db, body.token)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid or expired verification token", "code": "VERIFICATION_FAILED"}
        )
    email_service.send_welcome_email(user.email, user.name)
    return {"success": True, "message": "Email verified successfully. You can now sign in."}

@router.get("/verify")
async def verify_email_link(token: Optional[str] = None):
    """Email links land here and are forwarded to the frontend"""
    if not token:
        return RedirectResponse(f"{config.APP_URL}/auth/error?error=missing_token")
    return RedirectResponse(f"{config.APP_URL}/auth/verify?token={quote(token)}")

@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    email = body.email.lower()
    limit = config.RATE_LIMIT_CONFIGS["forgot_password"]
    result = rate_limiter.hit(f"forgot_password:{email}:{get_client_ip(request)}", limit["requests"], limit["window"])
    if not result.success:
        log_security_event("rate_limit_exceeded", {"ip": get_client_ip(request), "path": request.url.path})
        raise RateLimitExceeded(result, limit["message"])

    user = crud_user.get_user_by_email(db, email=email)
    if user and user.is_active and user.password_hash:
        reset_token = crud_token.create_password_reset_token(db, user.id)
        if not email_service.send_password_reset_email(user.email, reset_token, user.name):
            logger.warning(f"Password reset email could not be sent to user {user.id}")
    else:
        logger.info("Password reset requested for unknown or inactive account")

    return {"success": True, "message": GENERIC_RESET_MESSAGE}

@router.post("/reset-password", dependencies=[Depends(rate_limit("reset_password"))])
async def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    errors = password_errors(body.password)
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Validation failed", "details": errors}
        )

    user = crud_token.reset_password_with_token(db, body.token, body.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid or expired reset token", "code": "RESET_FAILED"}
        )
    email_service.send_password_changed_email(user.email, user.name)
    return {"success": True, "message": "Password reset successfully. You can now sign in with your new password."}

@router.get("/reset-password")
async def validate_reset_token(token: Optional[str] = None, db: Session = Depends(get_db)):
    user = crud_token.validate_password_reset_token(db, token) if token else None
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid or expired reset token", "code": "INVALID_TOKEN"}
        )
    return {"success": True, "valid": True, "email": user.email}
