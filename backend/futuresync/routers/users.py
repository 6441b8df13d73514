"""
User account routes: profile, deletion and data export
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from futuresync.database import get_db
from futuresync.crud import user as crud_user
from futuresync.crud import audit as crud_audit
from futuresync.rate_limit import get_client_ip
from futuresync.routers.auth import get_current_user, UserResponse
from futuresync.security import sanitize_input

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"]
)

ADMIN_ROLES = ("admin", "enterprise_admin")

class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255, alias="displayName")
    avatar_url: Optional[str] = Field(default=None, max_length=500, alias="avatarUrl")
    timezone: Optional[str] = Field(default=None, max_length=50)
    locale: Optional[str] = Field(default=None, max_length=10)
    onboarding_completed: Optional[bool] = Field(default=None, alias="onboardingCompleted")

    class Config:
        populate_by_name = True

class UserDelete(BaseModel):
    confirmDeletion: bool = False
    hardDelete: bool = False

class ExportResponse(BaseModel):
    id: str
    status: str
    requested_at: datetime
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True

def is_admin(user) -> bool:
    return user.role in ADMIN_ROLES

def get_accessible_user(db: Session, user_id: str, current_user, admin_allowed: bool = True):
    """Users may act on themselves; admins on anyone unless admin_allowed is False"""
    if current_user.id != user_id and not (admin_allowed and is_admin(current_user)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    user = crud_user.get_user(db, user_id)
    if not user or user.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user

def client_info(request: Request) -> dict:
    return {"ip_address": get_client_ip(request), "user_agent": request.headers.get("user-agent")}

@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = get_accessible_user(db, user_id, current_user)
    return {"success": True, "data": UserResponse.model_validate(user).model_dump(mode="json")}

@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    request: Request,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = get_accessible_user(db, user_id, current_user)

    updates = body.model_dump(exclude_none=True)
    for field in ("name", "display_name"):
        if field in updates:
            updates[field] = sanitize_input(updates[field])
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    old_values = {field: getattr(user, field) for field in updates}
    updated = crud_user.update_user(db, user, updates)
    crud_audit.log_action(
        db, current_user.id, "update", "user", user.id,
        old_values=old_values, new_values=updates, **client_info(request)
    )
    return {
        "success": True,
        "data": UserResponse.model_validate(updated).model_dump(mode="json"),
        "message": "Profile updated successfully",
    }

@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    body: UserDelete,
    request: Request,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = get_accessible_user(db, user_id, current_user)
    if not body.confirmDeletion:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account deletion must be confirmed with confirmDeletion: true"
        )

    if body.hardDelete:
        if not is_admin(current_user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only administrators can permanently delete accounts")
        crud_audit.log_action(
            db, current_user.id, "delete_account", "user", user.id,
            old_values={"email": user.email}, **client_info(request)
        )
        crud_user.hard_delete_user(db, user)
        logger.info(f"User {user_id} permanently deleted by {current_user.id}")
        return {"success": True, "message": "Account permanently deleted"}

    old_email = user.email
    crud_user.soft_delete_user(db, user)
    crud_audit.log_action(
        db, current_user.id, "delete_account", "user", user.id,
        old_values={"email": old_email}, new_values={"deleted": True}, **client_info(request)
    )
    logger.info(f"User {user_id} soft-deleted by {current_user.id}")
    return {"success": True, "message": "Account deleted successfully"}

@router.post("/{user_id}/export")
async def export_user_data(
    user_id: str,
    request: Request,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = get_accessible_user(db, user_id, current_user, admin_allowed=False)
    if crud_audit.get_pending_export(db, user.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A data export is already in progress"
        )

    export_request = crud_audit.create_export_request(db, user.id)
    try:
        data = crud_audit.build_user_export(db, user)
    except Exception as e:
        logger.error(f"Data export failed for user {user.id}: {e}", exc_info=True)
        crud_audit.complete_export_request(db, export_request, success=False)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to export data"
        )

    crud_audit.complete_export_request(db, export_request)
    crud_audit.log_action(db, user.id, "export_data", "user", user.id, **client_info(request))
    return {"success": True, "requestId": export_request.id, "data": data}

@router.get("/{user_id}/export")
async def list_exports(
    user_id: str,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = get_accessible_user(db, user_id, current_user, admin_allowed=False)
    requests = crud_audit.list_export_requests(db, user.id)
    return {
        "success": True,
        "data": [ExportResponse.model_validate(r).model_dump(mode="json") for r in requests],
    }
