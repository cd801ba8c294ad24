"""
User administration endpoints (admin role only).
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.auth import require_admin
from ..core.database import get_db
from ..models.user import User, UserRole
from ..schemas.user import (
    AdminUserListResponse,
    AdminUserSummary,
    RoleChangeSummary,
    RoleUpdateRequest,
    RoleUpdateResponse,
    VALID_ROLES,
)


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/users", tags=["Admin"])


@router.get("", response_model=AdminUserListResponse, summary="List Users")
async def list_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminUserListResponse:
    try:
        users = db.query(User).order_by(User.first_name).all()
    except SQLAlchemyError:
        logger.exception("Failed to fetch users")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch users")

    return AdminUserListResponse(users=[AdminUserSummary.model_validate(u) for u in users])


@router.patch("/{user_id}/role", response_model=RoleUpdateResponse, summary="Change User Role")
async def update_user_role(
    user_id: UUID,
    body: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> RoleUpdateResponse:
    if body.role not in VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}",
        )

    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    new_role = UserRole(body.role)
    if target.id == admin.id and new_role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own admin role",
        )

    old_role = target.role.value
    target.role = new_role
    db.commit()
    logger.info(f"Admin {admin.id} changed role of user {target.id}: {old_role} -> {new_role.value}")

    return RoleUpdateResponse(
        message=f"Successfully changed {target.full_name}'s role to {new_role.value}",
        user=RoleChangeSummary(
            id=target.id,
            name=target.full_name,
            email=target.email,
            old_role=old_role,
            new_role=new_role.value,
        ),
    )
