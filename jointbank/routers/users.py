"""
Users router — profile management for the logged-in user.

Endpoints:
  PATCH /users/me           — Update profile fields
  PUT   /users/me/password  — Change password
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.database import get_db
from jointbank.dependencies import get_current_user
from jointbank.models.user import User
from jointbank.schemas.common import ApiResponse, MessageResponse, envelope
from jointbank.schemas.user import PasswordChangeRequest, ProfileUpdateRequest, UserResponse
from jointbank.services import user_service

router = APIRouter()


@router.patch(
    "/me",
    response_model=ApiResponse[UserResponse],
    summary="Update profile fields",
)
async def update_my_profile(
    updates: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Update the authenticated user's profile.

    Only fields the client explicitly sent are updated (PATCH semantics).
    """
    # exclude_unset drops fields the client did not send
    update_data = updates.model_dump(exclude_unset=True)
    user = await user_service.update_profile(db, user, update_data)
    return envelope(user)


@router.put(
    "/me/password",
    response_model=ApiResponse[MessageResponse],
    summary="Change password",
)
async def change_my_password(
    request: PasswordChangeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await user_service.change_password(
        db,
        user,
        current_password=request.current_password,
        new_password=request.new_password,
    )
    return envelope({"message": "Password updated successfully"})
