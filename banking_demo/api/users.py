"""
User endpoints: signup, login, profile, settings, password change and deletion
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, Identity, create_access_token, get_banking_system, get_current_identity
from .responses import account_to_response, http_errors, user_to_response
from .schemas import (
    AuthRequest, ChangePasswordRequest, CreateUserRequest, UpdateSettingsRequest, UpdateUserRequest
)
from ..logging_config import get_logger, log_action


router = APIRouter()
logger = get_logger("banking_demo.api.users")


def _require_self(user_id: str, identity: Identity) -> None:
    if identity.user_id != user_id:
        raise HTTPException(status_code=403, detail="Access denied")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Register a user and open their account"""
    with http_errors():
        user, account = system.user_manager.create_user(
            name=request.name,
            username=request.username,
            email=request.email,
            password=request.password
        )
    return {
        "user": user_to_response(user),
        "account": account_to_response(account),
        "message": "User created successfully"
    }


@router.post("/auth")
async def authenticate(
    request: AuthRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Authenticate user and return JWT token"""
    with http_errors():
        user, account = system.user_manager.authenticate(request.email, request.password)

    token, expires_at = create_access_token(user.id, account.id, system.config)
    log_action(
        logger, "info", "User authenticated successfully",
        account_id=account.id, action="login", resource="auth"
    )
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_at": expires_at.isoformat(),
        "user_id": user.id,
        "account_id": account.id
    }


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    _require_self(user_id, identity)
    with http_errors():
        user = system.user_manager.require_user(user_id)
        accounts = system.account_manager.get_user_accounts(user_id)
    return {
        "user": user_to_response(user),
        "accounts": [account_to_response(a) for a in accounts]
    }


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    identity: Identity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Update name, username or email"""
    _require_self(user_id, identity)
    with http_errors():
        user = system.user_manager.update_user(user_id, request.model_dump(exclude_unset=True))
    return {"user": user_to_response(user), "message": "User updated successfully"}


@router.get("/{user_id}/settings")
async def get_settings(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    _require_self(user_id, identity)
    with http_errors():
        settings = system.user_manager.get_settings(user_id)
    return {"settings": settings}


@router.put("/{user_id}/settings")
async def update_settings(
    user_id: str,
    request: UpdateSettingsRequest,
    identity: Identity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    _require_self(user_id, identity)
    with http_errors():
        user = system.user_manager.update_settings(user_id, request.model_dump(exclude_unset=True))
    return {"settings": user.settings, "message": "Settings updated successfully"}


@router.put("/{user_id}/password")
async def change_password(
    user_id: str,
    request: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    _require_self(user_id, identity)
    with http_errors():
        system.user_manager.change_password(user_id, request.old_password, request.new_password)
    return {"message": "Password changed successfully"}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Delete a user with their account, investments and transactions"""
    _require_self(user_id, identity)
    with http_errors():
        user = system.user_manager.delete_user(user_id)
    return {"id": user.id, "message": "User deleted successfully"}
