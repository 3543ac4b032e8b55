"""
Role Management Endpoint

POST /api/manage-user-role
    {"action": "list"}
    {"action": "update", "targetUserId": "...", "role": "manager" | "user"}

Manager only. A manager cannot demote themselves.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.auth import AuthUser, ProfileResponse, require_manager
from api.database import ProfileStore
from api.dependencies import read_json_body
from models.society import UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Roles"])

VALID_ROLES = {role.value for role in UserRole}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/manage-user-role")
async def manage_user_role(request: Request, manager: AuthUser = Depends(require_manager)):
    """List users with their roles, or change one user's role."""
    body, ok = await read_json_body(request)
    if not ok:
        return _error(400, "Invalid request body")

    action = body.get("action")

    if action == "list":
        users = [
            ProfileResponse.model_validate(profile).model_dump(by_alias=True)
            for profile in ProfileStore.list_profiles()
        ]
        return {"users": users}

    if action == "update":
        target_user_id = body.get("targetUserId")
        role = body.get("role")

        if not isinstance(target_user_id, str) or not isinstance(role, str) \
                or not target_user_id or not role:
            return _error(400, "targetUserId and role are required")

        if role not in VALID_ROLES:
            return _error(400, "Invalid role")

        if ProfileStore.get_profile(target_user_id) is None:
            return _error(404, "User not found")

        if target_user_id == manager.user_id and role != UserRole.MANAGER.value:
            return _error(400, "You cannot demote yourself")

        ProfileStore.set_role(target_user_id, role)
        logger.info(f"Role for {target_user_id[:8]} set to {role} by {manager.user_id[:8]}")

        return {"success": True, "message": f"User role updated to {role}"}

    return _error(400, "Invalid action")
