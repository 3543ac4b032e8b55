"""
Society Settings API

GET /api/society-settings - Society name, address and contact details (any member)
PUT /api/society-settings - Update them (managers only)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from starlette.concurrency import run_in_threadpool

from api.auth import AuthUser, require_auth
from api.database import SettingsStore
from models.society import UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/society-settings", tags=["Settings"])


class SocietySettings(BaseModel):
    """Society details, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    contact_phone: str = ""
    contact_email: str = ""
    registration_number: str = ""
    updated_at: Optional[str] = None


class SocietySettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=200)
    address_line1: Optional[str] = Field(default=None, max_length=200)
    address_line2: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    pincode: Optional[str] = Field(default=None, max_length=20)
    contact_phone: Optional[str] = Field(default=None, max_length=30)
    contact_email: Optional[str] = Field(default=None, max_length=255)
    registration_number: Optional[str] = Field(default=None, max_length=100)

    @field_validator("*")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value):
        if value is not None and not value:
            raise ValueError("Society name cannot be empty")
        return value


@router.get("")
async def get_settings(user: AuthUser = Depends(require_auth)):
    settings = await run_in_threadpool(SettingsStore.get)
    return SocietySettings.model_validate(settings).model_dump(by_alias=True)


@router.put("")
async def update_settings(payload: SocietySettingsUpdate, user: AuthUser = Depends(require_auth)):
    """Update society details. Only managers may edit."""
    if user.role != UserRole.MANAGER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only managers can update society settings",
        )

    changes = payload.model_dump(exclude_none=True)
    settings = await run_in_threadpool(SettingsStore.update, changes)
    logger.info(f"Society settings updated by {user.user_id[:8]}: {', '.join(sorted(changes)) or 'no changes'}")
    return SocietySettings.model_validate(settings).model_dump(by_alias=True)
