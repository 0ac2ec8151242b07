from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LeadCaptureForm(BaseModel):
    """Configuration of a lead-capture entry point, addressed by its API key."""

    api_key: str = Field(..., min_length=1)
    name: str
    is_active: bool = True
    field_list: list[str] = Field(
        default_factory=lambda: ["firstName", "lastName", "emailAddress", "phoneNumber", "description"]
    )
    lead_source: str = "Web Site"
    campaign_id: str | None = None
    target_list_id: str | None = None
    team_id: str | None = None
    assigned_user_id: str | None = None
    duplicate_check: bool = True


class Lead(BaseModel):
    """A CRM lead. Fields accept the CRM's camelCase names on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email_address: str | None = None
    phone_number: str | None = None
    account_name: str | None = None
    title: str | None = None
    website: str | None = None
    description: str | None = None
    address_street: str | None = None
    address_city: str | None = None
    address_country: str | None = None
    address_postal_code: str | None = None
    status: str = "New"
    source: str | None = None
    campaign_id: str | None = None
    target_list_id: str | None = None
    team_id: str | None = None
    assigned_user_id: str | None = None
    created_at: datetime | None = None


class CaptureResult(BaseModel):
    lead_id: str
    outcome: Literal["created", "duplicate"]
