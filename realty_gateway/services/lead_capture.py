"""Create CRM leads from web-form submissions.

Each entry point is a ``LeadCaptureForm`` addressed by its API key. The
form decides which payload fields are accepted and which source,
campaign, target list, team and assignee the new lead gets.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from realty_gateway.models import CaptureResult, Lead, LeadCaptureForm

logger = logging.getLogger(__name__)


class LeadCaptureError(Exception):
    """Raised when a submission cannot be turned into a lead."""


class LeadCaptureNotFoundError(LeadCaptureError):
    """Raised for unknown or inactive API keys."""


class CaptureService:
    def __init__(self, crm_db) -> None:
        self._db = crm_db

    def get_form(self, api_key: str) -> LeadCaptureForm:
        form = self._db.get_lead_capture(api_key)
        if form is None or not form.is_active:
            raise LeadCaptureNotFoundError("Api key is not valid.")
        return form

    def capture(self, api_key: str, data: Mapping[str, Any]) -> CaptureResult:
        form = self.get_form(api_key)

        accepted = {
            name: value if isinstance(value, str) else str(value)
            for name, value in data.items()
            if name in form.field_list and value not in (None, "")
        }
        if not accepted:
            logger.info("Lead capture '%s': no appropriate data in %s", form.name, sorted(data))
            raise LeadCaptureError("No appropriate data.")

        lead = Lead.model_validate(accepted)

        if form.duplicate_check:
            existing = self._db.find_lead(email_address=lead.email_address, phone_number=lead.phone_number)
            if existing is not None and existing.id:
                logger.info("Lead capture '%s': reusing existing lead %s", form.name, existing.id)
                return CaptureResult(lead_id=existing.id, outcome="duplicate")

        lead = lead.model_copy(
            update={
                "status": "New",
                "source": form.lead_source,
                "campaign_id": form.campaign_id,
                "target_list_id": form.target_list_id,
                "team_id": form.team_id,
                "assigned_user_id": form.assigned_user_id,
                "created_at": datetime.now(timezone.utc),
            }
        )
        lead_id = self._db.add_lead(lead)
        logger.info("Lead capture '%s': created lead %s", form.name, lead_id)
        return CaptureResult(lead_id=lead_id, outcome="created")
