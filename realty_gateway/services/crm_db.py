"""Firebase Realtime Database access for CRM records.

Records are stored under the following path structure:

/attachments/{attachment_id}
/properties/{property_id}
/leadCaptures/{api_key}
/leads/{lead_id}
/logs/{log_id}

All data is validated with Pydantic models before being written or
returned. Lookups by a child value (primary image, e-mail, phone) need a
matching ``.indexOn`` rule in the database rules.
"""
from __future__ import annotations

import json
import logging
from typing import Any

import firebase_admin
from firebase_admin import credentials, db

from realty_gateway.config import Settings
from realty_gateway.models import Attachment, Lead, LeadCaptureForm, RealEstateProperty

logger = logging.getLogger(__name__)


def initialise_firebase(settings: Settings) -> None:
    """Initialise the Firebase Admin SDK exactly once."""

    if firebase_admin._apps:  # type: ignore[attr-defined]
        return
    try:
        if settings.firebase_credentials_json:
            # Accept path or JSON string
            cred_obj: credentials.Base = (
                credentials.Certificate(settings.firebase_credentials_json)
                if settings.firebase_credentials_json.endswith(".json")
                else credentials.Certificate(json.loads(settings.firebase_credentials_json))
            )
        else:
            # Attempt default credentials (useful on Cloud Run with workload identity)
            cred_obj = credentials.ApplicationDefault()

        firebase_admin.initialize_app(
            cred_obj,
            {
                "databaseURL": f"https://{settings.project_id}.firebaseio.com"
                if settings.project_id
                else None,
            },
        )
        logger.info("Firebase Admin SDK initialised.")
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to initialise Firebase Admin SDK: %s", exc)
        raise


# Characters Firebase refuses in a path segment
_ILLEGAL_KEY_CHARS = frozenset(".$#[]/?")


def is_valid_key(key: str) -> bool:
    """Return True if ``key`` can be used as a single database path segment."""

    return bool(key) and not _ILLEGAL_KEY_CHARS.intersection(key)


def _first_value(raw: Any) -> dict[str, Any] | None:
    # Queries return a dict keyed by record id -> data
    if not raw:
        return None
    key, value = next(iter(raw.items()))
    value = dict(value)
    value.setdefault("id", key)
    return value


class CrmDB:  # pylint: disable=too-few-public-methods
    """Wrapper around Firebase Realtime Database operations."""

    def __init__(self) -> None:
        self._root = db.reference("/")

    # -------------------------------------------------------------------
    # Attachments & properties
    # -------------------------------------------------------------------

    def get_attachment(self, attachment_id: str) -> Attachment | None:
        if not is_valid_key(attachment_id):
            return None
        data = self._root.child("attachments").child(attachment_id).get()
        if data is None:
            return None
        data.setdefault("id", attachment_id)
        return Attachment.model_validate(data)

    def get_property(self, property_id: str) -> RealEstateProperty | None:
        if not is_valid_key(property_id):
            return None
        data = self._root.child("properties").child(property_id).get()
        if data is None:
            return None
        data.setdefault("id", property_id)
        return RealEstateProperty.model_validate(data)

    def find_property_by_primary_image(self, attachment_id: str) -> RealEstateProperty | None:
        query = (
            self._root.child("properties")
            .order_by_child("primary_image_id")
            .equal_to(attachment_id)
            .limit_to_first(1)
        )
        data = _first_value(query.get())
        return RealEstateProperty.model_validate(data) if data is not None else None

    # -------------------------------------------------------------------
    # Lead capture
    # -------------------------------------------------------------------

    def get_lead_capture(self, api_key: str) -> LeadCaptureForm | None:
        if not is_valid_key(api_key):
            return None
        data = self._root.child("leadCaptures").child(api_key).get()
        if data is None:
            return None
        return LeadCaptureForm.model_validate(data)

    def set_lead_capture(self, form: LeadCaptureForm) -> None:
        self._root.child("leadCaptures").child(form.api_key).set(form.model_dump(mode="json"))
        logger.debug("Lead capture form set for name=%s", form.name)

    def find_lead(self, *, email_address: str | None = None, phone_number: str | None = None) -> Lead | None:
        for child, value in (("email_address", email_address), ("phone_number", phone_number)):
            if not value:
                continue
            query = self._root.child("leads").order_by_child(child).equal_to(value).limit_to_first(1)
            data = _first_value(query.get())
            if data is not None:
                return Lead.model_validate(data)
        return None

    def add_lead(self, lead: Lead) -> str:
        # push() returns a reference with a generated key
        push_ref = self._root.child("leads").push()
        data = lead.model_dump(mode="json", exclude_none=True)
        data["id"] = push_ref.key  # Store the generated ID inside the document
        push_ref.set(data)
        logger.debug("Added lead id=%s", push_ref.key)
        return push_ref.key  # type: ignore[return-value]

    # -------------------------------------------------------------------
    # Logs
    # -------------------------------------------------------------------

    def add_log(self, entry: dict[str, Any]) -> None:
        self._root.child("logs").push(entry)
