"""
Pytest configuration and shared fixtures for Realty Gateway tests.
"""

import io
import os
import uuid
from typing import Any, Dict, List, Optional

# Keep the database log handler away from Firebase while the app module loads
os.environ.setdefault("LOG_HANDLERS", '["default"]')
os.environ.setdefault("LOG_DATABASE_HANDLER", "false")

import pytest
from PIL import Image

from realty_gateway.config import Settings
from realty_gateway.models import Attachment, Lead, LeadCaptureForm, RealEstateProperty
from realty_gateway.services.storage import LocalBlobStore
from realty_gateway.services.thumbnail_cache import FileThumbnailCache
from realty_gateway.services.thumbnails import ThumbnailService


class FakeCrmDB:
    """In-memory stand-in for the Firebase-backed CRM store."""

    def __init__(self):
        self.attachments: Dict[str, Attachment] = {}
        self.properties: Dict[str, RealEstateProperty] = {}
        self.lead_captures: Dict[str, LeadCaptureForm] = {}
        self.leads: Dict[str, Lead] = {}
        self.logs: List[Dict[str, Any]] = []

    def get_attachment(self, attachment_id: str) -> Optional[Attachment]:
        return self.attachments.get(attachment_id)

    def get_property(self, property_id: str) -> Optional[RealEstateProperty]:
        return self.properties.get(property_id)

    def find_property_by_primary_image(self, attachment_id: str) -> Optional[RealEstateProperty]:
        for prop in self.properties.values():
            if prop.primary_image_id == attachment_id:
                return prop
        return None

    def get_lead_capture(self, api_key: str) -> Optional[LeadCaptureForm]:
        return self.lead_captures.get(api_key)

    def set_lead_capture(self, form: LeadCaptureForm) -> None:
        self.lead_captures[form.api_key] = form

    def find_lead(self, *, email_address=None, phone_number=None) -> Optional[Lead]:
        for lead in self.leads.values():
            if email_address and lead.email_address == email_address:
                return lead
            if phone_number and lead.phone_number == phone_number:
                return lead
        return None

    def add_lead(self, lead: Lead) -> str:
        lead_id = uuid.uuid4().hex
        self.leads[lead_id] = lead.model_copy(update={"id": lead_id})
        return lead_id

    def add_log(self, entry: Dict[str, Any]) -> None:
        self.logs.append(entry)


def make_image_bytes(fmt: str = "PNG", size=(400, 200), mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    """Render a solid image in the given Pillow format."""
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    return make_image_bytes


@pytest.fixture
def crm_db():
    return FakeCrmDB()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "upload"
    path.mkdir()
    return path


@pytest.fixture
def originals(upload_dir):
    return LocalBlobStore(upload_dir)


@pytest.fixture
def thumb_cache(tmp_path):
    return FileThumbnailCache(tmp_path / "cache")


@pytest.fixture
def thumbnail_service(originals, thumb_cache):
    return ThumbnailService(originals, thumb_cache)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(log_handlers=["default"], log_database_handler=False, upload_dir=str(tmp_path / "upload"))


@pytest.fixture
def client(crm_db, originals, thumb_cache, test_settings):
    """TestClient with every external collaborator replaced."""
    from fastapi.testclient import TestClient

    from realty_gateway.config import get_settings
    from realty_gateway.dependencies import get_blob_store, get_crm_db, get_thumbnail_cache
    from realty_gateway.main import app

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_crm_db] = lambda: crm_db
    app.dependency_overrides[get_blob_store] = lambda: originals
    app.dependency_overrides[get_thumbnail_cache] = lambda: thumb_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
