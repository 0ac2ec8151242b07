from __future__ import annotations

from fastapi import FastAPI

from realty_gateway.config import get_settings
from realty_gateway.dependencies import get_crm_db
from realty_gateway.handlers import image_handler, lead_capture_handler
from realty_gateway.logging_config import configure_logging

configure_logging(get_settings(), crm_db_factory=get_crm_db)

app = FastAPI(title="Realty Gateway API")

app.include_router(image_handler.router)
app.include_router(lead_capture_handler.router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
