#!/usr/bin/env python
"""Script to register a lead-capture form in Firebase Realtime DB."""
from __future__ import annotations

import argparse
import secrets

from realty_gateway.dependencies import get_crm_db
from realty_gateway.models import LeadCaptureForm


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a lead-capture entry point")
    parser.add_argument("--name", required=True)
    parser.add_argument("--api_key", default=None, help="Defaults to a random 32-char hex key")
    parser.add_argument(
        "--fields",
        default="firstName,lastName,emailAddress,phoneNumber,description",
        help="Comma-separated list of accepted payload fields",
    )
    parser.add_argument("--lead_source", default="Web Site")
    parser.add_argument("--campaign_id", default=None)
    parser.add_argument("--target_list_id", default=None)
    parser.add_argument("--team_id", default=None)
    parser.add_argument("--assigned_user_id", default=None)
    parser.add_argument("--no_duplicate_check", action="store_true")
    parser.add_argument("--inactive", action="store_true")
    args = parser.parse_args()

    form = LeadCaptureForm(
        api_key=args.api_key or secrets.token_hex(16),
        name=args.name,
        is_active=not args.inactive,
        field_list=[f.strip() for f in args.fields.split(",") if f.strip()],
        lead_source=args.lead_source,
        campaign_id=args.campaign_id,
        target_list_id=args.target_list_id,
        team_id=args.team_id,
        assigned_user_id=args.assigned_user_id,
        duplicate_check=not args.no_duplicate_check,
    )
    get_crm_db().set_lead_capture(form)
    print("Created lead capture form:")
    print(form.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
