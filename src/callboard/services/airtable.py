"""Contact feed client (Airtable table of customers)."""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from callboard.exceptions import CredentialMissing, UpstreamFormatError
from callboard.models import ContactRecord, Page
from callboard.services.http import JsonApiClient

logger = logging.getLogger(__name__)

API_URL = "https://api.airtable.com/v0"
MAX_PAGES = 1000

NAME_FIELD = "Customer Name"
PHONE_FIELD = "Phone Number"
EMAIL_FIELD = "Customer Email"


def parse_contact(raw: Any) -> ContactRecord:
    if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
        raise UpstreamFormatError("Airtable record is missing an id")
    fields = raw.get("fields") or {}
    if not isinstance(fields, dict):
        raise UpstreamFormatError(f"Airtable record {raw['id']} has malformed fields")
    return ContactRecord(
        external_id=raw["id"],
        name=fields.get(NAME_FIELD) or None,
        phone=str(fields.get(PHONE_FIELD) or ""),
        email=fields.get(EMAIL_FIELD) or None,
    )


class AirtableClient(JsonApiClient):
    service = "Airtable"

    def __init__(
        self,
        token: str | None = None,
        base_id: str | None = None,
        table_id: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        token = token or os.environ.get("AIRTABLE_API_TOKEN", "")
        if not token:
            raise CredentialMissing("Airtable API token not configured")
        self.base_id = base_id or os.environ.get("AIRTABLE_BASE_ID", "")
        self.table_id = table_id or os.environ.get("AIRTABLE_TABLE_ID", "")
        if not self.base_id or not self.table_id:
            raise CredentialMissing("Airtable base and table must be configured")
        super().__init__(API_URL, token, transport=transport)

    def fetch_page(self, offset: str | None = None) -> Page[ContactRecord]:
        data = self.get_json(f"/{self.base_id}/{self.table_id}", {"offset": offset})
        if not isinstance(data, dict) or not isinstance(data.get("records"), list):
            raise UpstreamFormatError("Airtable response has no record list")
        next_offset = data.get("offset")
        return Page(
            items=[parse_contact(r) for r in data["records"]],
            next_cursor=str(next_offset) if next_offset else None,
        )

    def fetch_all(self) -> list[ContactRecord]:
        records: list[ContactRecord] = []
        offset: str | None = None
        for _ in range(MAX_PAGES):
            page = self.fetch_page(offset)
            records.extend(page.items)
            offset = page.next_cursor
            if offset is None:
                logger.info("Fetched %d contact records from Airtable", len(records))
                return records
        raise UpstreamFormatError(f"Airtable listing exceeded {MAX_PAGES} pages")
