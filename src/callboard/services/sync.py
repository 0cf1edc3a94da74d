"""One-way sync of the external contact feed into a user's customers.

Each record is an independent write; a failure on one is recorded as a
skip and the batch carries on. Runs for the same user must not overlap.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from callboard.exceptions import CallboardError
from callboard.models import ContactRecord, SkippedRecord, SyncResult
from callboard.services.airtable import AirtableClient
from callboard.services.phone import normalize
from callboard.store import RecordStore, utcnow

logger = logging.getLogger(__name__)


def _skip(result: SyncResult, record: ContactRecord, reason: str) -> None:
    result.skipped += 1
    result.skipped_records.append(
        SkippedRecord(
            external_id=record.external_id,
            name=record.name,
            phone=record.phone,
            reason=reason,
        )
    )
    logger.warning("Skipped contact %s: %s", record.external_id, reason)


def reconcile(records: Iterable[ContactRecord], store: RecordStore) -> SyncResult:
    """Merge ``records`` into the customers visible through ``store``."""
    result = SyncResult()

    for record in records:
        result.total += 1
        phone = normalize(record.phone)
        if phone is None:
            _skip(result, record, "Invalid phone format" if record.phone else "Missing phone number")
            continue

        try:
            matches = store.find_all(match="any", external_id=record.external_id, phone_number=phone)
            if matches:
                # several rows can match when id and phone disagree; the last one wins
                existing = matches[-1]
                # phone_number is the join key and status is user-owned: neither is touched
                store.update(
                    existing["id"],
                    {
                        "name": record.name,
                        "email": record.email,
                        "external_id": record.external_id,
                        "updated_at": utcnow(),
                    },
                )
                result.updated += 1
            else:
                store.insert(
                    {
                        "phone_number": phone,
                        "name": record.name,
                        "email": record.email,
                        "external_id": record.external_id,
                        "status": "active",
                    }
                )
                result.created += 1
        except CallboardError as exc:
            logger.exception("Failed to sync contact %s", record.external_id)
            _skip(result, record, f"Database error: {exc}")

    logger.info(
        "Contact sync finished: %d total, %d created, %d updated, %d skipped",
        result.total, result.created, result.updated, result.skipped,
    )
    return result


def sync_contacts(
    user_id: str,
    client: AirtableClient | None = None,
    db_path: Path | None = None,
) -> SyncResult:
    """Fetch every page of the contact feed and reconcile it for ``user_id``."""
    client = client or AirtableClient()
    records = client.fetch_all()
    return reconcile(records, RecordStore("customers", user_id, db_path))
