"""Bulk import of ``email,role,searchString`` rows into the certification cache."""

from __future__ import annotations

import csv
import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from .certification_profile import CertificationCacheStore, UserProfile, find_profile, upsert_profile
from .telemetry import CSV_IMPORT_COMPLETED, emit_event

logger = logging.getLogger(__name__)

INVALID_ROW = "Invalid row"


class ImportRowError(BaseModel):
    row: int
    error: str


class ImportSummary(BaseModel):
    processed: int = 0
    success: int = 0
    errors: List[ImportRowError] = Field(default_factory=list)


def _split_line(line: str) -> List[str]:
    # Lines are parsed independently; a quoted field never spans rows.
    try:
        return next(csv.reader([line]), [])
    except csv.Error:
        return []


def _parse_row(fields: Sequence[str]) -> Optional[tuple[str, str, str]]:
    values = [value.strip() for value in list(fields)[:3]]
    if len(values) < 3 or not all(values):
        return None
    email, role, search_string = values
    return email, role, search_string


def _merged(existing: Optional[UserProfile], email: str, role: str, search_string: str) -> UserProfile:
    imported = {
        "email": email,
        "role": role,
        "search_string": search_string,
        "certifications": [],
        "last_updated": None,
    }
    if existing is None:
        return UserProfile(**imported)
    return existing.model_copy(update=imported, deep=True)


def import_csv(store: CertificationCacheStore, content: str) -> ImportSummary:
    """Upsert every valid data row; the first line is a header and is skipped.

    Row numbers in the error list are 1-based file lines, so the first data
    row is row 2. The cache is written once, after the whole batch.
    """
    lines = content.strip().splitlines()[1:]
    summary = ImportSummary()

    with store.locked():
        profiles = store.load()
        for index, line in enumerate(lines):
            summary.processed += 1
            parsed = _parse_row(_split_line(line))
            if parsed is None:
                summary.errors.append(ImportRowError(row=index + 2, error=INVALID_ROW))
                continue
            email, role, search_string = parsed
            upsert_profile(profiles, _merged(find_profile(profiles, email), email, role, search_string))
            summary.success += 1
        store.save(profiles)

    logger.info(
        "Imported %d of %d rows (%d invalid)",
        summary.success,
        summary.processed,
        len(summary.errors),
    )
    emit_event(
        CSV_IMPORT_COMPLETED,
        processed=summary.processed,
        success=summary.success,
        errors=len(summary.errors),
    )
    return summary


__all__ = ["INVALID_ROW", "ImportRowError", "ImportSummary", "import_csv"]
