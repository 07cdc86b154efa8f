"""Full-pass synchronisation of cached certifications with the credentialing service."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from typing import List, Optional

from .certification_profile import DEFAULT_PROVIDER, CertificationCacheStore, UserProfile
from .credential_client import CredentialFetcher, ExternalCredentialRecord, normalize_certifications
from .telemetry import CACHE_REFRESH_COMPLETED, CREDENTIAL_FETCH_FAILED, emit_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshResult:
    count: int
    failed: int
    latency_ms: int


def _safe_fetch(fetcher: CredentialFetcher, profile: UserProfile) -> Optional[ExternalCredentialRecord]:
    try:
        return fetcher(profile.search_string, profile.role)
    except Exception:  # noqa: BLE001
        logger.exception("Credential fetch raised for %s; treating as no data", profile.email)
        return None


def _refreshed_profile(
    profile: UserProfile,
    record: Optional[ExternalCredentialRecord],
    provider: str,
) -> UserProfile:
    # A failed lookup clears previously cached certifications.
    certifications = normalize_certifications(record, provider) if record is not None else []
    return profile.model_copy(
        update={
            "certifications": certifications,
            "last_updated": datetime.now(timezone.utc),
        },
        deep=True,
    )


def refresh_cache(
    store: CertificationCacheStore,
    fetcher: CredentialFetcher,
    *,
    provider: str = DEFAULT_PROVIDER,
    max_workers: int = 1,
) -> RefreshResult:
    """Re-fetch every cached user's certifications and persist the result once.

    Users are processed in cache order. With ``max_workers > 1`` lookups run
    on a bounded thread pool; results are still applied in cache order.
    """
    started = perf_counter()
    with store.locked():
        profiles = store.load()
        if max_workers > 1 and len(profiles) > 1:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cert-refresh") as pool:
                records = list(pool.map(lambda profile: _safe_fetch(fetcher, profile), profiles))
        else:
            records = [_safe_fetch(fetcher, profile) for profile in profiles]

        refreshed: List[UserProfile] = []
        failed = 0
        for profile, record in zip(profiles, records):
            if record is None:
                failed += 1
                logger.warning(
                    "Clearing cached certifications for %s after failed lookup",
                    profile.email,
                )
                emit_event(CREDENTIAL_FETCH_FAILED, email=profile.email, role=profile.role)
            refreshed.append(_refreshed_profile(profile, record, provider))

        store.save(refreshed)

    latency_ms = int((perf_counter() - started) * 1000)
    emit_event(CACHE_REFRESH_COMPLETED, count=len(refreshed), failed=failed, latency_ms=latency_ms)
    logger.info("Refreshed %d cached users (%d without data) in %d ms", len(refreshed), failed, latency_ms)
    return RefreshResult(count=len(refreshed), failed=failed, latency_ms=latency_ms)


__all__ = ["RefreshResult", "refresh_cache"]
