"""Run one certification cache refresh pass outside the API (cron friendly)."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from certtrack.cache_refresh import refresh_cache
from certtrack.certification_profile import CachePersistenceError, CertificationCacheStore
from certtrack.config import get_settings
from certtrack.credential_client import CredentialServiceClient

LOGGER = logging.getLogger("certtrack.refresh_cache")


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--cache", type=Path, default=None, help="Override CERTTRACK_CACHE_PATH.")
    parser.add_argument("--workers", type=int, default=None, help="Override CERTTRACK_REFRESH_WORKERS.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = _parse_args(argv)
    settings = get_settings()
    store = CertificationCacheStore(args.cache or settings.cache_path)
    workers = args.workers or settings.refresh_workers
    try:
        with CredentialServiceClient.from_settings(settings) as client:
            result = refresh_cache(
                store,
                client,
                provider=settings.credential_provider,
                max_workers=workers,
            )
    except CachePersistenceError as exc:
        LOGGER.exception("Certification cache refresh failed: %s", exc)
        return 1
    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": str(store.path),
        "count": result.count,
        "failed": result.failed,
        "latency_ms": result.latency_ms,
    }
    print(json.dumps(payload))
    return 0


if __name__ == "__main__":
    sys.exit(main())
