"""Certification profile models and the JSON-backed cache store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_CACHE_FILE = DATA_DIR / "cert_cache.json"
DEFAULT_PROVIDER = "Salesforce"


class CertificationRecord(BaseModel):
    """A single earned certification. `name` joins against role requirements."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    provider: str = DEFAULT_PROVIDER
    name: str = ""
    earned_at: str = Field(default="", alias="earnedAt")
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
    status: str = "active"
    meta: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("earned_at", mode="before")
    @classmethod
    def _coerce_earned_at(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("expires_at", mode="before")
    @classmethod
    def _blank_expiry_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("meta", mode="before")
    @classmethod
    def _coerce_meta(cls, value: Any) -> Any:
        return {} if value is None else value


class UserProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    role: str = ""
    search_string: str = Field(default="", alias="searchString")
    name: Optional[str] = None
    certifications: List[CertificationRecord] = Field(default_factory=list)
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")

    def certification_names(self) -> set[str]:
        return {certification.name for certification in self.certifications}

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CachePersistenceError(RuntimeError):
    """Raised when the cache document cannot be read or written."""


def upsert_profile(profiles: List[UserProfile], profile: UserProfile) -> int:
    """Replace the entry with the same email in place, or append. Returns the index."""
    for index, existing in enumerate(profiles):
        if existing.email == profile.email:
            profiles[index] = profile
            return index
    profiles.append(profile)
    return len(profiles) - 1


def find_profile(profiles: Sequence[UserProfile], email: str) -> Optional[UserProfile]:
    for profile in profiles:
        if profile.email == email:
            return profile
    return None


class CertificationCacheStore:
    """Ordered collection of user profiles persisted as one JSON array.

    Saves go through a temporary file in the target directory followed by
    ``os.replace`` so a concurrent ``load`` sees either the old or the new
    document, never a partial one.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path) if path is not None else DEFAULT_CACHE_FILE
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def locked(self) -> Iterator["CertificationCacheStore"]:
        """Hold the writer lock across a load/modify/save sequence."""
        with self._lock:
            yield self

    def _load_unlocked(self) -> List[UserProfile]:
        if not self._path.exists():
            return []
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as exc:
            raise CachePersistenceError(f"Unable to read certification cache at {self._path}: {exc}") from exc
        if not isinstance(raw, list):
            raise CachePersistenceError(
                f"Certification cache at {self._path} must contain a JSON array, found {type(raw).__name__}."
            )

        profiles: List[UserProfile] = []
        seen: set[str] = set()
        for position, payload in enumerate(raw):
            try:
                profile = UserProfile.model_validate(payload)
            except ValidationError:
                logger.exception("Skipping unreadable cache entry at position %d", position)
                continue
            if profile.email in seen:
                logger.warning("Skipping duplicate cache entry for %s", profile.email)
                continue
            seen.add(profile.email)
            profiles.append(profile)
        return profiles

    def _write_unlocked(self, profiles: Sequence[UserProfile]) -> None:
        payload = [profile.to_document() for profile in profiles]
        tmp_name: Optional[str] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(payload, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CachePersistenceError(f"Unable to write certification cache at {self._path}: {exc}") from exc

    def load(self) -> List[UserProfile]:
        with self._lock:
            return self._load_unlocked()

    def save(self, profiles: Sequence[UserProfile]) -> None:
        emails = [profile.email for profile in profiles]
        if len(emails) != len(set(emails)):
            raise ValueError("Certification cache cannot hold more than one profile per email.")
        with self._lock:
            self._write_unlocked(profiles)

    def upsert(self, profile: UserProfile) -> UserProfile:
        stored = profile.model_copy(deep=True)
        with self._lock:
            profiles = self._load_unlocked()
            upsert_profile(profiles, stored)
            self._write_unlocked(profiles)
        return stored.model_copy(deep=True)

    def find_by_email(self, email: str) -> Optional[UserProfile]:
        with self._lock:
            return find_profile(self._load_unlocked(), email)


__all__ = [
    "CachePersistenceError",
    "CertificationCacheStore",
    "CertificationRecord",
    "DEFAULT_PROVIDER",
    "UserProfile",
    "find_profile",
    "upsert_profile",
]
