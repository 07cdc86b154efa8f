"""Explicit profile writes validated against role requirements."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .certification_profile import CertificationCacheStore, CertificationRecord, UserProfile
from .role_requirements import RequirementRegistry
from .telemetry import PROFILE_SAVED, PROFILE_WRITE_REJECTED, emit_event

logger = logging.getLogger(__name__)


class ProfileWriteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = ""
    role: str = ""
    search_string: Optional[str] = Field(default=None, alias="searchString")
    name: Optional[str] = None
    certifications: List[CertificationRecord] = Field(default_factory=list)


class ProfileValidationError(ValueError):
    """Raised when a profile write is rejected; nothing is persisted."""

    def __init__(self, message: str, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing: List[str] = list(missing)


def missing_requirements(registry: RequirementRegistry, role: str, certifications: Sequence[CertificationRecord]) -> List[str]:
    held = {certification.name for certification in certifications}
    return sorted(registry.requirements_for(role) - held)


def save_profile(
    store: CertificationCacheStore,
    registry: RequirementRegistry,
    request: ProfileWriteRequest,
) -> UserProfile:
    """Validate a write against the role's mandatory certifications and upsert it.

    An omitted ``searchString`` (or display name) keeps the value already
    stored for that email.
    """
    if not request.email.strip() or not request.role.strip():
        raise ProfileValidationError("email and role required")

    missing = missing_requirements(registry, request.role, request.certifications)
    if missing:
        emit_event(PROFILE_WRITE_REJECTED, email=request.email, role=request.role, missing=missing)
        raise ProfileValidationError(
            f"Missing mandatory certifications: {', '.join(missing)}",
            missing=missing,
        )

    with store.locked():
        existing = store.find_by_email(request.email)
        search_string = request.search_string or (existing.search_string if existing else "")
        name = request.name if request.name is not None else (existing.name if existing else None)
        profile = UserProfile(
            email=request.email,
            role=request.role,
            search_string=search_string,
            name=name,
            certifications=list(request.certifications),
            last_updated=datetime.now(timezone.utc),
        )
        stored = store.upsert(profile)

    logger.debug("Saved profile for %s (created=%s)", stored.email, existing is None)
    emit_event(
        PROFILE_SAVED,
        email=stored.email,
        role=stored.role,
        certifications=len(stored.certifications),
        created=existing is None,
    )
    return stored


__all__ = [
    "ProfileValidationError",
    "ProfileWriteRequest",
    "missing_requirements",
    "save_profile",
]
