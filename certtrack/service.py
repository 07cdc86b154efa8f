"""Operations surfaced to the HTTP layer and operator scripts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .cache_refresh import refresh_cache
from .certification_profile import DEFAULT_PROVIDER, CertificationCacheStore, UserProfile
from .certification_reports import CertificationOverview, CertificationView, as_view, build_overview, filter_certifications
from .compliance import (
    ComplianceRow,
    evaluate_compliance,
    flatten_certifications,
    sort_compliance_rows,
    unique_certification_names,
)
from .config import Settings, get_settings
from .credential_client import CredentialFetcher, CredentialServiceClient
from .csv_import import ImportSummary, import_csv
from .profile_writes import ProfileWriteRequest, save_profile
from .role_requirements import RequirementRegistry, get_requirement_registry

logger = logging.getLogger(__name__)


class RefreshSummary(BaseModel):
    success: bool = True
    count: int
    failed: int = 0


class ComplianceReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    year: int
    role_filter: str = Field(default="", alias="roleFilter")
    certification_names: List[str] = Field(default_factory=list, alias="certificationNames")
    rows: List[ComplianceRow] = Field(default_factory=list)


class CertificationService:
    def __init__(
        self,
        store: CertificationCacheStore,
        registry: RequirementRegistry,
        fetcher: CredentialFetcher,
        *,
        provider: str = DEFAULT_PROVIDER,
        refresh_workers: int = 1,
    ) -> None:
        self.store = store
        self.registry = registry
        self.fetcher = fetcher
        self.provider = provider
        self.refresh_workers = refresh_workers

    @classmethod
    def from_settings(cls, settings: Settings) -> "CertificationService":
        return cls(
            CertificationCacheStore(settings.cache_path),
            get_requirement_registry(),
            CredentialServiceClient.from_settings(settings),
            provider=settings.credential_provider,
            refresh_workers=settings.refresh_workers,
        )

    def get_cache(self) -> List[UserProfile]:
        return self.store.load()

    def get_user(self, email: str) -> Optional[UserProfile]:
        return self.store.find_by_email(email)

    def put_user(self, request: ProfileWriteRequest) -> UserProfile:
        return save_profile(self.store, self.registry, request)

    def refresh_cache(self) -> RefreshSummary:
        result = refresh_cache(
            self.store,
            self.fetcher,
            provider=self.provider,
            max_workers=self.refresh_workers,
        )
        return RefreshSummary(count=result.count, failed=result.failed)

    def import_csv(self, content: str) -> ImportSummary:
        return import_csv(self.store, content)

    def list_roles(self) -> Dict[str, List[str]]:
        return self.registry.as_dict()

    def evaluate_compliance(
        self,
        role_filter: str = "",
        year: Optional[int] = None,
        show_dates: bool = False,
        *,
        sort_key: Optional[str] = None,
        direction: str = "ascending",
    ) -> ComplianceReport:
        target_year = year if year is not None else datetime.now(timezone.utc).year
        profiles = self.store.load()
        rows = evaluate_compliance(
            profiles,
            self.registry,
            year=target_year,
            role_filter=role_filter,
            show_dates=show_dates,
        )
        if sort_key:
            rows = sort_compliance_rows(rows, sort_key, direction)
        return ComplianceReport(
            year=target_year,
            role_filter=role_filter,
            certification_names=unique_certification_names(flatten_certifications(profiles)),
            rows=rows,
        )

    def list_certifications(
        self,
        *,
        search: str = "",
        cert_name: str = "",
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> List[CertificationView]:
        flat = flatten_certifications(self.store.load())
        matches = filter_certifications(flat, search=search, cert_name=cert_name, month=month, year=year)
        return [as_view(entry) for entry in matches]

    def overview(self, year: Optional[int] = None) -> CertificationOverview:
        target_year = year if year is not None else datetime.now(timezone.utc).year
        return build_overview(self.store.load(), target_year)


@lru_cache
def get_certification_service() -> CertificationService:
    settings = get_settings()
    service = CertificationService.from_settings(settings)
    logger.info("Certification cache at %s", service.store.path)
    return service


__all__ = [
    "CertificationService",
    "ComplianceReport",
    "RefreshSummary",
    "get_certification_service",
]
