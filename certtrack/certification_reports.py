"""Aggregate views over the flattened certification set."""

from __future__ import annotations

import calendar
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from .certification_profile import UserProfile
from .compliance import FlatCertification, flatten_certifications

TOP_CERTIFICATIONS_LIMIT = 5
TOP_HOLDERS_LIMIT = 10


class CertificationView(BaseModel):
    email: str
    role: str
    cert_name: str
    cert_date: str


class NamedCount(BaseModel):
    name: str
    count: int


class YearCount(BaseModel):
    year: int
    count: int


class MonthCount(BaseModel):
    month: str
    count: int


class HolderCount(BaseModel):
    email: str
    count: int


class CertificationOverview(BaseModel):
    year: int
    total: int
    by_name: List[NamedCount] = Field(default_factory=list)
    by_year: List[YearCount] = Field(default_factory=list)
    by_month: List[MonthCount] = Field(default_factory=list)
    top_certifications: List[NamedCount] = Field(default_factory=list)
    top_holders: List[HolderCount] = Field(default_factory=list)
    top_holders_this_year: List[HolderCount] = Field(default_factory=list)


def as_view(entry: FlatCertification) -> CertificationView:
    return CertificationView(
        email=entry.email,
        role=entry.role,
        cert_name=entry.cert_name,
        cert_date=entry.cert_date,
    )


def filter_certifications(
    flat: Iterable[FlatCertification],
    *,
    search: str = "",
    cert_name: str = "",
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> List[FlatCertification]:
    """Dashboard filter. Date filters only constrain entries that carry a date."""
    needle = search.strip().lower()
    matches: List[FlatCertification] = []
    for entry in flat:
        if needle and needle not in entry.cert_name.lower() and needle not in entry.email.lower():
            continue
        if cert_name and entry.cert_name != cert_name:
            continue
        if entry.earned_on is not None:
            if month is not None and entry.earned_on.month != month:
                continue
            if year is not None and entry.earned_on.year != year:
                continue
        matches.append(entry)
    return matches


def certification_counts(flat: Iterable[FlatCertification]) -> List[NamedCount]:
    counts = Counter(entry.cert_name for entry in flat)
    return [NamedCount(name=name, count=count) for name, count in counts.items()]


def certifications_by_year(flat: Iterable[FlatCertification]) -> List[YearCount]:
    counts = Counter(entry.earned_on.year for entry in flat if entry.earned_on is not None)
    return [YearCount(year=year, count=counts[year]) for year in sorted(counts)]


def certifications_by_month(flat: Iterable[FlatCertification], year: int) -> List[MonthCount]:
    counts: Dict[int, int] = Counter(
        entry.earned_on.month
        for entry in flat
        if entry.earned_on is not None and entry.earned_on.year == year
    )
    return [MonthCount(month=calendar.month_abbr[month], count=counts.get(month, 0)) for month in range(1, 13)]


def top_certifications(flat: Iterable[FlatCertification], limit: int = TOP_CERTIFICATIONS_LIMIT) -> List[NamedCount]:
    counts = Counter(entry.cert_name for entry in flat)
    return [NamedCount(name=name, count=count) for name, count in counts.most_common(limit)]


def top_holders(
    flat: Iterable[FlatCertification],
    limit: int = TOP_HOLDERS_LIMIT,
    year: Optional[int] = None,
) -> List[HolderCount]:
    counts = Counter(
        entry.email
        for entry in flat
        if year is None or (entry.earned_on is not None and entry.earned_on.year == year)
    )
    return [HolderCount(email=email, count=count) for email, count in counts.most_common(limit)]


def build_overview(profiles: Sequence[UserProfile], year: int) -> CertificationOverview:
    flat = flatten_certifications(profiles)
    return CertificationOverview(
        year=year,
        total=len(flat),
        by_name=certification_counts(flat),
        by_year=certifications_by_year(flat),
        by_month=certifications_by_month(flat, year),
        top_certifications=top_certifications(flat),
        top_holders=top_holders(flat),
        top_holders_this_year=top_holders(flat, year=year),
    )


__all__ = [
    "CertificationOverview",
    "CertificationView",
    "as_view",
    "build_overview",
    "certification_counts",
    "certifications_by_month",
    "certifications_by_year",
    "filter_certifications",
    "top_certifications",
    "top_holders",
]
