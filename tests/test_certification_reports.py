"""Dashboard aggregates over the flattened certification set."""

from __future__ import annotations

from typing import List

from certtrack.certification_profile import CertificationRecord, UserProfile
from certtrack.certification_reports import (
    build_overview,
    certification_counts,
    certifications_by_month,
    certifications_by_year,
    filter_certifications,
    top_certifications,
    top_holders,
)
from certtrack.compliance import flatten_certifications


def _profiles() -> List[UserProfile]:
    return [
        UserProfile(
            email="ada@x.com",
            role="Admin",
            certifications=[
                CertificationRecord(name="Administrator", earned_at="2024-01-15"),
                CertificationRecord(name="Advanced Administrator", earned_at="2024-03-02"),
                CertificationRecord(name="AI Associate", earned_at="2023-11-20"),
            ],
        ),
        UserProfile(
            email="bob@x.com",
            role="Developer",
            certifications=[
                CertificationRecord(name="Platform Developer I", earned_at="2024-01-05"),
                CertificationRecord(name="Administrator", earned_at=""),
            ],
        ),
        UserProfile(email="cy@x.com", role="Analyst"),
    ]


def test_search_matches_name_or_email_case_insensitively() -> None:
    flat = flatten_certifications(_profiles())

    by_name = filter_certifications(flat, search="ADVANCED")
    by_email = filter_certifications(flat, search="bob@")

    assert [entry.cert_name for entry in by_name] == ["Advanced Administrator"]
    assert [entry.cert_name for entry in by_email] == ["Platform Developer I", "Administrator"]


def test_date_filters_skip_only_dated_entries() -> None:
    flat = flatten_certifications(_profiles())

    matches = filter_certifications(flat, cert_name="Administrator", month=1, year=2024)

    assert [(entry.email, entry.cert_date) for entry in matches] == [("ada@x.com", "2024-01-15"), ("bob@x.com", "")]
    assert filter_certifications(flat, year=2023, search="ada") == [flat[2]]


def test_counts_by_name_year_and_month() -> None:
    flat = flatten_certifications(_profiles())

    assert {count.name: count.count for count in certification_counts(flat)} == {
        "Administrator": 2,
        "Advanced Administrator": 1,
        "AI Associate": 1,
        "Platform Developer I": 1,
    }
    assert [(row.year, row.count) for row in certifications_by_year(flat)] == [(2023, 1), (2024, 3)]

    months = certifications_by_month(flat, 2024)
    assert len(months) == 12
    assert (months[0].month, months[0].count) == ("Jan", 2)
    assert (months[2].month, months[2].count) == ("Mar", 1)
    assert months[10].count == 0


def test_top_lists_are_bounded() -> None:
    flat = flatten_certifications(_profiles())

    assert top_certifications(flat, limit=1)[0].model_dump() == {"name": "Administrator", "count": 2}
    assert [(holder.email, holder.count) for holder in top_holders(flat)] == [("ada@x.com", 3), ("bob@x.com", 2)]
    assert [(holder.email, holder.count) for holder in top_holders(flat, year=2024)] == [
        ("ada@x.com", 2),
        ("bob@x.com", 1),
    ]


def test_overview_bundles_every_aggregate() -> None:
    overview = build_overview(_profiles(), 2024)

    assert overview.year == 2024
    assert overview.total == 5
    assert len(overview.top_certifications) == 4
    assert overview.top_holders_this_year[0].email == "ada@x.com"
    assert sum(month.count for month in overview.by_month) == 3


def test_overview_of_empty_cache() -> None:
    overview = build_overview([], 2024)

    assert overview.total == 0
    assert overview.by_name == []
    assert [month.count for month in overview.by_month] == [0] * 12
