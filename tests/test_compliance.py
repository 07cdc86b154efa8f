"""PEP compliance evaluation and report sorting."""

from __future__ import annotations

from typing import List

import pytest

from certtrack.certification_profile import CertificationRecord, UserProfile
from certtrack.compliance import (
    evaluate_compliance,
    flatten_certifications,
    parse_earned_date,
    sort_compliance_rows,
    unique_certification_names,
)
from certtrack.role_requirements import build_registry


def _user(email: str, role: str, *certs: tuple[str, str], name: str | None = None) -> UserProfile:
    return UserProfile(
        email=email,
        role=role,
        name=name,
        certifications=[CertificationRecord(name=cert_name, earned_at=earned) for cert_name, earned in certs],
    )


def _admin_missing_advanced() -> UserProfile:
    return _user("a@x.com", "Admin", ("Administrator", "2024-01-01"), ("Administrator", "2024-06-01"))


def test_missing_mandatory_certification_blocks_compliance_despite_two_this_year() -> None:
    rows = evaluate_compliance([_admin_missing_advanced()], build_registry(), year=2024)

    row = rows[0]
    assert row.mandatory_completed is False
    assert row.missing_mandatory == ["Advanced Administrator"]
    assert row.certs_this_year == 2
    assert row.pep_compliant is False


def test_mandatory_satisfied_and_two_this_year_is_compliant() -> None:
    user = _admin_missing_advanced()
    user.certifications.append(CertificationRecord(name="Advanced Administrator", earned_at="2023-01-01"))

    row = evaluate_compliance([user], build_registry(), year=2024)[0]

    assert row.mandatory_completed is True
    assert row.certs_this_year == 2
    assert row.pep_compliant is True


def test_mandatory_satisfied_but_one_this_year_is_not_compliant() -> None:
    user = _user(
        "a@x.com",
        "Admin",
        ("Administrator", "2024-01-01"),
        ("Advanced Administrator", "2023-01-01"),
    )

    row = evaluate_compliance([user], build_registry(), year=2024)[0]

    assert row.mandatory_completed is True
    assert row.certs_this_year == 1
    assert row.pep_compliant is False


def test_unknown_role_is_vacuously_mandatory_complete() -> None:
    users = [
        _user("none@x.com", "UnknownRole"),
        _user("busy@x.com", "UnknownRole", ("Sales Cloud Consultant", "2024-02-02"), ("AI Associate", "2024-11-30")),
    ]

    rows = evaluate_compliance(users, build_registry(), year=2024)

    assert [row.mandatory_completed for row in rows] == [True, True]
    assert [row.pep_compliant for row in rows] == [False, True]


def test_columns_span_the_whole_dataset() -> None:
    users = [
        _user("a@x.com", "Admin", ("Administrator", "2024-01-01")),
        _user("b@x.com", "Developer", ("Platform Developer I", "2023-05-05"), ("AI Associate", "")),
    ]

    rows = evaluate_compliance(users, build_registry(), year=2024)

    assert list(rows[0].cert_status) == ["AI Associate", "Administrator", "Platform Developer I"]
    assert rows[0].cert_status == {"AI Associate": "No", "Administrator": "Yes", "Platform Developer I": "No"}
    assert rows[1].cert_status == {"AI Associate": "Yes", "Administrator": "No", "Platform Developer I": "Yes"}
    assert rows[0].name == "N/A"


def test_role_filter_limits_rows_but_not_columns() -> None:
    users = [
        _user("a@x.com", "Admin", ("Administrator", "2024-01-01")),
        _user("b@x.com", "Developer", ("Platform Developer I", "2023-05-05")),
    ]

    rows = evaluate_compliance(users, build_registry(), year=2024, role_filter="Developer")

    assert [row.email for row in rows] == ["b@x.com"]
    assert set(rows[0].cert_status) == {"Administrator", "Platform Developer I"}


def test_show_dates_uses_first_matching_record() -> None:
    users = [
        _user(
            "a@x.com",
            "Admin",
            ("Administrator", "2024-01-01T08:30:00Z"),
            ("Administrator", "2024-06-01"),
            ("Mystery", "someday"),
            ("Undated", ""),
        )
    ]

    row = evaluate_compliance(users, build_registry(), year=2024, show_dates=True)[0]

    assert row.cert_status["Administrator"] == "Yes (2024-01-01)"
    assert row.cert_status["Mystery"] == "Yes (someday)"
    assert row.cert_status["Undated"] == "Yes"
    assert row.certs_this_year == 2


def test_evaluation_is_repeatable() -> None:
    users = [_admin_missing_advanced(), _user("b@x.com", "Analyst", ("Administrator", "2024-01-01"))]
    registry = build_registry()

    first = evaluate_compliance(users, registry, year=2024, show_dates=True)
    second = evaluate_compliance(users, registry, year=2024, show_dates=True)

    assert [row.model_dump() for row in first] == [row.model_dump() for row in second]


def test_row_serializes_with_report_keys() -> None:
    row = evaluate_compliance([_admin_missing_advanced()], build_registry(), year=2024)[0]

    payload = row.model_dump(by_alias=True)

    assert payload["pepCompliant"] is False
    assert payload["certsThisYear"] == 2
    assert payload["certStatus"] == {"Administrator": "Yes"}


@pytest.mark.parametrize(
    ("value", "expected_year"),
    [("2024-01-01", 2024), ("2023-12-31T23:59:59Z", 2023), ("2022-07-04T10:00:00+02:00", 2022), ("", None), ("N/A", None)],
)
def test_parse_earned_date(value: str, expected_year: int | None) -> None:
    parsed = parse_earned_date(value)
    assert (parsed.year if parsed else None) == expected_year


def test_flatten_tags_each_certification_with_owner() -> None:
    flat = flatten_certifications([_admin_missing_advanced(), _user("b@x.com", "Analyst", ("", "2024-01-01"))])

    assert [(entry.email, entry.cert_name) for entry in flat] == [
        ("a@x.com", "Administrator"),
        ("a@x.com", "Administrator"),
        ("b@x.com", "N/A"),
    ]
    assert unique_certification_names(flat) == ["Administrator", "N/A"]


def _sorting_rows() -> List:
    users = [
        _user("c@x.com", "Admin", ("Administrator", "2024-01-01"), ("Advanced Administrator", "2024-02-01"), name="Cy"),
        _user("a@x.com", "Analyst", name="Al"),
        _user("b@x.com", "Admin", ("Administrator", "2024-03-01"), name="Bo"),
        _user("d@x.com", "Analyst", name="Di"),
    ]
    return evaluate_compliance(users, build_registry(), year=2024)


def test_sort_by_string_field() -> None:
    rows = sort_compliance_rows(_sorting_rows(), "name")
    assert [row.name for row in rows] == ["Al", "Bo", "Cy", "Di"]

    rows = sort_compliance_rows(_sorting_rows(), "email", "descending")
    assert [row.email for row in rows] == ["d@x.com", "c@x.com", "b@x.com", "a@x.com"]


def test_sort_by_count_is_numeric() -> None:
    rows = sort_compliance_rows(_sorting_rows(), "certsThisYear", "descending")
    assert [row.certs_this_year for row in rows] == [2, 1, 0, 0]
    assert [row.email for row in rows][2:] == ["a@x.com", "d@x.com"]


def test_sort_by_pep_flag_puts_yes_first_when_ascending() -> None:
    rows = sort_compliance_rows(_sorting_rows(), "pepCompliant")
    assert [row.email for row in rows] == ["c@x.com", "a@x.com", "b@x.com", "d@x.com"]

    rows = sort_compliance_rows(_sorting_rows(), "pepCompliant", "descending")
    assert [row.email for row in rows] == ["a@x.com", "b@x.com", "d@x.com", "c@x.com"]


def test_sort_by_certification_column_is_binary_and_stable() -> None:
    rows = sort_compliance_rows(_sorting_rows(), "Administrator")
    assert [row.email for row in rows] == ["c@x.com", "b@x.com", "a@x.com", "d@x.com"]

    rows = sort_compliance_rows(_sorting_rows(), "Administrator", "descending")
    assert [row.email for row in rows] == ["a@x.com", "d@x.com", "c@x.com", "b@x.com"]


def test_sort_rejects_unknown_direction() -> None:
    with pytest.raises(ValueError):
        sort_compliance_rows(_sorting_rows(), "name", "sideways")
