"""PEP compliance evaluation over the cached certification set.

A user is PEP compliant when both hold:

1. every mandatory certification for their role is present, and
2. at least two certifications were earned in the selected year.

Evaluation is a pure function of the profiles, the requirement registry and
the filter arguments. The per-certification columns come from every
certification name held by anyone in the dataset, so adding one user's
certification adds a column to every row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from functools import cmp_to_key
from operator import attrgetter
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .certification_profile import UserProfile
from .role_requirements import RequirementRegistry

MIN_CERTS_PER_YEAR = 2
MISSING_VALUE = "N/A"

_STRING_FIELDS = {"name": "name", "email": "email", "role": "role"}
_FLAG_FIELDS = {
    "pepCompliant": "pep_compliant",
    "pep_compliant": "pep_compliant",
    "mandatoryCompleted": "mandatory_completed",
    "mandatory_completed": "mandatory_completed",
}
_COUNT_FIELDS = {"certsThisYear": "certs_this_year", "certs_this_year": "certs_this_year"}
_DIRECTIONS = {"ascending": 1, "asc": 1, "descending": -1, "desc": -1}


@dataclass(frozen=True)
class FlatCertification:
    """One certification tagged with the profile that holds it."""

    email: str
    role: str
    cert_name: str
    cert_date: str
    earned_on: Optional[date]


class ComplianceRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    role: str
    cert_status: Dict[str, str] = Field(default_factory=dict, alias="certStatus")
    mandatory_completed: bool = Field(alias="mandatoryCompleted")
    missing_mandatory: List[str] = Field(default_factory=list, alias="missingMandatory")
    pep_compliant: bool = Field(alias="pepCompliant")
    certs_this_year: int = Field(alias="certsThisYear")


def parse_earned_date(value: Optional[str]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` or an ISO timestamp; anything else is ``None``."""
    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def flatten_certifications(profiles: Iterable[UserProfile]) -> List[FlatCertification]:
    flat: List[FlatCertification] = []
    for profile in profiles:
        for certification in profile.certifications:
            flat.append(
                FlatCertification(
                    email=profile.email or MISSING_VALUE,
                    role=profile.role,
                    cert_name=certification.name or MISSING_VALUE,
                    cert_date=certification.earned_at,
                    earned_on=parse_earned_date(certification.earned_at),
                )
            )
    return flat


def unique_certification_names(flat: Iterable[FlatCertification]) -> List[str]:
    return sorted({entry.cert_name for entry in flat})


def _held_label(entry: FlatCertification, show_dates: bool) -> str:
    if not show_dates:
        return "Yes"
    if entry.earned_on is not None:
        return f"Yes ({entry.earned_on.isoformat()})"
    if entry.cert_date.strip():
        return f"Yes ({entry.cert_date.strip()})"
    return "Yes"


def _evaluate_user(
    profile: UserProfile,
    user_certs: Sequence[FlatCertification],
    all_names: Sequence[str],
    registry: RequirementRegistry,
    year: int,
    show_dates: bool,
) -> ComplianceRow:
    first_by_name: Dict[str, FlatCertification] = {}
    for entry in user_certs:
        first_by_name.setdefault(entry.cert_name, entry)

    cert_status = {
        name: _held_label(first_by_name[name], show_dates) if name in first_by_name else "No"
        for name in all_names
    }

    # Roles without configured requirements pass this half vacuously.
    missing = sorted(registry.requirements_for(profile.role) - set(first_by_name))
    mandatory_completed = not missing

    certs_this_year = sum(
        1 for entry in user_certs if entry.earned_on is not None and entry.earned_on.year == year
    )

    return ComplianceRow(
        name=profile.name or MISSING_VALUE,
        email=profile.email or MISSING_VALUE,
        role=profile.role or MISSING_VALUE,
        cert_status=cert_status,
        mandatory_completed=mandatory_completed,
        missing_mandatory=missing,
        pep_compliant=mandatory_completed and certs_this_year >= MIN_CERTS_PER_YEAR,
        certs_this_year=certs_this_year,
    )


def evaluate_compliance(
    profiles: Sequence[UserProfile],
    registry: RequirementRegistry,
    *,
    year: int,
    role_filter: str = "",
    show_dates: bool = False,
) -> List[ComplianceRow]:
    """Return one row per profile whose role matches ``role_filter`` (empty means all)."""
    flat = flatten_certifications(profiles)
    all_names = unique_certification_names(flat)

    by_email: Dict[str, List[FlatCertification]] = {}
    for entry in flat:
        by_email.setdefault(entry.email, []).append(entry)

    return [
        _evaluate_user(
            profile,
            by_email.get(profile.email or MISSING_VALUE, []),
            all_names,
            registry,
            year,
            show_dates,
        )
        for profile in profiles
        if not role_filter or profile.role == role_filter
    ]


def _yes_no(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value.startswith("Yes"):
            return True
        if value.startswith("No"):
            return False
    return None


def _compare(left: Any, right: Any, binary: bool) -> int:
    if binary:
        left_flag, right_flag = _yes_no(left), _yes_no(right)
        if left_flag is not None and right_flag is not None and left_flag != right_flag:
            return -1 if left_flag else 1
    if isinstance(left, str) and isinstance(right, str):
        return (left > right) - (left < right)
    numeric = (int, float)
    if (
        isinstance(left, numeric)
        and isinstance(right, numeric)
        and not isinstance(left, bool)
        and not isinstance(right, bool)
    ):
        return (left > right) - (left < right)
    return 0


def sort_compliance_rows(
    rows: Sequence[ComplianceRow],
    key: str,
    direction: str = "ascending",
) -> List[ComplianceRow]:
    """Stable sort by a row field or a certification column.

    Certification columns and the boolean flags order "Yes" ahead of "No"
    when ascending instead of comparing the strings.
    """
    sign = _DIRECTIONS.get(direction.lower())
    if sign is None:
        raise ValueError(f"Unsupported sort direction: {direction!r}")

    binary = key not in _STRING_FIELDS and key not in _COUNT_FIELDS
    attribute = _STRING_FIELDS.get(key) or _FLAG_FIELDS.get(key) or _COUNT_FIELDS.get(key)
    if attribute is not None:
        value_of: Callable[[ComplianceRow], Any] = attrgetter(attribute)
    else:
        value_of = lambda row: row.cert_status.get(key)  # noqa: E731

    def _cmp(left: ComplianceRow, right: ComplianceRow) -> int:
        return sign * _compare(value_of(left), value_of(right), binary)

    return sorted(rows, key=cmp_to_key(_cmp))


__all__ = [
    "ComplianceRow",
    "FlatCertification",
    "MIN_CERTS_PER_YEAR",
    "evaluate_compliance",
    "flatten_certifications",
    "parse_earned_date",
    "sort_compliance_rows",
    "unique_certification_names",
]
