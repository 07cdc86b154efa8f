"""REST endpoints for the certification cache, imports and compliance reports."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from .certification_profile import UserProfile
from .certification_reports import CertificationOverview, CertificationView
from .csv_import import ImportSummary
from .profile_writes import ProfileValidationError, ProfileWriteRequest
from .service import CertificationService, ComplianceReport, RefreshSummary, get_certification_service

router = APIRouter(prefix="/api", tags=["certifications"])
logger = logging.getLogger(__name__)


@router.get("/get-cache", response_model=List[UserProfile])
def get_cache(service: CertificationService = Depends(get_certification_service)) -> List[UserProfile]:
    return service.get_cache()


@router.get("/users/{email}", response_model=UserProfile)
def get_user(email: str, service: CertificationService = Depends(get_certification_service)) -> UserProfile:
    profile = service.get_user(email)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return profile


@router.put("/users", response_model=UserProfile)
def put_user(
    request: ProfileWriteRequest,
    service: CertificationService = Depends(get_certification_service),
) -> UserProfile:
    try:
        return service.put_user(request)
    except ProfileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/refresh-cache", response_model=RefreshSummary)
def refresh_cache(service: CertificationService = Depends(get_certification_service)) -> RefreshSummary:
    return service.refresh_cache()


@router.post("/upload-csv", response_model=ImportSummary)
async def upload_csv(
    file: UploadFile = File(...),
    service: CertificationService = Depends(get_certification_service),
) -> ImportSummary:
    raw = await file.read()
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CSV upload must be UTF-8 encoded.",
        ) from exc
    logger.info("Importing CSV upload %s (%d bytes)", file.filename, len(raw))
    return service.import_csv(content)


@router.get("/roles")
def list_roles(service: CertificationService = Depends(get_certification_service)) -> Dict[str, List[str]]:
    return service.list_roles()


@router.get("/compliance", response_model=ComplianceReport)
def compliance_report(
    role: str = Query(default="", description="Only include users with this role. Empty means all roles."),
    year: Optional[int] = Query(default=None, ge=1900, le=9999, description="Year for the two-certification rule."),
    show_dates: bool = Query(default=False, description="Render held certifications as 'Yes (date)'."),
    sort: Optional[str] = Query(default=None, description="Row field or certification name to sort by."),
    direction: str = Query(default="ascending"),
    service: CertificationService = Depends(get_certification_service),
) -> ComplianceReport:
    try:
        return service.evaluate_compliance(role, year, show_dates, sort_key=sort, direction=direction)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/certifications", response_model=List[CertificationView])
def list_certifications(
    search: str = Query(default=""),
    cert_name: str = Query(default=""),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None, ge=1900, le=9999),
    service: CertificationService = Depends(get_certification_service),
) -> List[CertificationView]:
    return service.list_certifications(search=search, cert_name=cert_name, month=month, year=year)


@router.get("/reports/overview", response_model=CertificationOverview)
def overview(
    year: Optional[int] = Query(default=None, ge=1900, le=9999),
    service: CertificationService = Depends(get_certification_service),
) -> CertificationOverview:
    return service.overview(year)
