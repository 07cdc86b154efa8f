"""External credentialing service port and its httpx adapter."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .certification_profile import DEFAULT_PROVIDER, CertificationRecord
from .config import Settings

logger = logging.getLogger(__name__)


class ExternalCertificationEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type_name: Optional[str] = Field(default=None, alias="ExternalCertificationTypeName")
    certification_date: Optional[str] = Field(default=None, alias="CertificationDate")
    certification_type: Optional[Dict[str, Any]] = Field(default=None, alias="RelatedCertificationType")

    @field_validator("certification_type", mode="before")
    @classmethod
    def _mapping_or_empty(cls, value: Any) -> Any:
        if value is None or isinstance(value, dict):
            return value
        logger.debug("Ignoring non-object RelatedCertificationType: %r", value)
        return {}


class ExternalCertificationStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    records: List[ExternalCertificationEntry] = Field(default_factory=list)


class ExternalCredentialRecord(BaseModel):
    """The only part of the upstream payload this service trusts."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    certification_status: Optional[ExternalCertificationStatus] = Field(
        default=None,
        alias="RelatedCertificationStatus",
    )


class _EnvelopeItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    json_response: Optional[str] = Field(default=None, alias="jsonResponse")


class _CredentialEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    data: List[_EnvelopeItem] = Field(default_factory=list)


class _CredentialPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: List[ExternalCredentialRecord] = Field(default_factory=list)


CredentialFetcher = Callable[[str, str], Optional[ExternalCredentialRecord]]


class CredentialFetchError(RuntimeError):
    """Raised when the credentialing service returns nothing usable."""


def normalize_certifications(
    record: ExternalCredentialRecord,
    provider: str = DEFAULT_PROVIDER,
) -> List[CertificationRecord]:
    status = record.certification_status
    entries = status.records if status is not None else []
    return [
        CertificationRecord(
            provider=provider,
            name=entry.type_name or "",
            earned_at=entry.certification_date or "",
            expires_at=None,
            status="active",
            meta=dict(entry.certification_type or {}),
        )
        for entry in entries
    ]


def parse_credential_response(body: str) -> ExternalCredentialRecord:
    """Unwrap the envelope and its embedded ``jsonResponse`` document."""
    try:
        envelope = _CredentialEnvelope.model_validate_json(body)
    except ValidationError as exc:
        raise CredentialFetchError(f"Credential service returned an invalid envelope: {exc}") from exc
    if envelope.status != "success" or not envelope.data or not envelope.data[0].json_response:
        raise CredentialFetchError(f"Credential service reported status={envelope.status!r} without data.")

    try:
        inner = json.loads(envelope.data[0].json_response)
        payload = _CredentialPayload.model_validate(inner)
    except (ValueError, ValidationError) as exc:
        raise CredentialFetchError(f"Credential service returned an invalid jsonResponse: {exc}") from exc
    if not payload.data:
        raise CredentialFetchError("Credential service returned no credential records.")
    return payload.data[0]


class CredentialServiceClient:
    """Fetch port backed by the credentialing REST endpoint.

    Calling the client returns ``None`` for every kind of failure; ``fetch``
    raises :class:`CredentialFetchError` instead.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings, *, client: Optional[httpx.Client] = None) -> "CredentialServiceClient":
        return cls(
            settings.credential_base_url,
            timeout_seconds=settings.fetch_timeout_seconds,
            client=client,
        )

    def fetch(self, search_string: str, role: str) -> ExternalCredentialRecord:
        params = {"searchString": search_string, "languageLocaleKey": "en"}
        if role == "Admin":
            params["admin"] = "true"
        try:
            response = self._client.get(self._base_url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CredentialFetchError(f"Credential lookup for {search_string!r} failed: {exc}") from exc
        return parse_credential_response(response.text)

    def __call__(self, search_string: str, role: str) -> Optional[ExternalCredentialRecord]:
        try:
            return self.fetch(search_string, role)
        except CredentialFetchError as exc:
            logger.warning("No credential data for %s: %s", search_string, exc)
            return None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "CredentialServiceClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "CredentialFetchError",
    "CredentialFetcher",
    "CredentialServiceClient",
    "ExternalCertificationEntry",
    "ExternalCertificationStatus",
    "ExternalCredentialRecord",
    "normalize_certifications",
    "parse_credential_response",
]
