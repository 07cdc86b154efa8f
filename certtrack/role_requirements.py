"""Role to mandatory-certification mapping, loaded once per process."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from .config import get_settings

logger = logging.getLogger(__name__)

_DEFAULT_ROLE_REQUIREMENTS: Dict[str, tuple[str, ...]] = {
    "Consultant": ("Sales Cloud Consultant", "Service Cloud Consultant", "Platform App Builder"),
    "Analyst": ("Administrator", "Platform Developer I", "Data Cloud Consultant"),
    "Architect": ("Application Architect", "System Architect", "Identity and Access Management Architect"),
    "Developer": ("Platform Developer I", "Platform Developer II", "JavaScript Developer I"),
    "Admin": ("Administrator", "Advanced Administrator"),
}

_NO_REQUIREMENTS: FrozenSet[str] = frozenset()


class RequirementRegistry:
    """Read-only view of which certifications each role must hold."""

    def __init__(self, requirements: Mapping[str, Iterable[str]]) -> None:
        self._requirements: Mapping[str, FrozenSet[str]] = MappingProxyType(
            {role: frozenset(names) for role, names in requirements.items()}
        )

    def requirements_for(self, role: str) -> FrozenSet[str]:
        return self._requirements.get(role, _NO_REQUIREMENTS)

    def all_roles(self) -> List[str]:
        return sorted(self._requirements)

    def as_dict(self) -> Dict[str, List[str]]:
        return {role: sorted(names) for role, names in sorted(self._requirements.items())}

    def __contains__(self, role: object) -> bool:
        return role in self._requirements

    def __len__(self) -> int:
        return len(self._requirements)


def load_requirements_file(path: Path) -> Dict[str, List[str]]:
    """Parse a ``{"Role": ["Cert", ...]}`` JSON document."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, ValueError) as exc:
        raise RuntimeError(f"Unable to read role requirements from {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise RuntimeError(f"Role requirements in {path} must be a JSON object keyed by role.")
    parsed: Dict[str, List[str]] = {}
    for role, names in raw.items():
        if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
            raise RuntimeError(f"Role '{role}' in {path} must map to a list of certification names.")
        parsed[str(role)] = [name.strip() for name in names if name.strip()]
    return parsed


def build_registry(path: Optional[Path] = None) -> RequirementRegistry:
    if path is None:
        return RequirementRegistry(_DEFAULT_ROLE_REQUIREMENTS)
    registry = RequirementRegistry(load_requirements_file(path))
    logger.info("Loaded requirements for %d roles from %s", len(registry), path)
    return registry


@lru_cache
def get_requirement_registry() -> RequirementRegistry:
    return build_registry(get_settings().role_requirements_path)


__all__ = [
    "RequirementRegistry",
    "build_registry",
    "get_requirement_registry",
    "load_requirements_file",
]
