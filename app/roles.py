from __future__ import annotations

from typing import Dict, Iterable, List


ROLE_GROUPS: Dict[str, List[str]] = {
    "Management": [
        "Manager",
        "Supervisor",
    ],
    "Field": [
        "MIT Lead",
        "MIT Tech",
        "Demo Tech",
    ],
    "Fleet": [
        "Fleet",
        "Fleet Safety",
    ],
    "Support": [
        "Auditor",
        "Warehouse",
    ],
}

ZONE_LEAD_ROLE = "MIT Lead"
ROUTE_RUNNER_ROLE = "MIT Tech"
DEMO_TECH_ROLE = "Demo Tech"


def normalize_role(role: str) -> str:
    return (role or "").strip().lower()


def defined_roles() -> List[str]:
    """Return a sorted list of roles explicitly supported by the app."""
    roles: List[str] = []
    for names in ROLE_GROUPS.values():
        roles.extend(names)
    return sorted(set(roles))


def canonical_role(role: str) -> str:
    """Map a loosely typed role label onto the catalogue spelling, or ''."""
    label = normalize_role(role)
    if not label:
        return ""
    for name in defined_roles():
        if normalize_role(name) == label:
            return name
    return ""


def role_group(role: str) -> str:
    label = normalize_role(role)
    if not label:
        return "Other"
    for group, names in ROLE_GROUPS.items():
        for name in names:
            if label == normalize_role(name):
                return group
    return "Other"


def role_matches(role: str, expected: str) -> bool:
    return normalize_role(role) == normalize_role(expected)


def grouped_roles(roles: Iterable[str]) -> Dict[str, List[str]]:
    mapping: Dict[str, List[str]] = {group: [] for group in ROLE_GROUPS}
    mapping["Other"] = []
    for role in roles:
        if not role:
            continue
        group = role_group(role)
        if role not in mapping.setdefault(group, []):
            mapping[group].append(role)
    for group in mapping:
        mapping[group].sort()
    return {group: entries for group, entries in mapping.items() if entries}
