"""
core/policies.py — Role gating
Which user roles may mutate which resource.
"""

from typing import Literal

Action = Literal["create", "update", "delete"]

ADMIN = "admin"
DOCTOR = "doctor"
NURSE = "nurse"

ROLE_POLICY: dict[str, dict[str, frozenset[str]]] = {
    "ubs": {
        "create": frozenset({ADMIN}),
        "update": frozenset({ADMIN}),
        "delete": frozenset({ADMIN}),
    },
    "employee": {
        "create": frozenset({ADMIN}),
        "update": frozenset({ADMIN}),
        "delete": frozenset({ADMIN}),
    },
    "disease": {
        "create": frozenset({ADMIN, DOCTOR}),
        "update": frozenset({ADMIN, DOCTOR}),
        "delete": frozenset({ADMIN}),
    },
    "medical_record": {
        "create": frozenset({ADMIN, DOCTOR, NURSE}),
        "update": frozenset({ADMIN, DOCTOR, NURSE}),
        "delete": frozenset({ADMIN}),
    },
}


def check_permissions(role: str, resource: str, action: Action) -> bool:
    """True when `role` may perform `action` on `resource`. Unknown resources deny."""
    allowed = ROLE_POLICY.get(resource, {}).get(action, frozenset())
    return role in allowed
