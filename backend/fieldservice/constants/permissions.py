"""Central enum-like definitions to avoid typos in permission strings.
Never rename codes silently; add new ones and retire old ones explicitly.
"""
from __future__ import annotations
from typing import List, Dict

from fieldservice.lifecycle.records import ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_FIELD_ENGINEER

SERVICES = ['TKT', 'STATS', 'USR']

SERVICE_ACTIONS = {
    'TKT': ['READ', 'CREATE', 'UPDATE', 'COMMENT', 'ASSIGN', 'DELETE'],
    'STATS': ['READ'],
    'USR': ['READ', 'MANAGE'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    ROLE_ADMIN: ['*'],
    ROLE_SUPERVISOR: ['TKT.READ', 'TKT.CREATE', 'TKT.UPDATE', 'TKT.COMMENT', 'TKT.ASSIGN', 'STATS.READ', 'USR.READ'],
    ROLE_FIELD_ENGINEER: ['TKT.READ', 'TKT.CREATE', 'TKT.UPDATE', 'TKT.COMMENT', 'STATS.READ'],
}


def permissions_for_role(role: str) -> List[str]:
    """Expand a role preset into concrete codes ('*' means every code)."""
    preset = ROLE_PRESETS.get(role, [])
    if '*' in preset:
        return list(ALL_PERMISSION_CODES)
    return sorted(preset)
