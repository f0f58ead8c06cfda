"""Ordered claim accessors for JWT payloads.

Each field is read by trying accessors in a fixed priority order; the first
non-empty value wins. The orders below are part of the token contract.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

ClaimAccessor = Callable[[Mapping[str, Any]], Any]


def claim(name: str) -> ClaimAccessor:
    """Accessor for a top-level claim."""

    def _get(claims: Mapping[str, Any]) -> Any:
        return claims.get(name)

    _get.__name__ = f"claim_{name}"
    return _get


def nested_claim(parent: str, name: str) -> ClaimAccessor:
    """Accessor for ``claims[parent][name]`` when ``parent`` is a mapping."""

    def _get(claims: Mapping[str, Any]) -> Any:
        container = claims.get(parent)
        if isinstance(container, Mapping):
            return container.get(name)
        return None

    _get.__name__ = f"claim_{parent}_{name}"
    return _get


SUBJECT_ACCESSORS: tuple[ClaimAccessor, ...] = (
    claim("sub"),
    claim("userId"),
    claim("user_id"),
)

ORGANIZATION_ACCESSORS: tuple[ClaimAccessor, ...] = (
    claim("organization_id"),
    claim("organizationId"),
    claim("org_id"),
)

ROLE_ACCESSORS: tuple[ClaimAccessor, ...] = (
    claim("role"),
    nested_claim("app_metadata", "role"),
)

PLAN_ACCESSORS: tuple[ClaimAccessor, ...] = (
    claim("plan"),
    nested_claim("app_metadata", "plan"),
)

EMAIL_ACCESSORS: tuple[ClaimAccessor, ...] = (claim("email"),)


def first_claim(
    claims: Mapping[str, Any], accessors: Sequence[ClaimAccessor]
) -> str | None:
    """Return the first non-empty accessor result as a string, else None."""
    for accessor in accessors:
        value = accessor(claims)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None
