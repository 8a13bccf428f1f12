"""Map free-text health-check component names onto canonical roles.

Rules are case-insensitive substring tests evaluated in order; the first
matching rule wins for a single component. Across components, a later
component mapped to an already-filled role replaces the earlier one.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from essready.domain.models import Component, ComponentRole

_DATABASE_MARKERS = ("database", "db")


def _has(name: str, *tokens: str) -> bool:
    return all(token in name for token in tokens)


def _has_any(name: str, tokens: Iterable[str]) -> bool:
    return any(token in name for token in tokens)


def _is_pay_global_database(name: str) -> bool:
    return _has(name, "payglobal") and _has_any(name, _DATABASE_MARKERS)


def _is_self_service_software(name: str) -> bool:
    return (_has(name, "selfservice") and _has_any(name, ("software", "app"))) or _has(
        name, "ess"
    )


def _is_self_service_database(name: str) -> bool:
    return _has(name, "selfservice") and _has_any(name, _DATABASE_MARKERS)


def _is_bridge(name: str) -> bool:
    return _has(name, "bridge") and "communication" not in name


def _is_wfe_database(name: str) -> bool:
    return _has(name, "wfe") and _has_any(name, _DATABASE_MARKERS)


def _is_bridge_communication(name: str) -> bool:
    return _has(name, "bridge", "communication") or _has(name, "communication")


def _is_workflow_endpoints(name: str) -> bool:
    return _has(name, "workflow", "endpoint")


CLASSIFICATION_RULES: tuple[tuple[ComponentRole, Callable[[str], bool]], ...] = (
    (ComponentRole.PAY_GLOBAL_DATABASE, _is_pay_global_database),
    (ComponentRole.SELF_SERVICE_SOFTWARE, _is_self_service_software),
    (ComponentRole.SELF_SERVICE_DATABASE, _is_self_service_database),
    (ComponentRole.BRIDGE, _is_bridge),
    (ComponentRole.WFE_DATABASE, _is_wfe_database),
    (ComponentRole.BRIDGE_COMMUNICATION, _is_bridge_communication),
    (ComponentRole.WORKFLOW_ENDPOINTS, _is_workflow_endpoints),
)


def classify_component_name(name: str) -> ComponentRole | None:
    """Return the canonical role for ``name`` or ``None`` when nothing matches."""

    normalized = name.lower()
    for role, matches in CLASSIFICATION_RULES:
        if matches(normalized):
            return role
    return None


def assign_slots(components: Iterable[Component]) -> dict[ComponentRole, Component]:
    slots: dict[ComponentRole, Component] = {}
    for component in components:
        role = classify_component_name(component.name)
        if role is not None:
            # last component processed for a role wins
            slots[role] = component
    return slots


__all__ = ["CLASSIFICATION_RULES", "classify_component_name", "assign_slots"]
