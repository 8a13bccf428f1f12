from __future__ import annotations

import pytest

from essready.domain.classifier import assign_slots, classify_component_name
from essready.domain.models import Component, ComponentRole, ComponentStatus


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("PayGlobal DB", ComponentRole.PAY_GLOBAL_DATABASE),
        ("payglobal database", ComponentRole.PAY_GLOBAL_DATABASE),
        ("SelfService Software", ComponentRole.SELF_SERVICE_SOFTWARE),
        ("SelfService App", ComponentRole.SELF_SERVICE_SOFTWARE),
        ("ESS Web", ComponentRole.SELF_SERVICE_SOFTWARE),
        ("SelfService Database", ComponentRole.SELF_SERVICE_DATABASE),
        ("Bridge", ComponentRole.BRIDGE),
        ("WFE DB", ComponentRole.WFE_DATABASE),
        ("Bridge Communication", ComponentRole.BRIDGE_COMMUNICATION),
        ("Communication Channel", ComponentRole.BRIDGE_COMMUNICATION),
        ("Workflow Endpoint Service", ComponentRole.WORKFLOW_ENDPOINTS),
        ("Generic Cache", None),
    ],
)
def test_classify_component_name(name: str, expected: ComponentRole | None) -> None:
    assert classify_component_name(name) is expected


def test_first_matching_rule_wins() -> None:
    # "Process" contains "ess", which the self-service rule claims before the bridge rule
    assert classify_component_name("Bridge Process") is ComponentRole.SELF_SERVICE_SOFTWARE


def test_unmatched_component_gets_no_slot() -> None:
    cache = Component(name="Generic Cache", status=ComponentStatus.HEALTHY)

    assert assign_slots([cache]) == {}


def test_last_component_for_a_role_wins() -> None:
    first = Component(name="Bridge A", status=ComponentStatus.HEALTHY)
    second = Component(name="Bridge B", status=ComponentStatus.UNHEALTHY)

    slots = assign_slots([first, second])

    assert slots == {ComponentRole.BRIDGE: second}


@pytest.mark.parametrize("name", ["Business Rules", "Process Scheduler", "Access Control"])
def test_any_name_containing_ess_is_self_service_software(name: str) -> None:
    assert classify_component_name(name) is ComponentRole.SELF_SERVICE_SOFTWARE
