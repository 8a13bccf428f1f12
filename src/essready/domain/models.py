"""Value types shared by discovery, probing and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class HealthStatus(str, Enum):
    HEALTHY = "Healthy"
    UNHEALTHY = "Unhealthy"
    PARTIALLY_UNHEALTHY = "PartiallyUnhealthy"
    UNKNOWN = "Unknown"
    ERROR = "Error"


class ComponentStatus(str, Enum):
    HEALTHY = "Healthy"
    UNHEALTHY = "Unhealthy"

    @classmethod
    def from_flag(cls, successful: bool) -> "ComponentStatus":
        return cls.HEALTHY if successful else cls.UNHEALTHY


class ComponentRole(str, Enum):
    """Canonical slots a health-check component can be classified into.

    Values match the slot field names on :class:`HealthCheckResult`.
    """

    PAY_GLOBAL_DATABASE = "pay_global_database"
    SELF_SERVICE_SOFTWARE = "self_service_software"
    SELF_SERVICE_DATABASE = "self_service_database"
    BRIDGE = "bridge"
    WFE_DATABASE = "wfe_database"
    BRIDGE_COMMUNICATION = "bridge_communication"
    WORKFLOW_ENDPOINTS = "workflow_endpoints"


class ValidationStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARNING = "WARNING"
    INFO = "INFO"


class RunState(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    COMPLETED = "Completed"


_WFE_MARKERS = ("wfe", "workflow")


@dataclass(frozen=True)
class Instance:
    site_name: str
    application_path: str
    physical_path: str | None = None
    application_pool: str | None = None
    database_server: str | None = None
    database_name: str | None = None
    tenant_id: str | None = None
    version: str | None = None

    @property
    def identifier(self) -> str:
        path = self.application_path.strip()
        if path and not path.startswith("/"):
            path = f"/{path}"
        return f"{self.site_name}{path}"

    @property
    def is_workflow_engine(self) -> bool:
        haystack = f"{self.site_name} {self.application_path}".lower()
        return any(marker in haystack for marker in _WFE_MARKERS)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Instance":
        """Build an instance from a discovery record using PascalCase keys."""

        def _text(key: str) -> str | None:
            value = data.get(key)
            if value is None:
                return None
            text = str(value).strip()
            return text or None

        site_name = _text("SiteName")
        application_path = _text("ApplicationPath")
        if site_name is None or application_path is None:
            raise ValueError("Instance records require SiteName and ApplicationPath")
        return cls(
            site_name=site_name,
            application_path=application_path,
            physical_path=_text("PhysicalPath"),
            application_pool=_text("ApplicationPool"),
            database_server=_text("DatabaseServer"),
            database_name=_text("DatabaseName"),
            tenant_id=_text("TenantID"),
            version=_text("Version"),
        )


@dataclass(frozen=True)
class ProbeConfig:
    protocol: str = "http"
    port: int | None = None
    timeout_seconds: float = 60
    max_retries: int = 2
    retry_delay_seconds: float = 5


@dataclass(frozen=True)
class ComponentMessage:
    type: str
    detail: str
    full_message: str

    @classmethod
    def typed(cls, message_type: str, detail: str) -> "ComponentMessage":
        return cls(type=message_type, detail=detail, full_message=f"{message_type}: {detail}")

    @classmethod
    def from_text(cls, text: str) -> "ComponentMessage":
        return cls(type="Info", detail=text, full_message=text)


# XML messages: plain text, or tag-to-text pairs for an element with children.
RawMessage = str | Mapping[str, str]


def message_text(message: ComponentMessage | RawMessage) -> str:
    if isinstance(message, ComponentMessage):
        return message.full_message
    if isinstance(message, str):
        return message
    return ", ".join(f"{tag}: {text}" for tag, text in message.items())


@dataclass(frozen=True)
class Component:
    """A single component reported by the health-check endpoint.

    JSON responses yield :class:`ComponentMessage` entries; XML responses keep
    each message element as the document carries it, either its text or a
    mapping of child tag to text.
    """

    name: str
    status: ComponentStatus
    version: str | None = None
    messages: tuple[ComponentMessage | RawMessage, ...] = ()

    @property
    def healthy(self) -> bool:
        return self.status is ComponentStatus.HEALTHY


@dataclass(frozen=True)
class HealthSummary:
    total_components: int
    healthy_components: int
    unhealthy_components: int
    has_version_info: bool
    has_component_messages: bool

    @classmethod
    def from_components(cls, components: tuple[Component, ...]) -> "HealthSummary":
        healthy = sum(1 for component in components if component.healthy)
        return cls(
            total_components=len(components),
            healthy_components=healthy,
            unhealthy_components=len(components) - healthy,
            has_version_info=any(component.version for component in components),
            has_component_messages=any(component.messages for component in components),
        )


@dataclass(frozen=True)
class HealthCheckResult:
    uri: str
    overall_status: HealthStatus
    success: bool
    status_code: int | None = None
    retry_attempts: int = 0
    components: tuple[Component, ...] = ()
    error: str | None = None
    pay_global_database: Component | None = None
    self_service_software: Component | None = None
    self_service_database: Component | None = None
    bridge: Component | None = None
    wfe_database: Component | None = None
    bridge_communication: Component | None = None
    workflow_endpoints: Component | None = None

    def slot(self, role: ComponentRole) -> Component | None:
        slots = {
            ComponentRole.PAY_GLOBAL_DATABASE: self.pay_global_database,
            ComponentRole.SELF_SERVICE_SOFTWARE: self.self_service_software,
            ComponentRole.SELF_SERVICE_DATABASE: self.self_service_database,
            ComponentRole.BRIDGE: self.bridge,
            ComponentRole.WFE_DATABASE: self.wfe_database,
            ComponentRole.BRIDGE_COMMUNICATION: self.bridge_communication,
            ComponentRole.WORKFLOW_ENDPOINTS: self.workflow_endpoints,
        }
        return slots[role]

    @property
    def populated_slots(self) -> dict[ComponentRole, Component]:
        return {
            role: component
            for role in ComponentRole
            if (component := self.slot(role)) is not None
        }

    @property
    def summary(self) -> HealthSummary:
        return HealthSummary.from_components(self.components)


@dataclass(frozen=True)
class ValidationRecord:
    category: str
    check: str
    status: ValidationStatus
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "check": self.check,
            "status": self.status.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ValidationSummary:
    total: int
    passed: int
    failed: int
    warnings: int
    info: int

    @property
    def consistent(self) -> bool:
        return self.total == self.passed + self.failed + self.warnings + self.info

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pass": self.passed,
            "fail": self.failed,
            "warning": self.warnings,
            "info": self.info,
        }


@dataclass(frozen=True)
class Binding:
    protocol: str
    port: int
    host: str = ""


@dataclass(frozen=True)
class IisSite:
    name: str
    state: str = "Started"
    bindings: tuple[Binding, ...] = ()


@dataclass(frozen=True)
class ApplicationPool:
    name: str
    state: str = "Started"
    runtime_version: str = "v4.0"
    pipeline_mode: str = "Integrated"
    identity: str = "ApplicationPoolIdentity"


@dataclass(frozen=True)
class HostFacts:
    os_caption: str
    os_version: str
    cpu_cores: int | None = None
    total_memory_gb: float | None = None
    free_disk_gb: float | None = None
    dotnet_release: int | None = None
    iis_installed: bool = False
    iis_version: str | None = None


@dataclass(frozen=True)
class DatabaseProbeResult:
    reachable: bool
    detail: str


@dataclass(frozen=True)
class CertificateInfo:
    subject: str
    not_valid_after: datetime


__all__ = [
    "HealthStatus",
    "ComponentStatus",
    "ComponentRole",
    "ValidationStatus",
    "RunState",
    "Instance",
    "ProbeConfig",
    "ComponentMessage",
    "RawMessage",
    "message_text",
    "Component",
    "HealthSummary",
    "HealthCheckResult",
    "ValidationRecord",
    "ValidationSummary",
    "Binding",
    "IisSite",
    "ApplicationPool",
    "HostFacts",
    "DatabaseProbeResult",
    "CertificateInfo",
]
