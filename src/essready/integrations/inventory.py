"""File-backed instance discovery and IIS inventory.

The inventory file is produced by the host collection scripts and holds three
lists: ``Instances``, ``Sites`` and ``ApplicationPools``. A bare JSON list is
accepted as an instance list with no IIS data.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from essready.domain.models import ApplicationPool, Binding, IisSite, Instance
from essready.infrastructure.errors import DiscoveryError
from essready.infrastructure.logging import get_logger

_logger = get_logger("essready.inventory")


def _text(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value).strip() or default


def _binding(data: Any) -> Binding | None:
    if not isinstance(data, Mapping):
        return None
    try:
        port = int(data.get("Port"))
    except (TypeError, ValueError):
        return None
    return Binding(
        protocol=_text(data, "Protocol", "http").lower(),
        port=port,
        host=_text(data, "Host"),
    )


def _site(data: Mapping[str, Any]) -> IisSite:
    raw_bindings = data.get("Bindings") or []
    bindings = tuple(
        binding for binding in (_binding(item) for item in raw_bindings) if binding is not None
    )
    return IisSite(name=_text(data, "Name"), state=_text(data, "State", "Unknown"), bindings=bindings)


def _application_pool(data: Mapping[str, Any]) -> ApplicationPool:
    return ApplicationPool(
        name=_text(data, "Name"),
        state=_text(data, "State", "Unknown"),
        runtime_version=_text(data, "RuntimeVersion"),
        pipeline_mode=_text(data, "PipelineMode", "Integrated"),
        identity=_text(data, "Identity", "ApplicationPoolIdentity"),
    )


class JsonInventory:
    """Serve discovery and IIS data from one JSON inventory file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._document: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._document is not None:
            return self._document
        if not self._path.exists():
            raise DiscoveryError(
                f"Inventory file not found: {self._path}",
                hint="Run the host collection script or pass --inventory",
                path=str(self._path),
            )
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8-sig"))
        except (OSError, json.JSONDecodeError) as exc:
            raise DiscoveryError(
                f"Inventory file {self._path} could not be read: {exc}", path=str(self._path)
            ) from exc

        if isinstance(raw, list):
            raw = {"Instances": raw}
        if not isinstance(raw, dict):
            raise DiscoveryError(
                f"Inventory file {self._path} must contain an object or a list",
                path=str(self._path),
            )
        self._document = raw
        return raw

    def _section(self, key: str) -> list[Mapping[str, Any]]:
        entries = self._load().get(key) or []
        if not isinstance(entries, list):
            raise DiscoveryError(f"Inventory section '{key}' must be a list", path=str(self._path))
        return [entry for entry in entries if isinstance(entry, Mapping)]

    def discover(self) -> Sequence[Instance]:
        instances: list[Instance] = []
        for entry in self._section("Instances"):
            try:
                instances.append(Instance.from_mapping(entry))
            except ValueError as exc:
                _logger.warning("inventory.instance.skipped", reason=str(exc), entry=dict(entry))
        _logger.info("inventory.instances.discovered", count=len(instances), path=str(self._path))
        return tuple(instances)

    def sites(self) -> Sequence[IisSite]:
        return tuple(_site(entry) for entry in self._section("Sites"))

    def application_pools(self) -> Sequence[ApplicationPool]:
        return tuple(_application_pool(entry) for entry in self._section("ApplicationPools"))


__all__ = ["JsonInventory"]
