"""Component manifests and the process-local registry that holds them.

Every service and substrate declares one manifest at import time. The
registry lets startup code discover which schemas to provision and which
migrations to run without importing component internals.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from threading import RLock
from typing import Final, FrozenSet, Literal, NewType

ComponentId = NewType("ComponentId", str)
ModuleRoot = NewType("ModuleRoot", str)

Layer = Literal[0, 1]
System = Literal["state", "action"]

_COMPONENT_ID_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9_]{1,62}$")
_MODULE_ROOT_RE: Final[re.Pattern[str]] = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)*$"
)


class ManifestError(ValueError):
    """Raised for malformed or conflicting manifest declarations."""


@dataclass(frozen=True, slots=True)
class ComponentManifest:
    """Fields every component declares."""

    id: ComponentId
    layer: Layer
    system: System
    module_roots: FrozenSet[ModuleRoot]

    def __post_init__(self) -> None:
        validate_component_id(self.id)
        if not self.module_roots:
            raise ManifestError("module_roots must not be empty")
        for root in self.module_roots:
            if not _MODULE_ROOT_RE.fullmatch(root):
                raise ManifestError(f"invalid module root: {root!r}")


@dataclass(frozen=True, slots=True)
class ResourceManifest(ComponentManifest):
    """Layer-0 infrastructure such as the SQL substrate."""

    kind: Literal["substrate"] = "substrate"


@dataclass(frozen=True, slots=True)
class ServiceManifest(ComponentManifest):
    """Layer-1 service with a public API and an owned schema."""

    public_api_roots: FrozenSet[ModuleRoot] = frozenset()
    owns_schema: bool = True

    @property
    def schema_name(self) -> str:
        return component_id_to_schema_name(self.id)


class ManifestRegistry:
    """Thread-safe map of component id to manifest."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._components: dict[ComponentId, ComponentManifest] = {}

    def register_component(self, manifest: ComponentManifest) -> None:
        """Register ``manifest``; re-registering an identical one is a no-op."""
        with self._lock:
            existing = self._components.get(manifest.id)
            if existing is not None and existing != manifest:
                raise ManifestError(f"conflicting manifest for {manifest.id}")
            self._components[manifest.id] = manifest

    def get_component(self, component_id: ComponentId) -> ComponentManifest:
        with self._lock:
            try:
                return self._components[component_id]
            except KeyError:
                raise ManifestError(f"unknown component: {component_id}") from None

    def list_services(self) -> tuple[ServiceManifest, ...]:
        with self._lock:
            return tuple(
                sorted(
                    (
                        item
                        for item in self._components.values()
                        if isinstance(item, ServiceManifest)
                    ),
                    key=lambda item: item.id,
                )
            )


def validate_component_id(value: str) -> None:
    """Require lowercase snake_case ids usable as Postgres schema names."""
    if not _COMPONENT_ID_RE.fullmatch(value):
        raise ManifestError(f"invalid component id: {value!r}")


def component_id_to_schema_name(component_id: ComponentId) -> str:
    """Return the Postgres schema owned by ``component_id``."""
    validate_component_id(component_id)
    return str(component_id)


_DEFAULT_REGISTRY = ManifestRegistry()


def register_component(manifest: ComponentManifest) -> ComponentManifest:
    """Register in the default registry and return ``manifest`` unchanged."""
    _DEFAULT_REGISTRY.register_component(manifest)
    return manifest


def get_registry() -> ManifestRegistry:
    return _DEFAULT_REGISTRY
