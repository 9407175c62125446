"""Component declaration for the Authority Engine service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.steward_shared.config import StewardSettings
from packages.steward_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_authority_engine")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.authority_engine")}),
        public_api_roots=frozenset(
            {
                ModuleRoot("services.action.authority_engine.service"),
                ModuleRoot("services.action.authority_engine.domain"),
            }
        ),
    )
)


def build_component(
    *, settings: StewardSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    del components
    from services.action.authority_engine.service import (
        build_authority_engine_service,
    )

    return build_authority_engine_service(settings=settings)
