"""Central router registry for module-oriented composition."""
from __future__ import annotations

from fastapi import FastAPI

from adminhub.modules.assets.router import ROUTERS as ASSETS_ROUTERS
from adminhub.modules.hr_workflows.router import ROUTERS as HR_WORKFLOWS_ROUTERS
from adminhub.modules.organization.router import ROUTERS as ORGANIZATION_ROUTERS
from adminhub.modules.procurement.router import ROUTERS as PROCUREMENT_ROUTERS

ALL_ROUTERS = (
    ORGANIZATION_ROUTERS
    + HR_WORKFLOWS_ROUTERS
    + PROCUREMENT_ROUTERS
    + ASSETS_ROUTERS
)


def include_all_routers(app: FastAPI) -> None:
    for router in ALL_ROUTERS:
        app.include_router(router)
