"""Material request router aggregation."""
from adminhub.routers import department_approvers, material_requests, mrs_coordinator

ROUTERS = [material_requests.router, mrs_coordinator.router, department_approvers.router]
