"""Leave and overtime approval router aggregation."""
from adminhub.routers import leave, overtime

ROUTERS = [leave.router, overtime.router]
