"""Business unit and caller profile router aggregation."""
from adminhub.routers import business_units, me

ROUTERS = [business_units.router, me.router]
