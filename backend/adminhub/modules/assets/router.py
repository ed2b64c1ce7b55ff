"""Asset lifecycle and accounting router aggregation."""
from adminhub.routers import assets, depreciation, gl_accounts

ROUTERS = [assets.router, depreciation.router, gl_accounts.router]
