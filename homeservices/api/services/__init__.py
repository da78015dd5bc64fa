# This file marks the services package for the request lifecycle, wallet ledger, and directory modules.
# Routers depend on these service classes instead of raw SQL.
