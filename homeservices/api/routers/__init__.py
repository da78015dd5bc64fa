# This file marks the routers package for API route modules.
# Route modules are grouped by the actor that calls them (requester, provider, admin).
