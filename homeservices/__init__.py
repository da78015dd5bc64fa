"""
Package marker for the home-services marketplace backend.
Request lifecycle and wallet ledger logic live under `homeservices.api.services`.
Shared settings, logging, and schema helpers live under `homeservices.common`.
"""
