"""Service layer — reconciliation, enrichment, reporting, and batch runs.

Services may import from domain, infrastructure, and config.
They must never import from commands or output.
"""
