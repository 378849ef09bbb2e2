"""grants.gov XML extract ingestion for the nonprofit grants database."""

__version__ = "1.0.0"
