"""
Validators for the grants sync job.

- grant_validator: pydantic model for parsed grants.gov opportunities
"""

from .grant_validator import GrantData

__all__ = ["GrantData"]
