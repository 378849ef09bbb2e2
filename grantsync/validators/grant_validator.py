"""
Pydantic validator for grants.gov opportunity records.

Validates the fields pulled out of one opportunity element of the XML extract
before it is filtered and upserted.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# grants.gov caps most text columns well below this; keep rows insertable.
MAX_SHORT_TEXT = 255


class GrantData(BaseModel):
    """One funding opportunity parsed from the extract."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    # Required fields
    opportunity_id: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1)

    # Identifiers
    opportunity_number: Optional[str] = None
    agency_code: Optional[str] = None
    agency_name: Optional[str] = None
    cfda_number: Optional[str] = None

    # Dates
    posting_date: Optional[date] = None
    close_date: Optional[date] = None

    # Text
    description: Optional[str] = None
    eligibility_criteria: Optional[str] = None
    eligible_applicants: List[str] = Field(default_factory=list)  # grants.gov applicant-type codes

    # Award amounts (whole dollars)
    award_ceiling: Optional[int] = None
    award_floor: Optional[int] = None
    estimated_funding: Optional[int] = None

    category: Optional[str] = None
    funding_instrument: Optional[str] = None

    @field_validator(
        "opportunity_number",
        "agency_code",
        "agency_name",
        "cfda_number",
        "description",
        "eligibility_criteria",
        "category",
        "funding_instrument",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        """Empty strings from the XML become None."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("opportunity_number", "agency_name", "cfda_number", "category", "funding_instrument")
    @classmethod
    def truncate_short_text(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_SHORT_TEXT:
            return v[:MAX_SHORT_TEXT]
        return v

    @property
    def eligible_applicants_text(self) -> Optional[str]:
        """Codes as stored in the grants table (comma separated)."""
        if not self.eligible_applicants:
            return None
        return ",".join(self.eligible_applicants)
