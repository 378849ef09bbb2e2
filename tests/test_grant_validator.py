"""Tests for the GrantData record validator."""

import pytest
from pydantic import ValidationError

from grantsync.validators.grant_validator import MAX_SHORT_TEXT, GrantData


class TestGrantData:
    def test_blank_strings_become_none(self):
        grant = GrantData(opportunity_id="1", title="Grant", agency_name="   ", category="")
        assert grant.agency_name is None
        assert grant.category is None

    @pytest.mark.parametrize("field", ["opportunity_number", "agency_name", "cfda_number", "category", "funding_instrument"])
    def test_short_columns_capped(self, field):
        grant = GrantData(opportunity_id="1", title="Grant", **{field: "x" * 600})
        assert len(getattr(grant, field)) == MAX_SHORT_TEXT

    def test_long_description_kept(self):
        grant = GrantData(opportunity_id="1", title="Grant", description="x" * 5000)
        assert len(grant.description) == 5000

    def test_applicants_text(self):
        assert GrantData(opportunity_id="1", title="Grant", eligible_applicants=["12", "25"]).eligible_applicants_text == "12,25"
        assert GrantData(opportunity_id="1", title="Grant").eligible_applicants_text is None

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            GrantData(opportunity_id="1", title="Grant", status="posted")

    def test_missing_title_rejected(self):
        with pytest.raises(ValidationError):
            GrantData(opportunity_id="1", title="")
