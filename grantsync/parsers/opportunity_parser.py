"""
Parser for the grants.gov XML extract.

The extract is one large document. Current extracts look like:

    <Grants xmlns="http://apply.grants.gov/system/OpportunityDetail-V1.0">
      <OpportunitySynopsisDetail_1_0>
        <OpportunityID>262148</OpportunityID>
        <OpportunityTitle>...</OpportunityTitle>
        <FundingInstrumentType>G</FundingInstrumentType>
        <EligibleApplicants>12</EligibleApplicants>
        <PostDate>09132025</PostDate>
        ...
      </OpportunitySynopsisDetail_1_0>
      <OpportunityForecastDetail_1_0>...</OpportunityForecastDetail_1_0>
    </Grants>

Older extracts used <Opportunities><Opportunity> and forecast items, and nested
<CFDANumbers><CFDANumber> / <EligibilityInfo><EligibilityDescription>. All of
these shapes are accepted; namespaces are ignored.
"""

import math
import re
import xml.etree.ElementTree as ET
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..errors import XmlParseError
from ..utils.logger import PipelineLogger
from ..validators.grant_validator import GrantData

# Element names that hold one opportunity each
RECORD_TAGS = {
    "OpportunitySynopsisDetail_1_0",
    "OpportunityForecastDetail_1_0",
    "OpportunityForecastItem",
    "Opportunity",
}

# Posted opportunities; these win over a forecast carrying the same OpportunityID
SYNOPSIS_TAGS = {"OpportunitySynopsisDetail_1_0", "Opportunity"}

DATE_FORMATS = ["%m%d%Y", "%Y-%m-%d", "%m/%d/%Y", "%Y-%m-%dT%H:%M:%S", "%b %d, %Y"]

AMOUNT_STRIP_RE = re.compile(r"[^0-9.\-]")


def _local_name(tag: str) -> str:
    """Tag name without its {namespace} prefix."""
    if "}" in tag:
        return tag.rsplit("}", 1)[1]
    return tag


def parse_amount(value: Optional[str]) -> Optional[int]:
    """
    Parse an award amount like "$1,500,000.50" into whole dollars.

    Returns:
        Rounded integer amount (half up), or None if empty or not a number
    """
    if not value:
        return None
    cleaned = AMOUNT_STRIP_RE.sub("", value)
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    if math.isnan(amount) or math.isinf(amount):
        return None
    return int(math.floor(amount + 0.5))


def parse_xml_date(value: Optional[str]) -> Optional[date]:
    """Parse a grants.gov date (MMDDYYYY, or ISO / US formats)."""
    if not value:
        return None
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


class GrantsXmlParser:
    """
    Convert the extract XML into GrantData records.

    Records missing an opportunity id or title, or failing validation, are
    skipped with a warning. A document that is not well-formed XML raises
    XmlParseError.
    """

    def __init__(self, logger: Optional[PipelineLogger] = None):
        self.logger = logger

    def _warn(self, message: str) -> None:
        if self.logger:
            self.logger.warning(message)

    def _collect_fields(self, record: ET.Element) -> Dict[str, List[str]]:
        """Map local tag name -> list of non-empty texts, over all descendants."""
        fields: Dict[str, List[str]] = {}
        for elem in record.iter():
            if elem is record:
                continue
            text = (elem.text or "").strip()
            if not text:
                continue
            fields.setdefault(_local_name(elem.tag), []).append(text)
        return fields

    @staticmethod
    def _first(fields: Dict[str, List[str]], *names: str) -> Optional[str]:
        for name in names:
            values = fields.get(name)
            if values:
                return values[0]
        return None

    @staticmethod
    def _joined(fields: Dict[str, List[str]], *names: str) -> Optional[str]:
        for name in names:
            values = fields.get(name)
            if values:
                # preserve order, drop repeats
                return ", ".join(dict.fromkeys(values))
        return None

    def _parse_date_field(self, fields: Dict[str, List[str]], name: str, opportunity_id: str) -> Optional[date]:
        raw = self._first(fields, name)
        parsed = parse_xml_date(raw)
        if raw and parsed is None:
            self._warn(f"Invalid {name} for {opportunity_id}: {raw}")
        return parsed

    def parse_record(self, record: ET.Element) -> Optional[GrantData]:
        """Parse one opportunity element, or None if it should be skipped."""
        fields = self._collect_fields(record)

        opportunity_id = self._first(fields, "OpportunityID")
        title = self._first(fields, "OpportunityTitle")
        if not opportunity_id or not title:
            self._warn("Skipping opportunity without required ID or title")
            return None

        try:
            return GrantData(
                opportunity_id=opportunity_id,
                opportunity_number=self._first(fields, "OpportunityNumber"),
                title=title,
                agency_code=self._first(fields, "AgencyCode"),
                agency_name=self._first(fields, "AgencyName"),
                cfda_number=self._joined(fields, "CFDANumber", "CFDANumbers"),
                posting_date=self._parse_date_field(fields, "PostDate", opportunity_id),
                close_date=self._parse_date_field(fields, "CloseDate", opportunity_id),
                description=self._first(fields, "Description", "Synopsis"),
                eligibility_criteria=self._first(
                    fields, "AdditionalInformationOnEligibility", "EligibilityDescription"
                ),
                eligible_applicants=list(dict.fromkeys(fields.get("EligibleApplicants", []))),
                award_ceiling=parse_amount(self._first(fields, "AwardCeiling")),
                award_floor=parse_amount(self._first(fields, "AwardFloor")),
                estimated_funding=parse_amount(self._first(fields, "EstimatedTotalProgramFunding")),
                category=self._first(fields, "CategoryExplanation") or self._joined(fields, "CategoryOfFundingActivity"),
                funding_instrument=self._joined(fields, "FundingInstrumentType"),
            )
        except ValidationError as e:
            self._warn(f"Error parsing opportunity {opportunity_id}: {e}")
            return None

    def parse(self, xml_content: str) -> List[GrantData]:
        """
        Parse the full extract document.

        Args:
            xml_content: Extract XML text

        Returns:
            Parsed opportunities in document order, one per opportunity id.
            A synopsis replaces a forecast with the same id, never the
            reverse; otherwise the later record wins.
        """
        try:
            root = ET.fromstring(xml_content)
        except ET.ParseError as e:
            raise XmlParseError(f"Failed to parse grants XML: {e}") from e

        records = [elem for elem in root.iter() if _local_name(elem.tag) in RECORD_TAGS]
        if self.logger:
            self.logger.info(f"Processing {len(records)} opportunities", root=_local_name(root.tag))

        grants: Dict[str, GrantData] = {}
        from_synopsis: Dict[str, bool] = {}
        duplicates = 0
        for record in records:
            grant = self.parse_record(record)
            if grant is None:
                continue

            is_synopsis = _local_name(record.tag) in SYNOPSIS_TAGS
            if grant.opportunity_id in grants:
                duplicates += 1
                if from_synopsis[grant.opportunity_id] and not is_synopsis:
                    continue
            grants[grant.opportunity_id] = grant
            from_synopsis[grant.opportunity_id] = is_synopsis

        if self.logger:
            if duplicates:
                self.logger.info(f"Merged {duplicates} duplicate opportunity records")
            self.logger.info(f"Parsed {len(grants)} grant opportunities from XML")
        return list(grants.values())
