"""
Eligibility Service - Drop opportunities only government entities can apply for.

Simple approach: does the eligibility text say the grant is for governments only?
- Mentions nonprofits (e.g. "501(c)(3)") -> KEEP, even if governments are named too
  (unless the mention rules them out, e.g. "nonprofits are not eligible")
- Says government-only -> DROP
- Lists applicant types and every one is a government type -> DROP
- Otherwise -> KEEP

This is a keyword heuristic over free text and will misclassify some grants.
Phrase lists can be tuned in config/eligibility_keywords.yaml.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import yaml

from ..config import get_eligibility_config_path
from ..validators.grant_validator import GrantData

logger = logging.getLogger(__name__)

# grants.gov "EligibleApplicants" codes
APPLICANT_TYPES = {
    "00": "State governments",
    "01": "County governments",
    "02": "City or township governments",
    "04": "Special district governments",
    "05": "Independent school districts",
    "06": "Public and State controlled institutions of higher education",
    "07": "Native American tribal governments (Federally recognized)",
    "08": "Public housing authorities/Indian housing authorities",
    "11": "Native American tribal organizations (other than Federally recognized tribal governments)",
    "12": "Nonprofits having a 501(c)(3) status with the IRS, other than institutions of higher education",
    "13": "Nonprofits that do not have a 501(c)(3) status with the IRS, other than institutions of higher education",
    "20": "Private institutions of higher education",
    "21": "Individuals",
    "22": "For profit organizations other than small businesses",
    "23": "Small businesses",
    "25": "Others (see text field entitled \"Additional Information on Eligibility\" for clarification)",
    "99": "Unrestricted (i.e., open to any type of entity above), subject to any clarification in text field entitled \"Additional Information on Eligibility\"",
}

DEFAULT_GOVERNMENT_CODES = {"00", "01", "02", "04", "05", "06", "07", "08"}

DEFAULT_NONPROFIT_PHRASES = [
    "501(c)(3)",
    "501c3",
    "501 (c)(3)",
    "nonprofit",
    "non-profit",
    "not-for-profit",
    "not for profit",
    "unrestricted",
]

DEFAULT_GOVERNMENT_ONLY_PHRASES = [
    "government entities only",
    "governmental entities only",
    "only government entities",
    "only governmental entities",
    "limited to government",
    "limited to state",
    "limited to federal",
    "restricted to government",
    "restricted to state",
    "only state and local government",
    "only state governments",
    "state governments only",
    "federal agencies only",
    "only federal agencies",
    "eligible applicants are limited to state",
]

# Wording that mentions nonprofits only to rule them out; removed before the
# nonprofit phrases are matched.
DEFAULT_NONPROFIT_NEGATION_PHRASES = [
    "nonprofits are not eligible",
    "nonprofit organizations are not eligible",
    "non-profits are not eligible",
    "non-profit organizations are not eligible",
    "nonprofits are ineligible",
    "nonprofits may not apply",
    "not open to nonprofit",
    "not open to non-profit",
    "excluding nonprofit",
    "excludes nonprofit",
]


@dataclass
class EligibilityResult:
    """Result of an eligibility check."""

    eligible: bool
    reason: Optional[str]


def _lower_all(phrases: Iterable[str]) -> List[str]:
    return [p.lower() for p in phrases if p]


class EligibilityService:
    """
    Decide whether a nonprofit can apply for an opportunity.

    Example:
        service = EligibilityService()
        result = service.check(grant)
        if not result.eligible:
            print(result.reason)
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize with optional phrase overrides from eligibility_keywords.yaml."""
        if config_path is None:
            config_path = get_eligibility_config_path()

        self._load_config(config_path)

    def _load_config(self, config_path: Path) -> None:
        """Load phrase lists from YAML, falling back to defaults."""
        try:
            with open(config_path) as f:
                config = yaml.safe_load(f) or {}

            eligibility = config.get("eligibility", {})
            self.nonprofit_phrases = _lower_all(eligibility.get("nonprofit_phrases", DEFAULT_NONPROFIT_PHRASES))
            self.government_only_phrases = _lower_all(
                eligibility.get("government_only_phrases", DEFAULT_GOVERNMENT_ONLY_PHRASES)
            )
            self.negation_phrases = _lower_all(
                eligibility.get("nonprofit_negation_phrases", DEFAULT_NONPROFIT_NEGATION_PHRASES)
            )
            self.government_codes = {
                str(code).zfill(2) for code in eligibility.get("government_codes", DEFAULT_GOVERNMENT_CODES)
            }

            logger.debug(
                f"Loaded eligibility config: {len(self.nonprofit_phrases)} nonprofit phrases, "
                f"{len(self.government_only_phrases)} government-only phrases"
            )

        except (OSError, yaml.YAMLError, AttributeError, TypeError) as e:
            logger.warning(f"Failed to load eligibility config, using defaults: {e}")
            self.nonprofit_phrases = _lower_all(DEFAULT_NONPROFIT_PHRASES)
            self.government_only_phrases = _lower_all(DEFAULT_GOVERNMENT_ONLY_PHRASES)
            self.negation_phrases = _lower_all(DEFAULT_NONPROFIT_NEGATION_PHRASES)
            self.government_codes = set(DEFAULT_GOVERNMENT_CODES)

    def check_text(self, text: Optional[str], applicant_codes: Iterable[str] = ()) -> EligibilityResult:
        """
        Check eligibility from raw text and applicant codes.

        Args:
            text: Eligibility free text (any case)
            applicant_codes: grants.gov EligibleApplicants codes

        Returns:
            EligibilityResult
        """
        codes = [str(c).zfill(2) for c in applicant_codes]
        lowered = " ".join([APPLICANT_TYPES.get(c, "") for c in codes] + [text or ""]).lower()

        # 1. Nonprofit-inclusive wording always wins, unless it is a negation
        inclusive = lowered
        for phrase in self.negation_phrases:
            inclusive = inclusive.replace(phrase, " ")
        for phrase in self.nonprofit_phrases:
            if phrase in inclusive:
                return EligibilityResult(eligible=True, reason=f"Nonprofit applicants included ('{phrase}')")

        # 2. Explicit government-only wording
        for phrase in self.government_only_phrases:
            if phrase in lowered:
                return EligibilityResult(eligible=False, reason=f"Government entities only ('{phrase}')")

        # 3. Every listed applicant type is a government type
        if codes and all(c in self.government_codes for c in codes):
            return EligibilityResult(
                eligible=False,
                reason=f"Only government applicant types listed ({', '.join(codes)})",
            )

        return EligibilityResult(eligible=True, reason=None)

    def check(self, grant: GrantData) -> EligibilityResult:
        """Check one parsed opportunity."""
        return self.check_text(grant.eligibility_criteria, grant.eligible_applicants)

    def filter(self, grants: Iterable[GrantData]) -> Tuple[List[GrantData], List[GrantData]]:
        """
        Split opportunities into (kept, excluded).
        """
        kept: List[GrantData] = []
        excluded: List[GrantData] = []
        for grant in grants:
            result = self.check(grant)
            if result.eligible:
                kept.append(grant)
            else:
                logger.debug(f"Excluding {grant.opportunity_id}: {result.reason}")
                excluded.append(grant)
        return kept, excluded


# Singleton instance
_service_instance: Optional[EligibilityService] = None


def get_eligibility_service() -> EligibilityService:
    """Get or create the singleton service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = EligibilityService()
    return _service_instance
