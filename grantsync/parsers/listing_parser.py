"""
Parser for the grants.gov XML extract index page.

The page lists every downloadable extract in a table:

    <tr><td><a class="usa-link" href="https://.../extracts/GrantsDBExtract20250913v2.zip">
        GrantsDBExtract20250913v2.zip</a></td><td>84 MB</td><td>Sep 13, 2025 04:38:55 AM EDT</td></tr>
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..errors import ListingParseError

logger = logging.getLogger(__name__)

FILE_ROW_RE = re.compile(
    r"<tr>\s*<td>\s*<a[^>]*href=\"[^\"]*extracts/([^\"]+\.zip)\"[^>]*>\s*([^<]+\.zip)\s*</a>\s*</td>"
    r"\s*<td>([^<]+)</td>\s*<td>([^<]+)</td>\s*</tr>",
    re.IGNORECASE,
)

# US zone abbreviations used on the page; anything else is treated as UTC.
TZ_OFFSETS = {
    "UTC": 0,
    "GMT": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
}

DATE_FORMATS = [
    "%b %d, %Y %I:%M:%S %p",  # Sep 13, 2025 04:38:55 AM
    "%B %d, %Y %I:%M:%S %p",
    "%b %d, %Y %H:%M:%S",
    "%b %d, %Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
]


@dataclass
class GrantFileInfo:
    """One extract archive listed on the index page."""

    file_name: str
    extracted_date: datetime  # timezone-aware
    file_size: str


def parse_extracted_date(value: str) -> Optional[datetime]:
    """
    Parse an extraction timestamp such as "Sep 13, 2025 04:38:55 AM EDT".

    Returns:
        Timezone-aware datetime, or None if the text is not a recognised date
    """
    text = " ".join(value.split())
    if not text:
        return None

    tz = timezone.utc
    parts = text.rsplit(" ", 1)
    if len(parts) == 2 and parts[1].upper() in TZ_OFFSETS:
        text = parts[0]
        tz = timezone(timedelta(hours=TZ_OFFSETS[parts[1].upper()]))

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=tz)
        except ValueError:
            continue
    return None


def parse_available_files(html: str) -> List[GrantFileInfo]:
    """
    Extract the listed extract files from the index page.

    Rows whose date cannot be parsed are skipped with a warning.

    Args:
        html: Index page HTML

    Returns:
        Files sorted by extracted date, newest first (stable for equal dates)
    """
    if html is None:
        raise ListingParseError("Failed to parse grants.gov files: no page content")

    files: List[GrantFileInfo] = []
    for match in FILE_ROW_RE.finditer(html):
        _href_name, file_name, file_size, date_text = match.groups()
        file_name = file_name.strip()

        extracted_date = parse_extracted_date(date_text)
        if extracted_date is None:
            logger.warning(f"Invalid date for file {file_name}: {date_text.strip()}")
            continue

        files.append(
            GrantFileInfo(
                file_name=file_name,
                extracted_date=extracted_date,
                file_size=file_size.strip(),
            )
        )
        logger.debug(f"Found file: {file_name} ({file_size.strip()}) - {extracted_date.isoformat()}")

    logger.info(f"Parsed {len(files)} extract files from listing")

    # sorted() is stable, so files listed with the same timestamp keep page order
    return sorted(files, key=lambda f: f.extracted_date, reverse=True)


def select_latest_unprocessed(files: List[GrantFileInfo], completed: set[str]) -> Optional[GrantFileInfo]:
    """
    Pick the newest file that has not been fully processed.

    Args:
        files: Listing, newest first
        completed: File names whose sync record is completed

    Returns:
        First file not in completed, or None
    """
    for file_info in files:
        if file_info.file_name not in completed:
            return file_info
    return None
