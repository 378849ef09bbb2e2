"""
Parsers for grants.gov extract data.

This module contains parsers for:
- listing_parser: the XML extract index page (available ZIP files)
- opportunity_parser: the extract XML (funding opportunities)
"""

from .listing_parser import GrantFileInfo, parse_available_files, select_latest_unprocessed
from .opportunity_parser import GrantsXmlParser, parse_amount, parse_xml_date

__all__ = [
    "GrantFileInfo",
    "GrantsXmlParser",
    "parse_amount",
    "parse_available_files",
    "parse_xml_date",
    "select_latest_unprocessed",
]
