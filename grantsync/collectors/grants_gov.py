"""
grants.gov XML extract collector.

Data flow:
1. Fetch the extract index page (HTML table of ZIP files)
2. Download one extract ZIP from the extract bucket
3. Pull the XML document out of the archive (in memory)

Parsing of the index page and of the XML lives in grantsync.parsers.
"""

import io
import zipfile
from typing import Optional

import requests

from ..config import get_download_base_url, get_listing_url
from ..constants import (
    DOWNLOAD_TIMEOUT_SECONDS,
    DOWNLOAD_USER_AGENT,
    LISTING_TIMEOUT_SECONDS,
    LISTING_USER_AGENT,
    ZIP_MAGIC,
)
from ..errors import DownloadError, InvalidArchiveError, ListingFetchError
from ..utils.logger import PipelineLogger
from .base import BaseCollector


def extract_xml_from_zip(content: bytes, logger: Optional[PipelineLogger] = None) -> str:
    """
    Return the XML document held in a ZIP archive.

    The local-file-header magic is checked before the archive is opened. The
    first non-directory entry ending in .xml is used (it need not be the
    first entry).

    Raises:
        InvalidArchiveError: not a ZIP, no XML entry, or content is not XML
    """
    if len(content) < 4 or not content.startswith(ZIP_MAGIC):
        if logger:
            logger.error("File does not appear to be a valid ZIP file", first_bytes=content[:100].hex())
        raise InvalidArchiveError("Downloaded file is not a valid ZIP archive")

    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            entries = archive.infolist()
            if logger:
                logger.debug("ZIP entries found", entries=[e.filename for e in entries])

            xml_entry = next(
                (e for e in entries if not e.is_dir() and e.filename.lower().endswith(".xml")),
                None,
            )
            if xml_entry is None:
                if logger:
                    logger.error("No XML file found in ZIP archive", entries=[e.filename for e in entries])
                raise InvalidArchiveError("No XML file found in ZIP archive")

            raw = archive.read(xml_entry)
    except zipfile.BadZipFile as e:
        raise InvalidArchiveError(f"Downloaded file is not a valid ZIP archive: {e}") from e

    xml_content = raw.decode("utf-8-sig", errors="replace")
    if "<" not in xml_content or ">" not in xml_content:
        if logger:
            logger.error("Extracted content does not appear to be valid XML", head=xml_content[:500])
        raise InvalidArchiveError("Extracted content is not valid XML")

    if logger:
        logger.info(f"Extracted {xml_entry.filename}", characters=len(xml_content))
    return xml_content


class GrantsGovCollector(BaseCollector):
    """
    Fetch the grants.gov extract listing and extract archives.
    """

    def __init__(
        self,
        logger: Optional[PipelineLogger] = None,
        listing_url: Optional[str] = None,
        download_base_url: Optional[str] = None,
        listing_timeout: float = LISTING_TIMEOUT_SECONDS,
        download_timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize grants.gov collector.

        Args:
            logger: Logger instance
            listing_url: Extract index page (default from config)
            download_base_url: Base URL for extract ZIPs (default from config)
            listing_timeout: Index page timeout in seconds (default 30)
            download_timeout: ZIP download timeout in seconds (default 300 - files are large)
            session: Optional requests session (tests inject a stub)
        """
        super().__init__(session=session)
        self.logger = logger
        self.listing_url = listing_url or get_listing_url()
        self.download_base_url = (download_base_url or get_download_base_url()).rstrip("/")
        self.listing_timeout = listing_timeout
        self.download_timeout = download_timeout

    @property
    def source_name(self) -> str:
        return "grants_gov"

    def download_url(self, file_name: str) -> str:
        return f"{self.download_base_url}/{file_name}"

    def fetch_listing(self) -> str:
        """
        Fetch the extract index page.

        Raises:
            ListingFetchError: network failure or non-2xx response
        """
        try:
            result = self._get(
                self.listing_url,
                headers={"User-Agent": LISTING_USER_AGENT},
                timeout=self.listing_timeout,
            )
        except requests.RequestException as e:
            if self.logger:
                self.logger.error("Error fetching grants page", exception=e, url=self.listing_url)
            raise ListingFetchError(f"Failed to fetch grants.gov page: {e}") from e
        return result.text

    def download_extract(self, file_name: str) -> bytes:
        """
        Download one extract ZIP.

        Raises:
            DownloadError: network failure or non-2xx response
        """
        url = self.download_url(file_name)
        if self.logger:
            self.logger.info("Downloading ZIP file", url=url)

        try:
            result = self._get(
                url,
                headers={"User-Agent": DOWNLOAD_USER_AGENT, "Accept": "application/zip, */*"},
                timeout=self.download_timeout,
            )
        except requests.RequestException as e:
            if self.logger:
                self.logger.error("Download failed", exception=e, file=file_name)
            raise DownloadError(f"Failed to download {file_name}: {e}") from e

        if self.logger:
            self.logger.info(
                "ZIP file downloaded",
                bytes=result.size,
                content_type=result.content_type,
            )
        return result.content

    def download_and_extract(self, file_name: str) -> str:
        """Download an extract ZIP and return its XML document."""
        content = self.download_extract(file_name)
        try:
            return extract_xml_from_zip(content, logger=self.logger)
        except InvalidArchiveError as e:
            raise InvalidArchiveError(f"Failed to download/extract {file_name}: {e}") from e
