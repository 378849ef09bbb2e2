"""
Base collector interface for the sync pipeline.

Fetch stages return raw page text or archive bytes; parsing lives in
grantsync.parsers so each stage can be exercised on its own.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests


@dataclass
class FetchResult:
    """Result from a fetch - raw content from the source."""

    url: str
    content: bytes
    content_type: Optional[str] = None  # Content-Type header, informational only
    status_code: int = 200

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def size(self) -> int:
        return len(self.content)


class BaseCollector(ABC):
    """
    Base class for HTTP collectors.

    Subclasses set source_name and use _get() for requests so that headers,
    timeouts and status handling are uniform.
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Canonical source name (e.g., 'grants_gov')."""
        ...

    def _get(self, url: str, headers: dict, timeout: float) -> FetchResult:
        """
        GET a URL and return its body.

        Raises:
            requests.RequestException: on network failure or non-2xx status
        """
        response = self.session.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
        return FetchResult(
            url=url,
            content=response.content,
            content_type=response.headers.get("content-type"),
            status_code=response.status_code,
        )

    def close(self) -> None:
        self.session.close()
