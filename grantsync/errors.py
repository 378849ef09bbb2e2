"""Exceptions raised by the grants sync stages.

Each stage wraps lower-level failures (requests, zipfile, ElementTree, pymysql)
in one of these so the top-level sync can report a readable message.
"""


class GrantSyncError(Exception):
    """Base class for all sync stage failures."""


class ListingFetchError(GrantSyncError):
    """The grants.gov extract index page could not be fetched."""


class ListingParseError(GrantSyncError):
    """The extract index page could not be parsed."""


class DownloadError(GrantSyncError):
    """An extract archive could not be downloaded."""


class InvalidArchiveError(GrantSyncError):
    """The downloaded body is not a ZIP archive or holds no usable XML."""


class XmlParseError(GrantSyncError):
    """The extract XML could not be parsed into opportunities."""


class DatabaseError(GrantSyncError):
    """A repository operation failed."""
