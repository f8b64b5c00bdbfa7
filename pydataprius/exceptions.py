"""Exceptions raised by the Dataprius client and backup engine."""


class DatapriusError(Exception):
    """Base exception for all pydataprius errors."""

    pass


class DatapriusConfigError(DatapriusError):
    """Configuration is missing or invalid."""

    pass


class DatapriusAPIError(DatapriusError):
    """An API request failed."""

    pass


class DatapriusAuthenticationError(DatapriusAPIError):
    """Credential exchange failed or the bearer token was rejected."""

    pass


class DatapriusPermissionError(DatapriusAPIError):
    """Access to the resource is forbidden."""

    pass


class DatapriusNotFoundError(DatapriusAPIError):
    """The requested resource does not exist."""

    pass


class DatapriusRateLimitError(DatapriusAPIError):
    """Too many requests."""

    pass


class DatapriusNetworkError(DatapriusAPIError):
    """The request could not reach the server."""

    pass


class DatapriusInvalidResponseError(DatapriusAPIError):
    """The server returned a body that could not be understood."""

    pass


class DatapriusResolutionError(DatapriusError):
    """A remote path does not resolve to a folder."""

    pass


class DatapriusListError(DatapriusError):
    """Listing the files or subfolders of a folder failed."""

    def __init__(self, message: str, folder_id: str = "", page: int = 0):
        super().__init__(message)
        self.folder_id = folder_id
        self.page = page


class DatapriusPaginationError(DatapriusListError):
    """A listing did not terminate within the allowed number of pages."""

    pass


class DatapriusDownloadError(DatapriusError):
    """A single file could not be downloaded or written to disk."""

    pass
