"""
Error types for Cloudflaere.
"""

from typing import Optional


class CloudflaereError(Exception):
    """Base class for all Cloudflaere errors."""


class ConfigError(CloudflaereError):
    """Configuration is missing or invalid. Fatal at startup."""


class AddressLookupError(CloudflaereError):
    """The public address of the host could not be determined."""


class DiscoveryError(CloudflaereError):
    """The reverse proxy could not be queried for its routers."""


class ProviderError(CloudflaereError):
    """
    A DNS provider API call failed.
    """

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        status = status_code if status_code is not None else "N/A"
        super().__init__(f"{message} (status: {status})")


class MappingError(CloudflaereError):
    """A hostname could not be mapped to a known zone."""

    def __init__(self, hostname: str, reason: str):
        self.hostname = hostname
        self.reason = reason
        super().__init__(f"{hostname}: {reason}")


class ConflictError(CloudflaereError):
    """Several records exist for one hostname and record type."""

    def __init__(self, hostname: str, record_type: str, count: int):
        self.hostname = hostname
        self.record_type = record_type
        self.count = count
        super().__init__(
            f"{count} {record_type} records found for {hostname}, refusing to modify any of them"
        )


class AuthorizationError(CloudflaereError):
    """A record lacks the ownership marker and must not be touched."""

    def __init__(self, hostname: str, record_type: str, record_id: str):
        self.hostname = hostname
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            f"{record_type} record {record_id} for {hostname} is not managed by this instance"
        )
