"""
Data models for Cloudflaere.
"""

import ipaddress
from dataclasses import dataclass, field
from typing import List, Optional

from cloudflaere.models.errors import AuthorizationError, ConflictError

ADDRESS_RECORD_TYPES = ("A", "AAAA")


@dataclass(frozen=True)
class Zone:
    """
    A DNS zone managed by the provider.
    """

    name: str
    id: str


@dataclass
class Record:
    """
    A DNS record as seen in the provider.
    """

    id: str
    type: str
    name: str
    address: str
    comment: str = ""
    proxied: bool = False
    ttl: int = 1

    def has_marker(self, marker: str) -> bool:
        """
        Check whether the record comment carries the ownership marker.

        Args:
            marker: Ownership marker

        Returns:
            bool: True if the marker is a substring of the comment
        """
        return bool(marker) and marker in (self.comment or "")


@dataclass(frozen=True)
class DesiredRecord:
    """
    Represents an address record that should exist in a zone.
    """

    name: str
    record_type: str
    address: str

    @property
    def id(self) -> str:
        """
        Generate a unique identifier for this desired record.

        Returns:
            str: Unique identifier
        """
        return f"{self.name}:{self.record_type}"


@dataclass
class RecordUpdate:
    record: Record
    address: str


@dataclass
class Changes:
    """
    Represents the decisions made for a single zone.
    """

    create: List[DesiredRecord] = field(default_factory=list)
    update: List[RecordUpdate] = field(default_factory=list)
    delete: List[Record] = field(default_factory=list)
    unchanged: List[Record] = field(default_factory=list)
    skipped: List[AuthorizationError] = field(default_factory=list)
    conflicts: List[ConflictError] = field(default_factory=list)

    def has_changes(self) -> bool:
        """
        Check if there are any changes to be applied.

        Returns:
            bool: True if there are changes, False otherwise
        """
        return bool(self.create or self.update or self.delete)


@dataclass
class SyncSummary:
    """
    Counters for a single reconciliation cycle.
    """

    creates: int = 0
    updates: int = 0
    deletes: int = 0
    noops: int = 0
    skipped: int = 0
    conflicts: int = 0
    failures: int = 0

    def add_plan(self, changes: Changes) -> None:
        self.noops += len(changes.unchanged)
        self.skipped += len(changes.skipped)
        self.conflicts += len(changes.conflicts)

    def merge(self, other: "SyncSummary") -> None:
        self.creates += other.creates
        self.updates += other.updates
        self.deletes += other.deletes
        self.noops += other.noops
        self.skipped += other.skipped
        self.conflicts += other.conflicts
        self.failures += other.failures


def ownership_marker(instance: str) -> str:
    """
    Build the comment marker that tags records owned by an instance.

    Args:
        instance: Instance identity

    Returns:
        str: Ownership marker
    """
    return f"##cloudflaere:{instance}##"


def canonical_address(address: str) -> Optional[str]:
    """
    Normalise a textual IP address for comparison.

    IPv6 addresses are fully exploded so that equivalent spellings compare
    equal. Unparseable input yields None.

    Args:
        address: Textual IP address

    Returns:
        Optional[str]: Exploded address, or None if it cannot be parsed
    """
    try:
        return ipaddress.ip_address((address or "").strip()).exploded
    except ValueError:
        return None


def record_type_for(address: str) -> str:
    """
    Return the address record type for an IP address.

    Raises:
        ValueError: If the address cannot be parsed
    """
    ip = ipaddress.ip_address(address)
    return "AAAA" if ip.version == 6 else "A"
