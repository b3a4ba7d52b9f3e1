"""Shared fakes for Cloudflaere tests."""

from itertools import count
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pytest

from cloudflaere.models.errors import (
    AddressLookupError,
    DiscoveryError,
    ProviderError,
)
from cloudflaere.models.models import Record, Zone, ownership_marker

MARKER = ownership_marker("test-instance")


# =============================================================================
# Fake DNS Provider
# =============================================================================


class FakeProvider:
    """In-memory provider with call tracking and injectable failures."""

    def __init__(
        self,
        zones: Optional[List[Zone]] = None,
        records: Optional[Dict[str, List[Record]]] = None,
        failing_names: Optional[Set[str]] = None,
        failing_zones: Optional[Set[str]] = None,
        fail_list_zones: bool = False,
    ):
        self.zones = zones or []
        self.records: Dict[str, List[Record]] = {
            zone_id: list(recs) for zone_id, recs in (records or {}).items()
        }
        self.failing_names = failing_names or set()
        self.failing_zones = failing_zones or set()
        self.fail_list_zones = fail_list_zones
        self.create_calls: List[Tuple[str, str, str, str, str, bool]] = []
        self.update_calls: List[Tuple[str, str, str]] = []
        self.delete_calls: List[Tuple[str, str]] = []
        self.list_records_calls: List[str] = []
        self._ids = count(1)

    @property
    def mutations(self) -> int:
        return len(self.create_calls) + len(self.update_calls) + len(self.delete_calls)

    def reset_calls(self) -> None:
        self.create_calls.clear()
        self.update_calls.clear()
        self.delete_calls.clear()
        self.list_records_calls.clear()

    async def list_zones(self) -> List[Zone]:
        if self.fail_list_zones:
            raise ProviderError(503, "zones unavailable")
        return list(self.zones)

    async def list_records(
        self, zone_id: str, record_types: Optional[Iterable[str]] = None
    ) -> List[Record]:
        self.list_records_calls.append(zone_id)
        if zone_id in self.failing_zones:
            raise ProviderError(500, f"records unavailable for {zone_id}")
        types = set(record_types or ("A", "AAAA"))
        return [
            Record(**vars(r)) for r in self.records.get(zone_id, []) if r.type in types
        ]

    async def create_record(
        self,
        zone_id: str,
        record_type: str,
        name: str,
        address: str,
        comment: str,
        proxied: bool,
    ) -> Record:
        self.create_calls.append((zone_id, record_type, name, address, comment, proxied))
        if name in self.failing_names:
            raise ProviderError(400, f"cannot create {name}")
        record = Record(
            id=f"rec-{next(self._ids)}",
            type=record_type,
            name=name,
            address=address,
            comment=comment,
            proxied=proxied,
        )
        self.records.setdefault(zone_id, []).append(record)
        return record

    async def update_record_address(
        self, zone_id: str, record: Record, address: str
    ) -> None:
        self.update_calls.append((zone_id, record.id, address))
        if record.name in self.failing_names:
            raise ProviderError(400, f"cannot update {record.name}")
        for existing in self.records.get(zone_id, []):
            if existing.id == record.id:
                existing.address = address

    async def delete_record(self, zone_id: str, record_id: str) -> None:
        self.delete_calls.append((zone_id, record_id))
        for existing in self.records.get(zone_id, []):
            if existing.id == record_id and existing.name in self.failing_names:
                raise ProviderError(400, f"cannot delete {existing.name}")
        self.records[zone_id] = [r for r in self.records.get(zone_id, []) if r.id != record_id]


# =============================================================================
# Fake Sources
# =============================================================================


class FakeSource:
    """Route discovery returning a fixed set of hostnames."""

    def __init__(self, hostnames: Optional[Set[str]] = None, fail: bool = False):
        self._hostnames = set(hostnames or set())
        self.fail = fail
        self.calls = 0

    async def hostnames(self) -> Set[str]:
        self.calls += 1
        if self.fail:
            raise DiscoveryError("traefik unreachable")
        return set(self._hostnames)


class FakeAddressSource:
    """Address resolver returning fixed addresses."""

    def __init__(
        self, ipv4: str = "1.2.3.4", ipv6: str = "2001:db8::1", fail: bool = False
    ):
        self.ipv4 = ipv4
        self.ipv6 = ipv6
        self.fail = fail
        self.calls: List[Tuple[bool, bool]] = []

    async def resolve(self, ipv4: bool, ipv6: bool) -> Dict[str, str]:
        self.calls.append((ipv4, ipv6))
        if self.fail:
            raise AddressLookupError("lookup failed")
        addresses = {}
        if ipv4:
            addresses["A"] = self.ipv4
        if ipv6:
            addresses["AAAA"] = self.ipv6
        return addresses


# =============================================================================
# Helpers
# =============================================================================


def make_record(
    record_id: str,
    name: str,
    address: str,
    record_type: str = "A",
    comment: str = MARKER,
    proxied: bool = False,
) -> Record:
    """Create a Record for testing, owned by the test instance by default."""
    return Record(
        id=record_id,
        type=record_type,
        name=name,
        address=address,
        comment=comment,
        proxied=proxied,
    )


@pytest.fixture
def marker() -> str:
    return MARKER
