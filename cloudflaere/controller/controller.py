"""
Controller module for Cloudflaere.

This module is responsible for coordinating between the sources, the zone mapper,
the plan and the provider to converge the DNS records once per interval.
"""

import asyncio
import logging
import time
from typing import Dict, Optional, Set

from cloudflaere.controller.plan import Plan
from cloudflaere.controller.zones import ZoneMapper
from cloudflaere.models.errors import (
    AddressLookupError,
    DiscoveryError,
    ProviderError,
)
from cloudflaere.models.models import Changes, SyncSummary, Zone


class CycleStatus:
    """
    Outcome of recent cycles, read by the health check server.
    """

    def __init__(self, interval: float):
        self.interval = interval
        self.started_at = time.time()
        self.last_success: Optional[float] = None
        self.last_error: Optional[str] = None
        self.cycles = 0
        self.failed_cycles = 0
        self.totals = SyncSummary()

    def record_success(self, summary: SyncSummary) -> None:
        self.cycles += 1
        self.last_success = time.time()
        self.last_error = None
        self.totals.merge(summary)

    def record_failure(self, error: str) -> None:
        self.cycles += 1
        self.failed_cycles += 1
        self.last_error = error

    def is_healthy(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        window = self.interval * 3
        reference = (
            self.last_success if self.last_success is not None else self.started_at
        )
        return now - reference <= window


class Controller:
    """
    Controller that coordinates between the sources, the plan and the provider.
    """

    def __init__(
        self,
        source,
        provider,
        address_source=None,
        interval: float = 60.0,
        marker: str = "",
        proxied: bool = False,
        ddns_ipv4: bool = False,
        ddns_ipv6: bool = False,
        static_addresses: Optional[Dict[str, str]] = None,
        dry_run: bool = False,
        mapper: Optional[ZoneMapper] = None,
    ):
        """
        Initialize a Controller.

        Args:
            source: Route discovery, provides hostnames()
            provider: DNS provider client
            address_source: Public address resolver, provides resolve()
            interval: Seconds between cycles
            marker: Ownership marker written to and required on managed records
            proxied: Proxied flag for new records
            ddns_ipv4: Whether to look up the public IPv4 address
            ddns_ipv6: Whether to look up the public IPv6 address
            static_addresses: Record type -> fixed address for families without lookup
            dry_run: Whether to only log the changes
            mapper: Hostname to zone mapper
        """
        if not marker:
            raise ValueError("An ownership marker is required")

        self.source = source
        self.provider = provider
        self.address_source = address_source
        self.interval = interval
        self.marker = marker
        self.proxied = proxied
        self.ddns_ipv4 = ddns_ipv4
        self.ddns_ipv6 = ddns_ipv6
        self.static_addresses = {k: v for k, v in (static_addresses or {}).items() if v}
        self.dry_run = dry_run
        self.mapper = mapper or ZoneMapper()
        self.status = CycleStatus(interval)
        self.logger = logging.getLogger("cloudflaere.controller")
        self._stop = asyncio.Event()

    def stop(self) -> None:
        """
        Request a graceful shutdown. The zone in progress is finished first.
        """
        if not self._stop.is_set():
            self.logger.info("Shutdown requested, finishing current zone")
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def run_reconciliation_loop(self) -> None:
        """
        Runs the controller's reconciliation loop at the specified interval.
        """
        first_run = True
        while not self.stopping:
            if first_run:
                self.logger.info("Starting cloudflaere loop")
                first_run = False
            else:
                self.logger.info(f"Waiting {self.interval:g}s for next interval")
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
                    break
                except asyncio.TimeoutError:
                    pass

            try:
                await self.run_once()
            except Exception as e:
                self.status.record_failure(str(e))
                self.logger.error(f"Error in reconciliation loop: {e}", exc_info=True)

        self.logger.info("Reconciliation loop stopped")

    async def run_once(self) -> Optional[SyncSummary]:
        """
        Performs a single reconciliation run.

        Returns:
            Optional[SyncSummary]: Counters for the cycle, or None if it was abandoned
        """
        try:
            addresses = await self.resolve_addresses()
        except AddressLookupError as e:
            return self._abandon(f"Could not resolve public addresses: {e}")

        try:
            hostnames = await self.source.hostnames()
        except DiscoveryError as e:
            return self._abandon(f"Could not fetch domains from traefik: {e}")
        self.logger.info(f"{len(hostnames)} domains fetched from traefik")
        if not hostnames:
            self.logger.warning("No domains found in traefik")
            self.status.record_success(SyncSummary())
            return None

        try:
            zones = await self.provider.list_zones()
        except ProviderError as e:
            return self._abandon(f"Could not fetch zones from cloudflare: {e}")
        self.logger.info(f"{len(zones)} zones fetched from cloudflare")
        if not zones:
            self.logger.warning("No zones found in cloudflare")
            self.status.record_success(SyncSummary())
            return None

        buckets, unmapped = self.mapper.map(hostnames, zones)
        for error in unmapped:
            self.logger.warning(f"Domain not managed: {error}")

        summary = SyncSummary()
        for zone in sorted(zones, key=lambda z: z.name):
            if self.stopping:
                self.logger.info("Shutdown in progress, skipping remaining zones")
                break
            summary.merge(
                await self.reconcile_zone(zone, buckets.get(zone.id, set()), addresses)
            )

        log_level = (
            logging.INFO
            if (summary.creates or summary.updates or summary.deletes)
            else logging.DEBUG
        )
        self.logger.log(
            log_level,
            f"Reconciliation finished: {summary.creates} created, {summary.updates} updated, "
            f"{summary.deletes} deleted, {summary.noops} unchanged, {summary.skipped} skipped, "
            f"{summary.conflicts} conflicts, {summary.failures} failures",
        )
        self.status.record_success(summary)
        return summary

    async def resolve_addresses(self) -> Dict[str, str]:
        """
        Determine the target address for each enabled record type.

        Returns:
            Dict[str, str]: Record type -> address

        Raises:
            AddressLookupError: If a dynamic lookup fails
        """
        addresses: Dict[str, str] = {}
        if (self.ddns_ipv4 or self.ddns_ipv6) and self.address_source is not None:
            addresses.update(
                await self.address_source.resolve(self.ddns_ipv4, self.ddns_ipv6)
            )
        for record_type, address in self.static_addresses.items():
            addresses.setdefault(record_type, address)
        if not addresses:
            self.logger.debug("No target addresses configured, only cleanup will run")
        return addresses

    async def reconcile_zone(
        self, zone: Zone, hostnames: Set[str], addresses: Dict[str, str]
    ) -> SyncSummary:
        """
        Fetch the records of a zone once, plan and apply the changes.

        Args:
            zone: Zone to reconcile
            hostnames: Hostnames that should exist in the zone
            addresses: Record type -> target address

        Returns:
            SyncSummary: Counters for this zone
        """
        summary = SyncSummary()
        try:
            records = await self.provider.list_records(zone.id)
        except ProviderError as e:
            self.logger.error(
                f"Could not fetch records from cloudflare for zone {zone.name} ({len(hostnames)} domains): {e}"
            )
            summary.failures += 1
            return summary
        self.logger.debug(f"{len(records)} records fetched for zone {zone.name}")

        changes = Plan(hostnames, addresses, records, self.marker).calculate_changes()
        summary.add_plan(changes)

        if not changes.has_changes():
            self.logger.debug(f"No changes to apply for zone {zone.name}")
            return summary

        if self.dry_run:
            self.logger.info(
                f"Dry run mode, not applying changes for zone {zone.name}: "
                f"{len(changes.create)} creates, {len(changes.update)} updates, {len(changes.delete)} deletes"
            )
            return summary

        await self.apply_changes(zone, changes, summary)
        return summary

    async def apply_changes(
        self, zone: Zone, changes: Changes, summary: SyncSummary
    ) -> None:
        """
        Applies the changes of a zone. A failing operation does not stop the others.

        Args:
            zone: Zone the changes belong to
            changes: Changes to apply
            summary: Counters to update
        """
        for desired in changes.create:
            try:
                await self.provider.create_record(
                    zone.id,
                    desired.record_type,
                    desired.name,
                    desired.address,
                    self.marker,
                    self.proxied,
                )
                summary.creates += 1
            except ProviderError as e:
                summary.failures += 1
                self.logger.error(
                    f"Could not add {desired.record_type} record for {desired.name} in zone {zone.name}: {e}"
                )

        for update in changes.update:
            record = update.record
            try:
                await self.provider.update_record_address(
                    zone.id, record, update.address
                )
                summary.updates += 1
            except ProviderError as e:
                summary.failures += 1
                self.logger.error(
                    f"Could not update {record.type} record {record.id} for {record.name} in zone {zone.name}: {e}"
                )

        for record in changes.delete:
            try:
                await self.provider.delete_record(zone.id, record.id)
                summary.deletes += 1
            except ProviderError as e:
                summary.failures += 1
                self.logger.error(
                    f"Could not delete {record.type} record {record.id} for {record.name} in zone {zone.name}: {e}"
                )

    def _abandon(self, message: str) -> None:
        self.logger.error(message)
        self.status.record_failure(message)
        return None
