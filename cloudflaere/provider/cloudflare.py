"""
Cloudflare provider module for Cloudflaere.

This module is responsible for interfacing with the Cloudflare API to manage DNS records.
"""

import logging
from typing import Iterable, List, Optional

import cloudflare

from cloudflaere.models.errors import ProviderError
from cloudflaere.models.models import ADDRESS_RECORD_TYPES, Record, Zone


class CloudflareProvider:
    """
    Provider that interfaces with the Cloudflare API.
    """

    def __init__(
        self,
        zone_token: str,
        dns_token: Optional[str] = None,
        allowed_zones: Optional[List[str]] = None,
        timeout: float = 30.0,
        zone_client: Optional[cloudflare.AsyncCloudflare] = None,
        dns_client: Optional[cloudflare.AsyncCloudflare] = None,
    ):
        """
        Initialize a CloudflareProvider.

        Args:
            zone_token: API token allowed to read zones
            dns_token: API token allowed to edit DNS records, defaults to zone_token
            allowed_zones: Zone names to manage, empty for all zones
            timeout: Timeout in seconds for each API call
            zone_client: Preconfigured client for zone calls
            dns_client: Preconfigured client for DNS record calls
        """
        self.allowed_zones = {name.lower() for name in (allowed_zones or [])}
        self.logger = logging.getLogger("cloudflaere.provider.cloudflare")

        self.zone_client = zone_client or cloudflare.AsyncCloudflare(
            api_token=zone_token, timeout=timeout
        )
        if dns_client is not None:
            self.dns_client = dns_client
        elif dns_token and dns_token != zone_token:
            self.dns_client = cloudflare.AsyncCloudflare(
                api_token=dns_token, timeout=timeout
            )
        else:
            self.dns_client = self.zone_client

    async def list_zones(self) -> List[Zone]:
        """
        Returns the zones visible to the zone token, restricted to allowed_zones.

        Returns:
            List[Zone]: List of zones

        Raises:
            ProviderError: If the API call fails
        """
        self.logger.debug("Fetching zones from Cloudflare API...")
        zones = []
        try:
            async for zone in self.zone_client.zones.list(per_page=50):
                zone_name = getattr(zone, "name", None)
                zone_id = getattr(zone, "id", None)
                if not zone_name or not zone_id:
                    self.logger.warning(
                        f"Skipping zone object due to missing name or id: {zone}"
                    )
                    continue

                if self.allowed_zones and zone_name.lower() not in self.allowed_zones:
                    self.logger.debug(
                        f"Zone '{zone_name}' is not in allowed zones, skipping."
                    )
                    continue

                zones.append(Zone(name=zone_name, id=zone_id))
        except cloudflare.CloudflareError as e:
            raise self._provider_error("fetching zones", e) from e

        self.logger.debug(
            f"Found {len(zones)} managed zones: {[z.name for z in zones]}"
        )
        return zones

    async def list_records(
        self, zone_id: str, record_types: Optional[Iterable[str]] = None
    ) -> List[Record]:
        """
        Returns the address records of a zone.

        Args:
            zone_id: Zone ID
            record_types: Record types to include, defaults to A and AAAA

        Returns:
            List[Record]: List of records

        Raises:
            ProviderError: If the API call fails
        """
        records = []
        for record_type in record_types or ADDRESS_RECORD_TYPES:
            try:
                async for raw in self.dns_client.dns.records.list(
                    zone_id=zone_id, type=record_type, per_page=100
                ):
                    record = self._to_record(raw)
                    if record is None:
                        self.logger.warning(
                            f"Skipping record object due to missing id, type, name, or content: {raw}"
                        )
                        continue
                    # The API filter is only a hint for some record shapes
                    if record.type != record_type:
                        continue
                    records.append(record)
            except cloudflare.CloudflareError as e:
                raise self._provider_error(
                    f"fetching {record_type} records for zone {zone_id}", e
                ) from e
        return records

    async def create_record(
        self,
        zone_id: str,
        record_type: str,
        name: str,
        address: str,
        comment: str,
        proxied: bool,
    ) -> Record:
        """
        Creates a new DNS record.

        Args:
            zone_id: Zone ID
            record_type: A or AAAA
            name: Hostname
            address: Target address
            comment: Record comment, carries the ownership marker
            proxied: Whether Cloudflare proxies the record

        Returns:
            Record: The created record

        Raises:
            ProviderError: If the API call fails
        """
        self.logger.info(
            f"Creating DNS record: {record_type} {name} -> {address} (Proxied: {proxied})"
        )
        try:
            created = await self.dns_client.dns.records.create(
                zone_id=zone_id,
                type=record_type,
                name=name,
                content=address,
                comment=comment,
                proxied=proxied,
                ttl=1,
            )
        except cloudflare.CloudflareError as e:
            raise self._provider_error(
                f"creating {record_type} record for {name}", e
            ) from e

        return self._to_record(created) or Record(
            id=str(getattr(created, "id", "")),
            type=record_type,
            name=name,
            address=address,
            comment=comment,
            proxied=proxied,
        )

    async def update_record_address(
        self, zone_id: str, record: Record, address: str
    ) -> None:
        """
        Points an existing DNS record at a new address.

        Name, type, comment, proxied and TTL are sent back unchanged.

        Args:
            zone_id: Zone ID
            record: Record to update
            address: New address

        Raises:
            ProviderError: If the API call fails
        """
        self.logger.info(
            f"Updating DNS record: {record.type} {record.name} (ID: {record.id}) {record.address} -> {address}"
        )
        try:
            await self.dns_client.dns.records.edit(
                dns_record_id=record.id,
                zone_id=zone_id,
                type=record.type,
                name=record.name,
                content=address,
                comment=record.comment,
                proxied=record.proxied,
                ttl=record.ttl,
            )
        except cloudflare.CloudflareError as e:
            raise self._provider_error(
                f"updating {record.type} record {record.id} for {record.name}", e
            ) from e

    async def delete_record(self, zone_id: str, record_id: str) -> None:
        """
        Deletes a DNS record.

        Args:
            zone_id: Zone ID
            record_id: Record ID

        Raises:
            ProviderError: If the API call fails
        """
        self.logger.info(f"Deleting DNS record: {record_id} in zone {zone_id}")
        try:
            await self.dns_client.dns.records.delete(
                dns_record_id=record_id, zone_id=zone_id
            )
        except cloudflare.CloudflareError as e:
            raise self._provider_error(f"deleting record {record_id}", e) from e

    async def close(self) -> None:
        await self.zone_client.close()
        if self.dns_client is not self.zone_client:
            await self.dns_client.close()

    @staticmethod
    def _to_record(raw) -> Optional[Record]:
        """
        Convert an SDK record object into a Record.

        Returns:
            Optional[Record]: Record, or None if required attributes are missing
        """
        record_id = getattr(raw, "id", None)
        record_type = getattr(raw, "type", None)
        record_name = getattr(raw, "name", None)
        record_content = getattr(raw, "content", None)
        if not all([record_id, record_type, record_name, record_content]):
            return None

        ttl = getattr(raw, "ttl", None)
        return Record(
            id=str(record_id),
            type=str(record_type),
            name=str(record_name),
            address=str(record_content),
            comment=getattr(raw, "comment", None) or "",
            proxied=bool(getattr(raw, "proxied", False)),
            ttl=int(ttl) if ttl else 1,
        )

    def _provider_error(self, action: str, error: Exception) -> ProviderError:
        status_code = getattr(error, "status_code", None)
        message = getattr(error, "message", None) or str(error)
        return ProviderError(status_code, f"Cloudflare API error {action}: {message}")
