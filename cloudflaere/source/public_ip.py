"""
Public IP source module for Cloudflaere.

Looks up the public address of the host for dynamic DNS.
"""

import ipaddress
import logging
from typing import Dict, Optional

import httpx

from cloudflaere.models.errors import AddressLookupError

IPV4_LOOKUP_URL = "https://ipv4.wtfismyip.com/json"
IPV6_LOOKUP_URL = "https://ipv6.wtfismyip.com/json"
ADDRESS_FIELD = "YourFuckingIPAddress"


class PublicIPSource:
    """
    Resolves the host's public IPv4 and IPv6 addresses.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        ipv4_url: str = IPV4_LOOKUP_URL,
        ipv6_url: str = IPV6_LOOKUP_URL,
    ):
        self.ipv4_url = ipv4_url
        self.ipv6_url = ipv6_url
        self.logger = logging.getLogger("cloudflaere.source.public_ip")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def resolve(self, ipv4: bool, ipv6: bool) -> Dict[str, str]:
        """
        Look up the requested address families.

        Args:
            ipv4: Whether to look up the IPv4 address
            ipv6: Whether to look up the IPv6 address

        Returns:
            Dict[str, str]: Record type ("A"/"AAAA") -> address

        Raises:
            AddressLookupError: If any requested lookup fails
        """
        addresses = {}
        if ipv4:
            addresses["A"] = await self.lookup(self.ipv4_url, version=4)
        if ipv6:
            addresses["AAAA"] = await self.lookup(self.ipv6_url, version=6)
        return addresses

    async def lookup(self, url: str, version: int) -> str:
        """
        Fetch one address from a lookup service.

        Args:
            url: Lookup URL returning JSON
            version: Expected IP version, 4 or 6

        Returns:
            str: The address in compressed form
        """
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise AddressLookupError(
                f"Could not fetch ipv{version} address: {e}"
            ) from e
        except ValueError as e:
            raise AddressLookupError(
                f"Could not decode ipv{version} lookup response: {e}"
            ) from e

        raw = payload.get(ADDRESS_FIELD) if isinstance(payload, dict) else None
        if not raw:
            raise AddressLookupError(
                f"ipv{version} lookup response has no {ADDRESS_FIELD}"
            )

        try:
            address = ipaddress.ip_address(str(raw).strip())
        except ValueError as e:
            raise AddressLookupError(
                f"Could not parse ipv{version} address {raw!r}"
            ) from e

        if address.version != version:
            raise AddressLookupError(
                f"Expected an ipv{version} address from {url}, got {address}"
            )

        self.logger.info(f"Address v{version} fetched: {address}")
        return str(address)

    async def close(self) -> None:
        await self.client.aclose()
