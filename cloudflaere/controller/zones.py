"""
Zone mapping module for Cloudflaere.

This module is responsible for grouping discovered hostnames by the provider zone
they belong to, using the public suffix list to find each hostname's root domain.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

import tldextract

from cloudflaere.models.errors import MappingError
from cloudflaere.models.models import Zone


class ZoneMapper:
    """
    Maps hostnames onto the zones that contain them.
    """

    def __init__(self, extractor: Optional[tldextract.TLDExtract] = None):
        """
        Initialize a ZoneMapper.

        Args:
            extractor: Public suffix extractor. Defaults to one that only uses the
                suffix list snapshot bundled with tldextract.
        """
        # ICANN suffixes only, so app.user.duckdns.org maps to duckdns.org
        self.extractor = extractor or tldextract.TLDExtract(
            suffix_list_urls=(), cache_dir=None
        )
        self.logger = logging.getLogger("cloudflaere.zones")

    def root_domain(self, hostname: str) -> str:
        """
        Compute the registrable root domain of a hostname.

        Args:
            hostname: Fully qualified hostname

        Returns:
            str: Root domain, lower case

        Raises:
            MappingError: If the hostname has no registrable root domain
        """
        name = (hostname or "").strip().rstrip(".").lower()
        if not name or any(not label for label in name.split(".")):
            raise MappingError(hostname, "not a valid domain name")

        extracted = self.extractor(name)
        if not extracted.suffix or not extracted.domain:
            raise MappingError(hostname, "no registrable root domain")

        return f"{extracted.domain}.{extracted.suffix}"

    def map(
        self, hostnames: Iterable[str], zones: Iterable[Zone]
    ) -> Tuple[Dict[str, Set[str]], List[MappingError]]:
        """
        Bucket hostnames by zone id.

        Args:
            hostnames: Discovered hostnames
            zones: Known provider zones

        Returns:
            Tuple of zone id -> hostnames, and the hostnames that were discarded
        """
        zone_ids = {zone.name.lower(): zone.id for zone in zones}
        buckets: Dict[str, Set[str]] = {}
        unmapped: List[MappingError] = []

        for hostname in sorted(set(hostnames)):
            try:
                root = self.root_domain(hostname)
            except MappingError as e:
                unmapped.append(e)
                continue

            zone_id = zone_ids.get(root)
            if zone_id is None:
                unmapped.append(
                    MappingError(hostname, f"root domain {root} is not a known zone")
                )
                continue

            self.logger.debug(f"Mapped {hostname} to zone {root} ({zone_id})")
            buckets.setdefault(zone_id, set()).add(hostname.strip().rstrip(".").lower())

        return buckets, unmapped
