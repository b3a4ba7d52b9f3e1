"""
Traefik source module for Cloudflaere.

This module is responsible for fetching the HTTP routers of a Traefik instance and
extracting the hostnames from their routing rules.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Set

import httpx

from cloudflaere.models.errors import DiscoveryError


class TraefikSource:
    """
    Source that reads hostnames from the Traefik API.
    """

    # Host(`a.example.com`) or Host(`a.example.com`, `b.example.com`)
    HOST_RULE_RE = re.compile(r"(?<![A-Za-z])Host\(([^)]*)\)")
    HOST_ARG_RE = re.compile(r"[`\"']([^`\"']+)[`\"']")

    def __init__(
        self,
        url: str,
        verify_tls: bool = True,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize a TraefikSource.

        Args:
            url: Base URL of the Traefik API (e.g. https://traefik.example.com)
            verify_tls: Whether to verify the Traefik TLS certificate
            timeout: Timeout in seconds for each request
            client: Preconfigured HTTP client
        """
        self.url = url.rstrip("/")
        self.logger = logging.getLogger("cloudflaere.source.traefik")
        self.client = client or httpx.AsyncClient(verify=verify_tls, timeout=timeout)

    async def version(self) -> Dict[str, Any]:
        """
        Returns the version information of the Traefik instance.

        Raises:
            DiscoveryError: If the endpoint is unreachable or the response is malformed
        """
        data = await self._get_json("/api/version")
        if not isinstance(data, dict):
            raise DiscoveryError(
                f"Unexpected version response from {self.url}: expected object, got {type(data).__name__}"
            )
        return data

    async def routers(self) -> List[Dict[str, Any]]:
        """
        Returns all HTTP routers, following Traefik's pagination.

        Raises:
            DiscoveryError: If the endpoint is unreachable or the response is malformed
        """
        routers: List[Dict[str, Any]] = []
        page: Optional[str] = "1"
        seen_pages: Set[str] = set()

        while page and page not in seen_pages:
            seen_pages.add(page)
            response = await self._get("/api/http/routers", params={"page": page})
            data = self._decode(response)
            if not isinstance(data, list):
                raise DiscoveryError(
                    f"Unexpected routers response from {self.url}: expected list, got {type(data).__name__}"
                )
            routers.extend(data)
            page = response.headers.get("X-Next-Page")

        return routers

    async def hostnames(self) -> Set[str]:
        """
        Returns the hostnames served by active HTTP routers.

        Returns:
            Set[str]: Lower-case hostnames

        Raises:
            DiscoveryError: If the routers cannot be fetched or a rule cannot be parsed
        """
        hostnames: Set[str] = set()
        for router in await self.routers():
            if not isinstance(router, dict):
                raise DiscoveryError(
                    f"Malformed router entry from {self.url}: {router!r}"
                )

            router_name = router.get("name") or router.get("service") or "unknown"
            if router.get("status") == "disabled":
                self.logger.debug(f"Router '{router_name}' is disabled, skipping")
                continue

            rule = router.get("rule")
            if rule is None:
                continue
            if not isinstance(rule, str):
                raise DiscoveryError(
                    f"Router '{router_name}' has a malformed rule: {rule!r}"
                )

            router_hosts = self.parse_rule(rule)
            self.logger.debug(f"Router '{router_name}' serves {sorted(router_hosts)}")
            hostnames.update(router_hosts)

        return hostnames

    @classmethod
    def parse_rule(cls, rule: str) -> Set[str]:
        """
        Extract hostnames from the Host matchers of a Traefik router rule.

        Args:
            rule: Router rule, e.g. Host(`a.example.com`) && PathPrefix(`/api`)

        Returns:
            Set[str]: Lower-case hostnames

        Raises:
            DiscoveryError: If a Host matcher has no quoted hostname
        """
        hostnames = set()
        for match in cls.HOST_RULE_RE.finditer(rule or ""):
            arguments = cls.HOST_ARG_RE.findall(match.group(1))
            if not arguments:
                raise DiscoveryError(f"Could not parse domains from rule: {rule}")
            for host in arguments:
                host = host.strip().rstrip(".").lower()
                if host:
                    hostnames.add(host)
        return hostnames

    async def close(self) -> None:
        await self.client.aclose()

    async def _get(
        self, path: str, params: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        try:
            response = await self.client.get(f"{self.url}{path}", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DiscoveryError(
                f"Could not fetch {path} from traefik: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Could not fetch {path} from traefik: {e}") from e
        return response

    async def _get_json(self, path: str) -> Any:
        return self._decode(await self._get(path))

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DiscoveryError(
                f"Could not decode response from {response.url}: {e}"
            ) from e
