"""Unit tests for PublicIPSource."""

import httpx
import pytest

from cloudflaere.models.errors import AddressLookupError
from cloudflaere.source.public_ip import (
    ADDRESS_FIELD,
    IPV4_LOOKUP_URL,
    IPV6_LOOKUP_URL,
    PublicIPSource,
)


def make_source(responses) -> PublicIPSource:
    def handler(request: httpx.Request) -> httpx.Response:
        return responses[str(request.url)]

    return PublicIPSource(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestResolve:
    async def test_resolves_both_families(self) -> None:
        source = make_source(
            {
                IPV4_LOOKUP_URL: httpx.Response(200, json={ADDRESS_FIELD: "203.0.113.7"}),
                IPV6_LOOKUP_URL: httpx.Response(
                    200, json={ADDRESS_FIELD: "2001:0db8:0000:0000:0000:0000:0000:0001"}
                ),
            }
        )

        assert await source.resolve(True, True) == {"A": "203.0.113.7", "AAAA": "2001:db8::1"}

    async def test_only_requested_families_are_queried(self) -> None:
        source = make_source(
            {IPV4_LOOKUP_URL: httpx.Response(200, json={ADDRESS_FIELD: "203.0.113.7"})}
        )

        assert await source.resolve(True, False) == {"A": "203.0.113.7"}
        assert await source.resolve(False, False) == {}

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500),
            httpx.Response(200, content=b"not json"),
            httpx.Response(200, json={"something": "else"}),
            httpx.Response(200, json={ADDRESS_FIELD: "not-an-ip"}),
            httpx.Response(200, json={ADDRESS_FIELD: "2001:db8::1"}),
        ],
    )
    async def test_bad_responses_raise_lookup_error(
        self, response: httpx.Response
    ) -> None:
        source = make_source({IPV4_LOOKUP_URL: response})

        with pytest.raises(AddressLookupError):
            await source.resolve(True, False)

    async def test_network_error_raises_lookup_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        source = PublicIPSource(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(AddressLookupError):
            await source.resolve(False, True)
