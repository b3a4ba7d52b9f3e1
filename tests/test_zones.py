"""Unit tests for ZoneMapper."""

import pytest

from cloudflaere.controller.zones import ZoneMapper
from cloudflaere.models.errors import MappingError
from cloudflaere.models.models import Zone

ZONES = [
    Zone(name="example.com", id="zone-com"),
    Zone(name="example.co.uk", id="zone-uk"),
]


@pytest.fixture(scope="module")
def mapper() -> ZoneMapper:
    return ZoneMapper()


class TestRootDomain:
    """Tests for public-suffix based root domain extraction."""

    @pytest.mark.parametrize(
        "hostname, root",
        [
            ("www.example.com", "example.com"),
            ("example.com", "example.com"),
            ("foo.bar.example.co.uk", "example.co.uk"),
            ("API.Example.COM", "example.com"),
            ("www.example.com.", "example.com"),
        ],
    )
    def test_root_domain(self, mapper: ZoneMapper, hostname: str, root: str) -> None:
        assert mapper.root_domain(hostname) == root

    def test_private_suffixes_are_not_honoured(self, mapper: ZoneMapper) -> None:
        assert mapper.root_domain("app.user.duckdns.org") == "duckdns.org"
        assert mapper.root_domain("blog.user.github.io") == "github.io"

    @pytest.mark.parametrize(
        "hostname", ["", "localhost", "foo..example.com", "1.2.3.4", "co.uk"]
    )
    def test_invalid_hostnames_raise(self, mapper: ZoneMapper, hostname: str) -> None:
        with pytest.raises(MappingError):
            mapper.root_domain(hostname)


class TestMap:
    """Tests for bucketing hostnames by zone id."""

    def test_hostnames_are_bucketed_by_zone(self, mapper: ZoneMapper) -> None:
        buckets, unmapped = mapper.map(
            {"www.example.com", "api.example.com", "sub.example.co.uk"}, ZONES
        )

        assert buckets == {
            "zone-com": {"www.example.com", "api.example.com"},
            "zone-uk": {"sub.example.co.uk"},
        }
        assert unmapped == []

    def test_unknown_root_domain_is_discarded(self, mapper: ZoneMapper) -> None:
        buckets, unmapped = mapper.map({"www.example.com", "www.other.org"}, ZONES)

        assert buckets == {"zone-com": {"www.example.com"}}
        assert len(unmapped) == 1
        assert unmapped[0].hostname == "www.other.org"
        assert "other.org" in unmapped[0].reason

    def test_unknown_tld_is_discarded_without_error(self, mapper: ZoneMapper) -> None:
        buckets, unmapped = mapper.map({"foo.unknown-tld"}, ZONES)

        assert buckets == {}
        assert [e.hostname for e in unmapped] == ["foo.unknown-tld"]

    def test_zone_names_match_case_insensitively(self, mapper: ZoneMapper) -> None:
        zones = [Zone(name="Example.COM", id="zone-com")]

        buckets, unmapped = mapper.map({"WWW.example.com"}, zones)

        assert buckets == {"zone-com": {"www.example.com"}}
        assert unmapped == []

    def test_subdomain_zone_is_not_used(self, mapper: ZoneMapper) -> None:
        # Zones are matched on the registrable domain only
        zones = [Zone(name="dev.example.com", id="zone-dev")]

        buckets, unmapped = mapper.map({"app.dev.example.com"}, zones)

        assert buckets == {}
        assert len(unmapped) == 1
