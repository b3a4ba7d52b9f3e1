"""
Main entry point for Cloudflaere.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from cloudflaere import __version__
from cloudflaere.config.config import Config
from cloudflaere.controller.controller import Controller
from cloudflaere.models.errors import ConfigError
from cloudflaere.provider.cloudflare import CloudflareProvider
from cloudflaere.source.public_ip import PublicIPSource
from cloudflaere.source.traefik import TraefikSource
from cloudflaere.utils.health import HealthCheckServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudflaere",
        description="Manage Cloudflare DNS records based on Traefik router rules",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=["run", "config"],
        help="'config' dumps the configuration to the log and exits",
    )
    parser.add_argument("--config", help="config file path")
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=None, help="output debug logs"
    )
    parser.add_argument("--interval", help="interval between checks (e.g. 1m, 30s)")
    parser.add_argument(
        "--instance", help="unique name of this instance (default: hostname)"
    )
    parser.add_argument(
        "--tr-url",
        dest="traefik_url",
        help="target traefik url (e.g. https://traefik.example.com)",
    )
    parser.add_argument(
        "--cf-proxied",
        dest="proxied",
        action="store_true",
        default=None,
        help="set new records to be proxied by cloudflare",
    )
    parser.add_argument(
        "--cf-zone", dest="zone_token", help="cloudflare zone read api token"
    )
    parser.add_argument(
        "--cf-dns", dest="dns_token", help="cloudflare dns edit api token"
    )
    parser.add_argument(
        "-4", "--ipv4", action="store_true", default=None, help="enable ipv4 ddns"
    )
    parser.add_argument(
        "-6", "--ipv6", action="store_true", default=None, help="enable ipv6 ddns"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        default=None,
        help="run a single reconciliation and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="log changes without applying them",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    return {
        "verbose": args.verbose,
        "interval": args.interval,
        "instance": args.instance,
        "traefik.url": args.traefik_url,
        "proxied": args.proxied,
        "cloudflare.zone": args.zone_token,
        "cloudflare.dns": args.dns_token,
        "ddns.ipv4": args.ipv4,
        "ddns.ipv6": args.ipv6,
        "once": args.once,
        "dry_run": args.dry_run,
    }


def setup_logging(config: Config) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if config.verbose:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)
    # Set httpx logger level to WARNING unless root is DEBUG
    httpx_log_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(httpx_log_level)


async def main(config: Config) -> None:
    """Build the components and run the reconciliation loop."""
    logger = logging.getLogger("cloudflaere")

    source = TraefikSource(
        config.traefik_url,
        verify_tls=config.traefik_verify_tls,
        timeout=config.parse_duration(config.traefik_timeout),
    )
    provider = CloudflareProvider(
        config.zone_token,
        config.dns_token,
        allowed_zones=config.cloudflare_zones,
        timeout=config.parse_duration(config.cloudflare_timeout),
    )
    address_source = PublicIPSource(timeout=config.parse_duration(config.ddns_timeout))
    controller = Controller(
        source,
        provider,
        address_source=address_source,
        interval=config.parse_duration(config.interval),
        marker=config.marker,
        proxied=config.proxied,
        ddns_ipv4=config.ddns_ipv4,
        ddns_ipv6=config.ddns_ipv6,
        static_addresses={"A": config.target_ipv4, "AAAA": config.target_ipv6},
        dry_run=config.dry_run,
    )
    logger.info(f"Managing records tagged {config.marker}")

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, controller.stop)
        except NotImplementedError:
            # Not available on every platform (e.g. Windows)
            pass

    health_server = None
    if config.health_enabled:
        health_server = HealthCheckServer(
            controller.status, host=config.health_host, port=config.health_port
        )
        health_server.start()

    try:
        if config.once:
            await controller.run_once()
        else:
            await controller.run_reconciliation_loop()
    finally:
        if health_server:
            health_server.stop()
        await source.close()
        await address_source.close()
        await provider.close()


def run(argv: Optional[List[str]] = None) -> int:
    """Console script entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = Config.load(args.config, overrides_from_args(args))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    logger = logging.getLogger("cloudflaere")

    if args.command == "config":
        logger.info(f"Configuration: {config.redacted()}")
        return 0

    try:
        config.validate_required()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info(f"Starting Cloudflaere v{__version__}")
    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        logger.info("Shutting down Cloudflaere")
    return 0


if __name__ == "__main__":
    sys.exit(run())
