"""
Ingress DNS Main Entry Point

This module wires configuration, logging, the inventory source, the fallback
resolver and the UDP server together and runs them until a shutdown signal.
"""

import argparse
import asyncio
import platform
import signal
import sys
from typing import Optional

import yaml

from ingress_dns.config import ConfigLoader, validate_config
from ingress_dns.config.schema import IngressDNSConfig
from ingress_dns.core import (
    DNSServer,
    FallbackResolver,
    InventoryError,
    InventorySource,
    KubernetesIngressSource,
    QueryProcessor,
    RequestDispatcher,
    StaticInventorySource,
)
from ingress_dns.dns_logging import get_logger, log_exception, setup_logging


def build_inventory_source(config: IngressDNSConfig, environ=None) -> InventorySource:
    """Create the configured inventory source.

    Raises:
        InventoryError: If in-cluster credentials are unavailable
    """
    inventory = config.inventory
    if inventory.source == "static":
        return StaticInventorySource(inventory.static_hosts)

    return KubernetesIngressSource.from_cluster_environment(
        token_file=inventory.token_file,
        ca_file=inventory.ca_file,
        namespace=inventory.namespace,
        request_timeout=inventory.request_timeout,
        api_server=inventory.api_server,
        environ=environ,
    )


class IngressDNSApp:
    """Ingress DNS Application"""

    def __init__(self, config: IngressDNSConfig):
        self.config = config
        self.inventory: Optional[InventorySource] = None
        self.dns_server: Optional[DNSServer] = None
        self._shutdown_event = asyncio.Event()
        self.logger = get_logger("ingress_dns_app")

    def initialize(self) -> None:
        """Build the resolution pipeline"""
        self.inventory = build_inventory_source(self.config)

        fallback = FallbackResolver(
            address=self.config.fallback.address,
            port=self.config.fallback.port,
            timeout=self.config.fallback.timeout,
        )
        processor = QueryProcessor(
            inventory=self.inventory,
            fallback=fallback,
            response_address=self.config.ingress.response_address,
            ttl=self.config.ingress.ttl,
            wildcard_mode=self.config.matching.wildcard_mode,
        )
        dispatcher = RequestDispatcher(
            processor, query_timeout=self.config.resolution.query_timeout
        )
        self.dns_server = DNSServer(self.config, dispatcher)

        self.logger.info(
            "Ingress DNS initialized",
            inventory_source=self.config.inventory.source,
            namespace=self.config.inventory.namespace or "*",
            response_address=self.config.ingress.response_address,
            fallback=fallback.endpoint,
            wildcard_mode=self.config.matching.wildcard_mode,
        )

    async def start(self) -> None:
        """Start serving and block until a shutdown signal"""
        if not self.dns_server:
            self.initialize()

        try:
            await self.dns_server.start()

            self.logger.info(
                "Ingress DNS started",
                bind_address=self.config.server.bind_address,
                dns_port=self.config.server.dns_port,
            )

            loop = asyncio.get_running_loop()
            for sig in [signal.SIGTERM, signal.SIGINT]:
                loop.add_signal_handler(sig, self._signal_handler)

            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the server and release the inventory client"""
        self.logger.info("Shutting down ingress DNS")

        if self.dns_server:
            await self.dns_server.stop()

        if self.inventory:
            await self.inventory.close()

        self.logger.info("Ingress DNS shutdown complete")

    def _signal_handler(self) -> None:
        self.logger.info("Received shutdown signal")
        self._shutdown_event.set()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="DNS responder for Kubernetes ingress hosts"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Configuration file path (YAML or JSON)"
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate configuration and exit",
    )
    return parser.parse_args(argv)


def load_configuration(config_path: Optional[str]) -> IngressDNSConfig:
    """Load and fully validate the configuration.

    Raises:
        FileNotFoundError, ValueError, yaml.YAMLError: On a missing or invalid
            configuration
    """
    config = ConfigLoader(config_path).load_config()
    validate_config(config)
    return config


async def main(argv=None) -> int:
    """Main function; returns the process exit status"""
    args = parse_args(argv)

    try:
        config = load_configuration(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging)
    logger = get_logger("ingress_dns")

    if args.check_config:
        logger.info("Configuration is valid")
        return 0

    app = IngressDNSApp(config)
    try:
        await app.start()
    except (InventoryError, OSError) as e:
        log_exception(logger, "Ingress DNS failed to start", e)
        return 1

    return 0


def _loop_factory():
    # uvloop is optional on platforms where it does not build
    if platform.system() == "Windows":
        return None
    try:
        import uvloop
    except ImportError:
        return None
    return uvloop.new_event_loop


def run() -> None:
    """Console script entry point"""
    try:
        with asyncio.Runner(loop_factory=_loop_factory()) as runner:
            sys.exit(runner.run(main()))
    except KeyboardInterrupt:
        print("\nIngress DNS interrupted")


if __name__ == "__main__":
    run()
