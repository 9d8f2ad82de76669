"""
Ingress Inventory Sources

This module supplies the current set of routable hostnames:
- KubernetesIngressSource lists networking.k8s.io/v1 Ingress objects through
  the cluster API server
- StaticInventorySource serves a fixed host list from configuration

The listing is fetched on every call; nothing is cached.
"""

import asyncio
import logging
import os
import ssl
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from .matcher import HostRule

logger = logging.getLogger(__name__)

INGRESS_API_PATH = "/apis/networking.k8s.io/v1"
LIST_PAGE_SIZE = 500


class InventoryError(Exception):
    """The inventory source could not produce a host listing"""


class InventorySource(ABC):
    """Capability to list the hostnames currently exposed by the cluster"""

    @abstractmethod
    async def list_hostnames(self) -> List[HostRule]:
        """Return the current host rules.

        Raises:
            InventoryError: If the listing cannot be retrieved
        """

    async def close(self) -> None:
        """Release any resources held by the source"""


class StaticInventorySource(InventorySource):
    """Inventory backed by a fixed host list"""

    def __init__(self, hosts: Iterable[str]):
        self.rules = [HostRule(host=host) for host in hosts]

    async def list_hostnames(self) -> List[HostRule]:
        return list(self.rules)


class KubernetesIngressSource(InventorySource):
    """Lists ingress hosts from the Kubernetes API server"""

    def __init__(
        self,
        api_server: str,
        token_file: Optional[str] = None,
        ca_file: Optional[str] = None,
        namespace: str = "",
        request_timeout: float = 5.0,
    ):
        self.api_server = api_server.rstrip("/")
        self.token_file = token_file
        self.ca_file = ca_file
        self.namespace = namespace
        self.request_timeout = request_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._ssl_context: Optional[ssl.SSLContext] = None

    @classmethod
    def from_cluster_environment(
        cls,
        token_file: str,
        ca_file: str,
        namespace: str = "",
        request_timeout: float = 5.0,
        api_server: Optional[str] = None,
        environ=None,
    ) -> "KubernetesIngressSource":
        """Build a source from the in-cluster service account.

        Raises:
            InventoryError: If the service host or credentials are missing
        """
        environ = os.environ if environ is None else environ

        if api_server is None:
            host = environ.get("KUBERNETES_SERVICE_HOST")
            port = environ.get("KUBERNETES_SERVICE_PORT", "443")
            if not host:
                raise InventoryError(
                    "Not running in a cluster: KUBERNETES_SERVICE_HOST is not set"
                )
            if ":" in host:
                host = f"[{host}]"
            api_server = f"https://{host}:{port}"

        if not Path(token_file).is_file():
            raise InventoryError(f"Service account token not found: {token_file}")

        if api_server.startswith("https://") and not Path(ca_file).is_file():
            raise InventoryError(f"Cluster CA bundle not found: {ca_file}")

        return cls(
            api_server=api_server,
            token_file=token_file,
            ca_file=ca_file,
            namespace=namespace,
            request_timeout=request_timeout,
        )

    @property
    def ingress_url(self) -> str:
        if self.namespace:
            return (
                f"{self.api_server}{INGRESS_API_PATH}"
                f"/namespaces/{self.namespace}/ingresses"
            )
        return f"{self.api_server}{INGRESS_API_PATH}/ingresses"

    def _get_ssl(self):
        if not self.api_server.startswith("https://"):
            return None
        if self._ssl_context is None:
            self._ssl_context = ssl.create_default_context(cafile=self.ca_file)
        return self._ssl_context

    def _read_token(self) -> Optional[str]:
        # Projected tokens are rotated by the kubelet; read on every request.
        if not self.token_file:
            return None
        return Path(self.token_file).read_text(encoding="utf-8").strip()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    async def list_hostnames(self) -> List[HostRule]:
        try:
            headers = {"Accept": "application/json"}
            token = self._read_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"

            session = await self._get_session()
            rules: List[HostRule] = []
            params = {"limit": str(LIST_PAGE_SIZE)}

            while True:
                async with session.get(
                    self.ingress_url, headers=headers, params=params, ssl=self._get_ssl()
                ) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise InventoryError(
                            f"Ingress list failed with HTTP {resp.status}: {body[:200]}"
                        )
                    payload = await resp.json(content_type=None)

                rules.extend(extract_host_rules(payload))

                continue_token = (payload.get("metadata") or {}).get("continue")
                if not continue_token:
                    break
                params = {"limit": str(LIST_PAGE_SIZE), "continue": continue_token}

        except InventoryError:
            raise
        except asyncio.TimeoutError:
            raise InventoryError(
                f"Ingress list timed out after {self.request_timeout}s"
            )
        except (aiohttp.ClientError, OSError, ValueError) as e:
            raise InventoryError(f"Ingress list failed: {type(e).__name__}: {e}") from e

        logger.debug(f"Listed {len(rules)} ingress host rules")
        return rules

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


def extract_host_rules(payload: Dict[str, Any]) -> List[HostRule]:
    """Extract host rules from an IngressList payload.

    Rules without a host (default backends) are skipped.

    Raises:
        ValueError: If the payload is not an IngressList-shaped object
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
        raise ValueError("Unexpected ingress list payload")

    rules = []
    for item in payload["items"]:
        if not isinstance(item, dict):
            continue
        metadata = item.get("metadata") or {}
        spec = item.get("spec") or {}
        for rule in spec.get("rules") or []:
            host = rule.get("host")
            if host:
                rules.append(
                    HostRule(
                        host=host,
                        namespace=metadata.get("namespace"),
                        ingress=metadata.get("name"),
                    )
                )
    return rules
