"""Construction of the runtime object graph.

One ``TransportInvoker`` (and therefore one ``CircuitBreaker``) is built per
``TeamCityServices`` and handed to every pagination engine and to the
hierarchy traversal, so all TeamCity traffic shares one breaker.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from teamcity_mcp.config import ServerConfig
from teamcity_mcp.core.client import COLLECTIONS, TeamCityClient
from teamcity_mcp.core.hierarchy import HierarchyTraversal
from teamcity_mcp.core.pagination import PaginationEngine
from teamcity_mcp.core.resilience import CircuitBreaker, RetryPolicy, SleepFunc, TransportInvoker
from teamcity_mcp.core.resilience.models import Clock

logger = logging.getLogger(__name__)


@dataclass
class TeamCityServices:
    config: ServerConfig
    client: TeamCityClient
    invoker: TransportInvoker
    hierarchy: HierarchyTraversal
    engines: Dict[str, PaginationEngine] = field(default_factory=dict)

    @property
    def breaker(self) -> Optional[CircuitBreaker]:
        return self.invoker.breaker

    def engine(self, resource: str) -> PaginationEngine:
        try:
            return self.engines[resource]
        except KeyError:
            raise ValueError(f"Unknown collection resource: {resource}") from None

    async def aclose(self) -> None:
        await self.client.aclose()


def build_services(
    config: ServerConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Optional[SleepFunc] = None,
    clock: Optional[Clock] = None,
) -> TeamCityServices:
    """Wire client, invoker, breaker, engines and traversal from config.

    Args:
        config: Server configuration
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
        sleep: Optional async sleep for the invoker
        clock: Optional clock shared by breaker and invoker
    """
    client = TeamCityClient.from_settings(config.connection, transport=transport)

    breaker = None
    if config.circuit_breaker.enabled:
        breaker = CircuitBreaker.from_settings(config.circuit_breaker, clock=clock)
    else:
        logger.info("Circuit breaker disabled by configuration")

    invoker = TransportInvoker(
        RetryPolicy.from_settings(config.retry),
        breaker,
        sleep=sleep,
        clock=clock,
    )

    engines = {
        resource: PaginationEngine.for_collection(client, invoker, resource, config.pagination)
        for resource in COLLECTIONS
    }
    hierarchy = HierarchyTraversal.for_projects(client, invoker, config.hierarchy)

    return TeamCityServices(
        config=config,
        client=client,
        invoker=invoker,
        hierarchy=hierarchy,
        engines=engines,
    )
