"""
Scan Orchestrator
Dispatches simulated yield scans to agent instances

Flow:
1. Flip the agent(s) to `scanning` synchronously
2. Schedule one asyncio task per agent that waits out the simulated latency
3. On completion, maybe synthesize an Opportunity and write the outcome back
   to the agent registry, catalog and activity log

Each task only writes its own agent record. The shared writes (opportunity id
allocation, activity append) are serialized inside Catalog / ActivityLog.
"""

import asyncio
import logging
import random
from dataclasses import replace
from datetime import datetime
from typing import List, Set

from infrastructure.config import FeatureFlags, ScanConfig
from infrastructure.errors import (
    NoAvailableAgentsError,
    NotEnabledError,
    NotFoundError,
    ScanTaskError,
    error_tracker,
)
from services.activity_log import ActivityLog, ActivityType, OpportunityFoundDetails, ParallelScanDetails
from services.agent_registry import AgentInstance, AgentPerformance, AgentRegistry, AgentStatus
from services.catalog import Catalog, Network, Opportunity, Protocol, risk_level_for_apy
from sentry_config import capture_scan_breadcrumb, capture_scan_failure

logger = logging.getLogger("ScanOrchestrator")

SCANNING_TASK = "Scanning for yield opportunities"
PARALLEL_SCANNING_TASK = "Parallel scanning for yield opportunities"
WAITING_TASK = "Waiting for next scan"
FAILED_TASK = "Scan failed - see logs"


class LatencyProvider:
    """Simulated scan latency in seconds. Swap in a fixed provider for tests."""

    def __init__(self, scan: ScanConfig, rng: random.Random = None):
        self.scan = scan
        self.rng = rng or random.Random()

    def single(self) -> float:
        return self.scan.single_scan_latency

    def parallel(self) -> float:
        return self.rng.uniform(self.scan.parallel_latency_min, self.scan.parallel_latency_max)


class ScanOrchestrator:
    """
    Fire-and-forget scan dispatcher.

    Task failures never reach the caller that dispatched them; they are
    recorded by moving the agent to `error`. Re-dispatching an agent that is
    already scanning is allowed and the later completion wins.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        catalog: Catalog,
        activity: ActivityLog,
        scan: ScanConfig = None,
        features: FeatureFlags = None,
        latency: LatencyProvider = None,
        rng: random.Random = None,
    ):
        self.registry = registry
        self.catalog = catalog
        self.activity = activity
        self.scan = scan or ScanConfig()
        self.features = features or FeatureFlags()
        self.rng = rng or random.Random()
        self.latency = latency or LatencyProvider(self.scan, self.rng)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # ==========================================
    # DISPATCH
    # ==========================================

    async def start_scan(self, agent_id: int) -> AgentInstance:
        """
        Start a single-agent scan.

        Raises:
            NotFoundError: unknown agent
        """
        instance = self.registry.update(agent_id, {
            "status": AgentStatus.SCANNING,
            "current_task": SCANNING_TASK,
        })
        delay = self.latency.single()
        self._spawn(self._run_scan(agent_id, delay, parallel=False), agent_id)

        logger.info(f"Scan dispatched to agent #{agent_id} ({instance.name}), completes in {delay:.1f}s")
        capture_scan_breadcrumb("scan_dispatched", agent_id, {"delay": delay})
        return instance

    async def parallel_scan(self, configuration_id: int) -> List[AgentInstance]:
        """
        Scan with every agent of a configuration that is idle right now.

        Raises:
            NotFoundError: unknown configuration
            NotEnabledError: parallelScanning is off for the configuration
            NoAvailableAgentsError: no idle agents
        """
        configuration = self.registry.get_configuration(configuration_id)
        if not configuration.parallel_scanning:
            raise NotEnabledError(
                "Parallel scanning",
                hint="Enable parallel scanning in agent configuration first",
            )

        idle = [
            a for a in self.registry.list_by_configuration(configuration_id)
            if a.status == AgentStatus.IDLE
        ]
        if not idle:
            raise NoAvailableAgentsError(configuration_id)

        dispatched = [
            self.registry.update(agent.id, {
                "status": AgentStatus.SCANNING,
                "current_task": PARALLEL_SCANNING_TASK,
            })
            for agent in idle
        ]

        self.activity.append(
            ActivityType.AGENT,
            f"Started parallel scanning with {len(dispatched)} agents",
            ParallelScanDetails(agent_ids=[a.id for a in dispatched], configuration_id=configuration_id),
        )

        for agent in dispatched:
            self._spawn(self._run_scan(agent.id, self.latency.parallel(), parallel=True), agent.id)

        logger.info(f"Parallel scan dispatched to {len(dispatched)} agents (configuration #{configuration_id})")
        return dispatched

    def _spawn(self, coro, agent_id: int):
        task = asyncio.get_running_loop().create_task(coro, name=f"scan-agent-{agent_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ==========================================
    # TASK BODY
    # ==========================================

    async def _run_scan(self, agent_id: int, delay: float, parallel: bool):
        try:
            await asyncio.sleep(delay)
            self._complete(agent_id, parallel)
        except asyncio.CancelledError:
            logger.info(f"Scan task for agent #{agent_id} cancelled")
            raise
        except Exception as e:
            logger.exception(f"Scan task failed for agent #{agent_id}")
            error_tracker.track(ScanTaskError(agent_id, str(e)))
            capture_scan_failure(e, agent_id)
            self._mark_failed(agent_id)

    def _complete(self, agent_id: int, parallel: bool):
        try:
            agent = self.registry.get(agent_id)
        except NotFoundError:
            logger.info(f"Agent #{agent_id} was deleted before its scan completed")
            return

        opportunity = None
        protocol = None
        if self.rng.random() < self.scan.discovery_probability and agent.assigned_protocol_id is not None:
            protocol = self.catalog.get_protocol(agent.assigned_protocol_id)
            network = self.catalog.get_network(agent.assigned_network_id)
            if protocol and network and self._network_allowed(agent, network):
                opportunity = self._synthesize(agent, protocol, network, parallel)

        performance = agent.performance
        if opportunity is None:
            self.registry.update(agent_id, {
                "status": AgentStatus.IDLE,
                "current_task": WAITING_TASK,
                "performance": replace(performance, success_rate=max(80.0, performance.success_rate - 0.5)),
            })
            logger.info(f"Agent #{agent_id} scan finished, nothing found")
            return

        self.registry.update(agent_id, {
            "status": AgentStatus.IDLE,
            "current_task": WAITING_TASK,
            "performance": AgentPerformance(
                success_rate=min(100.0, performance.success_rate + 1),
                opportunities_found=performance.opportunities_found + 1,
                last_found=datetime.now(),
            ),
        })

        suffix = " (parallel scan)" if parallel else ""
        self.activity.append(
            ActivityType.OPPORTUNITY,
            f"Agent {agent.name} found new yield opportunity on {protocol.name}{suffix}",
            OpportunityFoundDetails(opportunity_id=opportunity.id, agent_id=agent_id, parallel_scan=parallel),
        )
        capture_scan_breadcrumb("opportunity_found", agent_id, {"opportunity_id": opportunity.id})

    def _network_allowed(self, agent: AgentInstance, network: Network) -> bool:
        if not self.features.is_enabled("filter_scans_by_configuration_networks"):
            return True
        configuration = self.registry.get_configuration(agent.configuration_id)
        allowed = configuration.allows_network(network.name, network.short_name)
        if not allowed:
            logger.info(f"Agent #{agent.id} discovery on {network.name} dropped, not in configuration networks")
        return allowed

    def _synthesize(self, agent: AgentInstance, protocol: Protocol, network: Network, parallel: bool) -> Opportunity:
        apy = self.rng.uniform(self.scan.apy_min, self.scan.apy_max)
        details = f"{protocol.name} yield opportunity found by agent {agent.name}"
        if parallel:
            details += " during parallel scan"

        return self.catalog.add_opportunity(
            protocol_id=protocol.id,
            network_id=network.id,
            asset=self.rng.choice(self.scan.assets),
            apy=apy,
            risk_level=risk_level_for_apy(apy),
            tvl=self.rng.uniform(self.scan.tvl_min, self.scan.tvl_max),
            details=details,
            url=protocol.website or "",
        )

    def _mark_failed(self, agent_id: int):
        try:
            self.registry.update(agent_id, {"status": AgentStatus.ERROR, "current_task": FAILED_TASK})
        except NotFoundError:
            logger.warning(f"Agent #{agent_id} vanished while recording scan failure")

    # ==========================================
    # LIFECYCLE
    # ==========================================

    async def drain(self):
        """Wait for every in-flight scan task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self):
        """Cancel in-flight scans (application shutdown)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Scan orchestrator stopped ({len(tasks)} tasks cancelled)")
