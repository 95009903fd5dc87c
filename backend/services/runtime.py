"""
Runtime - wires the in-memory stores, orchestrator and engine together
One instance per application (app.state.runtime); tests build their own.
"""

import random
from dataclasses import dataclass

from infrastructure.config import YieldHunterConfig
from infrastructure.id_allocator import IdAllocator
from services.activity_log import ActivityLog
from services.agent_registry import AgentRegistry
from services.catalog import Catalog
from services.execution_ledger import ExecutionLedger
from services.strategy_store import StrategyStore


@dataclass
class Runtime:
    config: YieldHunterConfig
    ids: IdAllocator
    catalog: Catalog
    activity: ActivityLog
    registry: AgentRegistry
    strategies: StrategyStore
    ledger: ExecutionLedger
    orchestrator: "ScanOrchestrator"
    engine: "StrategyExecutionEngine"
    rng: random.Random

    @classmethod
    def build(cls, config: YieldHunterConfig, rng: random.Random = None, latency=None) -> "Runtime":
        from agents.scan_orchestrator import ScanOrchestrator
        from agents.strategy_executor import StrategyExecutionEngine

        rng = rng or random.Random()
        ids = IdAllocator()
        catalog = Catalog(ids)
        activity = ActivityLog(ids)
        registry = AgentRegistry(ids, catalog, activity)
        strategies = StrategyStore(ids, catalog, activity)
        ledger = ExecutionLedger()

        orchestrator = ScanOrchestrator(
            registry,
            catalog,
            activity,
            scan=config.scan,
            features=config.features,
            latency=latency,
            rng=rng,
        )
        engine = StrategyExecutionEngine(
            strategies,
            ledger,
            catalog,
            activity,
            ids,
            execution=config.execution,
            rng=rng,
        )

        return cls(
            config=config,
            ids=ids,
            catalog=catalog,
            activity=activity,
            registry=registry,
            strategies=strategies,
            ledger=ledger,
            orchestrator=orchestrator,
            engine=engine,
            rng=rng,
        )
