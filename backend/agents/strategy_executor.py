"""
Strategy Executor
Executes yield strategies on demand against the shared opportunity catalog

Flow:
1. Load the strategy
2. Collect opportunities on the strategy's target protocols AND networks
3. Rank by APY (ties go to the earliest opportunity id)
4. Simulate the deposit transaction and commit the execution record plus the
   strategy's cumulative counters as one unit
"""

import asyncio
import logging
import random
import weakref
from datetime import datetime
from typing import List

from infrastructure.config import ExecutionConfig
from infrastructure.id_allocator import IdAllocator
from services.activity_log import ActivityLog, ActivityType, TransactionDetails
from services.catalog import Catalog, Opportunity
from services.execution_ledger import (
    ExecutionDetails,
    ExecutionLedger,
    ExecutionStatus,
    NoEligibleOpportunity,
    StrategyExecution,
)
from services.strategy_store import StrategyStore, YieldStrategy
from sentry_config import capture_execution_breadcrumb

logger = logging.getLogger("StrategyExecutor")

NO_ELIGIBLE_MESSAGE = "No eligible opportunities found matching strategy criteria"


class StrategyExecutionEngine:
    """
    Executes yield strategies.

    Executions on the same strategy are serialized by a per-strategy
    asyncio.Lock held from selection to commit, so concurrent calls never lose
    an update to totalInvested/totalReturn. Different strategies run freely.
    """

    def __init__(
        self,
        store: StrategyStore,
        ledger: ExecutionLedger,
        catalog: Catalog,
        activity: ActivityLog,
        ids: IdAllocator,
        execution: ExecutionConfig = None,
        rng: random.Random = None,
    ):
        self.store = store
        self.ledger = ledger
        self.catalog = catalog
        self.activity = activity
        self.ids = ids
        self.execution = execution or ExecutionConfig()
        self.rng = rng or random.Random()
        # Entries disappear once no execution holds or awaits the lock
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, strategy_id: int) -> asyncio.Lock:
        lock = self._locks.get(strategy_id)
        if lock is None:
            lock = self._locks[strategy_id] = asyncio.Lock()
        return lock

    # ==========================================
    # SELECTION
    # ==========================================

    def eligible_opportunities(self, strategy: YieldStrategy) -> List[Opportunity]:
        """Opportunities on a target protocol and target network, best first"""
        eligible = [
            o for o in self.catalog.list_opportunities()
            if o.protocol_id in strategy.target_protocols and o.network_id in strategy.target_networks
        ]
        return sorted(eligible, key=lambda o: (-o.apy, o.id))

    # ==========================================
    # EXECUTION
    # ==========================================

    async def execute(self, strategy_id: int) -> StrategyExecution:
        """
        Execute a strategy once.

        Returns a `failed` execution (counters untouched) when nothing is
        eligible, otherwise a `success` execution.

        Raises:
            NotFoundError: unknown strategy
        """
        self.store.get(strategy_id)

        async with self._lock_for(strategy_id):
            # Re-read under the lock; a previous holder may have committed
            strategy = self.store.get(strategy_id)
            eligible = self.eligible_opportunities(strategy)

            if not eligible:
                return self._record_failure(strategy)

            best = eligible[0]
            if self.execution.confirmation_delay > 0:
                await asyncio.sleep(self.execution.confirmation_delay)

            return self._commit(strategy, best)

    def _record_failure(self, strategy: YieldStrategy) -> StrategyExecution:
        execution = StrategyExecution(
            id=self.ids.next("strategy_execution"),
            strategy_id=strategy.id,
            status=ExecutionStatus.FAILED,
            details=NoEligibleOpportunity(
                target_protocols=tuple(sorted(strategy.target_protocols)),
                target_networks=tuple(sorted(strategy.target_networks)),
            ),
            error_message=NO_ELIGIBLE_MESSAGE,
        )
        self.ledger.append(execution)
        logger.warning(f"Strategy #{strategy.id} ({strategy.name}): {NO_ELIGIBLE_MESSAGE}")
        return execution

    def _commit(self, strategy: YieldStrategy, best: Opportunity) -> StrategyExecution:
        amount = self.execution.investment_amount
        execution = StrategyExecution(
            id=self.ids.next("strategy_execution"),
            strategy_id=strategy.id,
            status=ExecutionStatus.SUCCESS,
            transaction_hash=self._transaction_hash(),
            gas_used=self.rng.randint(self.execution.gas_used_min, self.execution.gas_used_max),
            gas_fee=self.rng.uniform(self.execution.gas_fee_min, self.execution.gas_fee_max),
            opportunity_id=best.id,
            details=ExecutionDetails(
                protocol_id=best.protocol_id,
                network_id=best.network_id,
                asset=best.asset,
                apy=best.apy,
                amount=amount,
            ),
            executed_at=datetime.now(),
        )

        # Ledger first; counters move only once the record exists
        self.ledger.append(execution)
        try:
            self.store.record_execution(
                strategy.id,
                execution.id,
                execution.summary(),
                invested=amount,
                returned=amount * best.apy / 100 / 365,
                executed_at=execution.executed_at,
            )
        except Exception:
            self.ledger.remove(execution.id)
            raise

        protocol = self.catalog.get_protocol(best.protocol_id)
        network = self.catalog.get_network(best.network_id)
        protocol_name = protocol.name if protocol else "Unknown"
        network_name = network.name if network else "Unknown"

        self.activity.append(
            ActivityType.TRANSACTION,
            f"Strategy {strategy.name} deposited {amount} {best.asset} into {protocol_name} on {network_name}",
            TransactionDetails(
                strategy_id=strategy.id,
                execution_id=execution.id,
                opportunity_id=best.id,
                protocol_id=best.protocol_id,
                network_id=best.network_id,
                amount=amount,
            ),
            user_id=strategy.user_id,
        )

        logger.info(
            f"Strategy #{strategy.id} executed on opportunity #{best.id} "
            f"({best.asset} @ {best.apy:.2f}%), tx {execution.transaction_hash[:10]}..."
        )
        capture_execution_breadcrumb("strategy_executed", strategy.id, {"opportunity_id": best.id})
        return execution

    def _transaction_hash(self) -> str:
        return "0x" + format(self.rng.getrandbits(256), "064x")
