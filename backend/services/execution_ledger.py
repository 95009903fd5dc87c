"""
Execution Ledger - append-only StrategyExecution records
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ExecutionDetails:
    """What a successful execution deposited into"""
    protocol_id: int
    network_id: int
    asset: str
    apy: float
    amount: float

    def to_dict(self) -> Dict:
        return {
            "protocolId": self.protocol_id,
            "networkId": self.network_id,
            "asset": self.asset,
            "apy": self.apy,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class NoEligibleOpportunity:
    target_protocols: tuple
    target_networks: tuple

    def to_dict(self) -> Dict:
        return {
            "reason": "no_eligible_opportunity",
            "targetProtocols": list(self.target_protocols),
            "targetNetworks": list(self.target_networks),
        }


@dataclass(frozen=True)
class StrategyExecution:
    id: int
    strategy_id: int
    status: ExecutionStatus
    details: object
    transaction_hash: Optional[str] = None
    gas_used: Optional[int] = None
    gas_fee: Optional[float] = None
    opportunity_id: Optional[int] = None
    error_message: Optional[str] = None
    executed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "strategyId": self.strategy_id,
            "status": self.status.value,
            "transactionHash": self.transaction_hash,
            "gasUsed": self.gas_used,
            "gasFee": self.gas_fee,
            "opportunityId": self.opportunity_id,
            "details": self.details.to_dict(),
            "errorMessage": self.error_message,
            "executedAt": self.executed_at.isoformat(),
        }

    def summary(self) -> Dict:
        """Compact form kept on YieldStrategy.executionResults"""
        return {
            "status": self.status.value,
            "opportunityId": self.opportunity_id,
            "transactionHash": self.transaction_hash,
            "executedAt": self.executed_at.isoformat(),
        }


class ExecutionLedger:
    def __init__(self):
        self._entries: List[StrategyExecution] = []
        self._lock = threading.Lock()

    def append(self, execution: StrategyExecution) -> StrategyExecution:
        with self._lock:
            self._entries.append(execution)
        return execution

    def remove(self, execution_id: int):
        """Undo an append whose strategy update could not be committed."""
        with self._lock:
            self._entries = [e for e in self._entries if e.id != execution_id]

    def list(self, strategy_id: int = None) -> List[StrategyExecution]:
        with self._lock:
            return [e for e in self._entries if strategy_id is None or e.strategy_id == strategy_id]
