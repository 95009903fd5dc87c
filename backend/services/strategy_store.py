"""
Strategy Store - user-defined yield farming strategies
Configuration plus cumulative performance; the counters are written only by
the strategy execution engine through record_execution().
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from infrastructure.errors import NotFoundError, ValidationError
from infrastructure.id_allocator import IdAllocator
from services.activity_log import ActivityLog, ActivityType, StrategyDetails
from services.catalog import Catalog

logger = logging.getLogger("StrategyStore")


class StrategyStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class TriggerType(str, Enum):
    APY_BASED = "apy-based"
    TIME_BASED = "time-based"
    GAS_BASED = "gas-based"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class StrategyConditions:
    min_apy: float = 0.0
    max_risk: RiskLevel = RiskLevel.MEDIUM
    asset_types: tuple = ()

    def to_dict(self) -> Dict:
        return {"minApy": self.min_apy, "maxRisk": self.max_risk.value, "assetTypes": list(self.asset_types)}


@dataclass(frozen=True)
class StrategyActions:
    deposit_amount: str = "1.0 ETH"
    auto_compound: bool = True
    rebalance_period: str = "weekly"

    def to_dict(self) -> Dict:
        return {
            "depositAmount": self.deposit_amount,
            "autoCompound": self.auto_compound,
            "rebalancePeriod": self.rebalance_period,
        }


@dataclass
class YieldStrategy:
    id: int
    name: str
    trigger_type: TriggerType
    target_protocols: frozenset
    target_networks: frozenset
    conditions: StrategyConditions = field(default_factory=StrategyConditions)
    actions: StrategyActions = field(default_factory=StrategyActions)
    max_gas_fee: float = 50.0
    status: StrategyStatus = StrategyStatus.ACTIVE
    description: Optional[str] = None
    user_id: Optional[int] = None

    # Cumulative performance, non-decreasing
    total_executions: int = 0
    total_invested: float = 0.0
    total_return: float = 0.0
    last_executed_at: Optional[datetime] = None
    execution_results: Dict[int, Dict] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "triggerType": self.trigger_type.value,
            "targetProtocols": sorted(self.target_protocols),
            "targetNetworks": sorted(self.target_networks),
            "conditions": self.conditions.to_dict(),
            "actions": self.actions.to_dict(),
            "maxGasFee": self.max_gas_fee,
            "userId": self.user_id,
            "totalExecutions": self.total_executions,
            "totalInvested": self.total_invested,
            "totalReturn": self.total_return,
            "lastExecutedAt": self.last_executed_at.isoformat() if self.last_executed_at else None,
            "executionResults": {str(k): v for k, v in self.execution_results.items()},
            "createdAt": self.created_at.isoformat(),
        }


# Configuration fields a create/update may set. Cumulative counters are engine-only.
_CONFIG_FIELDS = {
    "name", "description", "status", "trigger_type", "target_protocols", "target_networks",
    "conditions", "actions", "max_gas_fee", "user_id",
}


def _enum_value(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field_name} '{value}'",
            {"fields": [{"field": field_name, "message": f"must be one of {allowed}"}]},
        )


def _coerce(
    fields: Dict[str, Any],
    conditions: StrategyConditions = None,
    actions: StrategyActions = None,
) -> Dict[str, Any]:
    """
    Normalize create/update fields. Partial conditions/actions dicts are
    merged over the given base records (defaults on create).
    """
    unknown = set(fields) - _CONFIG_FIELDS
    if unknown:
        raise ValidationError(
            "Only strategy configuration fields can be set",
            {"fields": [{"field": f, "message": "not writable"} for f in sorted(unknown)]},
        )

    out = dict(fields)
    if "status" in out:
        out["status"] = _enum_value(StrategyStatus, out["status"], "status")
    if "trigger_type" in out:
        out["trigger_type"] = _enum_value(TriggerType, out["trigger_type"], "triggerType")

    if isinstance(out.get("conditions"), dict):
        c = out["conditions"]
        base = conditions or StrategyConditions()
        try:
            min_apy = float(c.get("min_apy", base.min_apy))
        except (TypeError, ValueError):
            raise ValidationError(
                "Invalid minApy",
                {"fields": [{"field": "conditions.minApy", "message": "must be a number"}]},
            )
        out["conditions"] = StrategyConditions(
            min_apy=min_apy,
            max_risk=_enum_value(RiskLevel, c.get("max_risk", base.max_risk), "conditions.maxRisk"),
            asset_types=tuple(c.get("asset_types", base.asset_types)),
        )

    for key in ("target_protocols", "target_networks"):
        if key in out:
            out[key] = frozenset(int(x) for x in out[key])

    if isinstance(out.get("actions"), dict):
        a = out["actions"]
        base = actions or StrategyActions()
        out["actions"] = StrategyActions(
            deposit_amount=str(a.get("deposit_amount", base.deposit_amount)),
            auto_compound=bool(a.get("auto_compound", base.auto_compound)),
            rebalance_period=str(a.get("rebalance_period", base.rebalance_period)),
        )
    return out


class StrategyStore:
    """In-memory strategy repository. Every mutation is written to the activity log."""

    def __init__(self, ids: IdAllocator, catalog: Catalog, activity: ActivityLog):
        self.ids = ids
        self.catalog = catalog
        self.activity = activity
        self._strategies: Dict[int, YieldStrategy] = {}
        self._lock = threading.RLock()

    # ==========================================
    # CRUD
    # ==========================================

    def create(self, **fields) -> YieldStrategy:
        fields = _coerce(fields)
        if not fields.get("name"):
            raise ValidationError("name is required", {"fields": [{"field": "name", "message": "required"}]})
        if "trigger_type" not in fields:
            raise ValidationError("triggerType is required", {"fields": [{"field": "triggerType", "message": "required"}]})
        fields.setdefault("target_protocols", frozenset())
        fields.setdefault("target_networks", frozenset())

        with self._lock:
            strategy = YieldStrategy(id=self.ids.next("yield_strategy"), **fields)
            self._strategies[strategy.id] = strategy

        logger.info(f"Strategy #{strategy.id} created: {strategy.name} ({strategy.trigger_type.value})")
        self.activity.append(
            ActivityType.STRATEGY,
            f"Created yield strategy: {strategy.name}",
            StrategyDetails(strategy_id=strategy.id, change="created"),
            user_id=strategy.user_id,
        )
        return replace(strategy)

    def get(self, strategy_id: int) -> YieldStrategy:
        with self._lock:
            strategy = self._strategies.get(strategy_id)
            if strategy is None:
                raise NotFoundError("Strategy", strategy_id)
            return replace(strategy, execution_results=dict(strategy.execution_results))

    def list(self, user_id: int = None) -> List[YieldStrategy]:
        with self._lock:
            return [
                replace(s, execution_results=dict(s.execution_results))
                for s in self._strategies.values()
                if user_id is None or s.user_id == user_id
            ]

    def update(self, strategy_id: int, changes: Dict[str, Any]) -> YieldStrategy:
        with self._lock:
            current = self._strategies.get(strategy_id)
            if current is None:
                raise NotFoundError("Strategy", strategy_id)
            changes = _coerce(changes, current.conditions, current.actions)
            updated = replace(current, **changes)
            self._strategies[strategy_id] = updated

        changed = ", ".join(sorted(changes)) or "nothing"
        logger.info(f"Strategy #{strategy_id} updated: {changed}")
        self.activity.append(
            ActivityType.STRATEGY,
            f"Updated yield strategy: {updated.name} ({changed})",
            StrategyDetails(strategy_id=strategy_id, change="updated"),
            user_id=updated.user_id,
        )
        return replace(updated)

    def delete(self, strategy_id: int) -> bool:
        with self._lock:
            strategy = self._strategies.pop(strategy_id, None)
        if strategy is None:
            raise NotFoundError("Strategy", strategy_id)

        logger.info(f"Strategy #{strategy_id} deleted")
        self.activity.append(
            ActivityType.STRATEGY,
            f"Deleted yield strategy: {strategy.name}",
            StrategyDetails(strategy_id=strategy_id, change="deleted"),
            user_id=strategy.user_id,
        )
        return True

    # ==========================================
    # EXECUTION ENGINE HOOK
    # ==========================================

    def record_execution(
        self,
        strategy_id: int,
        execution_id: int,
        summary: Dict,
        invested: float,
        returned: float,
        executed_at: datetime,
    ) -> YieldStrategy:
        """Fold one successful execution into the cumulative counters."""
        if invested < 0 or returned < 0:
            raise ValueError("cumulative counters cannot decrease")

        with self._lock:
            current = self._strategies.get(strategy_id)
            if current is None:
                raise NotFoundError("Strategy", strategy_id)

            results = dict(current.execution_results)
            results[execution_id] = summary
            updated = replace(
                current,
                total_executions=current.total_executions + 1,
                total_invested=current.total_invested + invested,
                total_return=current.total_return + returned,
                last_executed_at=executed_at,
                execution_results=results,
            )
            self._strategies[strategy_id] = updated
            return replace(updated)

    # ==========================================
    # ENRICHMENT
    # ==========================================

    def enrich(self, strategy: YieldStrategy) -> Dict:
        """Strategy dict with resolved protocol/network names"""
        def resolve(ids, lookup):
            out = []
            for ref_id in sorted(ids):
                item = lookup(ref_id)
                out.append({"id": ref_id, "name": item.name if item else "Unknown"})
            return out

        return {
            **strategy.to_dict(),
            "protocolInfo": resolve(strategy.target_protocols, self.catalog.get_protocol),
            "networkInfo": resolve(strategy.target_networks, self.catalog.get_network),
        }
