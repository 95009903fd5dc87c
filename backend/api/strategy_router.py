"""
Yield Strategy API Router
Strategy CRUD, on-demand execution and the execution ledger
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
import logging

from api.deps import get_runtime
from services.runtime import Runtime
from services.strategy_store import YieldStrategy

logger = logging.getLogger("StrategyRouter")

router = APIRouter(prefix="/api", tags=["Yield Strategies"])

# ============================================
# MODELS
# ============================================

class StrategyConditionsModel(BaseModel):
    minApy: float = Field(0.0, ge=0)
    maxRisk: str = "medium"
    assetTypes: List[str] = Field(default_factory=list)

class StrategyActionsModel(BaseModel):
    depositAmount: str = "1.0 ETH"
    autoCompound: bool = True
    rebalancePeriod: str = "weekly"

class StrategyCreate(BaseModel):
    name: str
    triggerType: str
    targetProtocols: List[int] = Field(default_factory=list)
    targetNetworks: List[int] = Field(default_factory=list)
    description: Optional[str] = None
    status: str = "active"
    conditions: Optional[StrategyConditionsModel] = None
    actions: Optional[StrategyActionsModel] = None
    maxGasFee: float = Field(50.0, ge=0)
    userId: Optional[int] = None

class StrategyUpdate(BaseModel):
    """Configuration only; cumulative performance is not writable"""
    name: Optional[str] = None
    triggerType: Optional[str] = None
    targetProtocols: Optional[List[int]] = None
    targetNetworks: Optional[List[int]] = None
    description: Optional[str] = None
    status: Optional[str] = None
    conditions: Optional[StrategyConditionsModel] = None
    actions: Optional[StrategyActionsModel] = None
    maxGasFee: Optional[float] = Field(None, ge=0)
    userId: Optional[int] = None


_STRATEGY_FIELDS = {
    "name": "name",
    "triggerType": "trigger_type",
    "targetProtocols": "target_protocols",
    "targetNetworks": "target_networks",
    "description": "description",
    "status": "status",
    "maxGasFee": "max_gas_fee",
    "userId": "user_id",
}
_CONDITION_FIELDS = {"minApy": "min_apy", "maxRisk": "max_risk", "assetTypes": "asset_types"}
_ACTION_FIELDS = {
    "depositAmount": "deposit_amount",
    "autoCompound": "auto_compound",
    "rebalancePeriod": "rebalance_period",
}


def _store_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    API body (camelCase) -> StrategyStore field names.
    Nested conditions/actions carry only the keys present in the body, so an
    update merges them over the stored values.
    """
    fields = {_STRATEGY_FIELDS[k]: v for k, v in data.items() if k in _STRATEGY_FIELDS}

    conditions = data.get("conditions")
    if conditions is not None:
        fields["conditions"] = {_CONDITION_FIELDS[k]: v for k, v in conditions.items()}
    actions = data.get("actions")
    if actions is not None:
        fields["actions"] = {_ACTION_FIELDS[k]: v for k, v in actions.items()}
    return fields


def _with_executions(runtime: Runtime, strategy: YieldStrategy) -> Dict:
    return {
        **runtime.strategies.enrich(strategy),
        "executions": [e.to_dict() for e in runtime.ledger.list(strategy.id)],
    }


# ============================================
# STRATEGY CRUD
# ============================================

@router.get("/yield-strategies")
async def list_strategies(
    userId: Optional[int] = Query(None),
    runtime: Runtime = Depends(get_runtime),
):
    """Strategies with protocolInfo/networkInfo resolved to names."""
    store = runtime.strategies
    return [store.enrich(s) for s in store.list(user_id=userId)]


@router.get("/yield-strategies/{strategy_id}")
async def get_strategy(strategy_id: int, runtime: Runtime = Depends(get_runtime)):
    return _with_executions(runtime, runtime.strategies.get(strategy_id))


@router.post("/yield-strategies", status_code=201)
async def create_strategy(request: StrategyCreate, runtime: Runtime = Depends(get_runtime)):
    data = request.model_dump()
    if request.conditions is None:
        data.pop("conditions")
    if request.actions is None:
        data.pop("actions")
    strategy = runtime.strategies.create(**_store_fields(data))
    return runtime.strategies.enrich(strategy)


@router.put("/yield-strategies/{strategy_id}")
async def update_strategy(
    strategy_id: int,
    request: StrategyUpdate,
    runtime: Runtime = Depends(get_runtime),
):
    data = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
    changes = _store_fields(data)
    strategy = runtime.strategies.update(strategy_id, changes)
    return runtime.strategies.enrich(strategy)


@router.delete("/yield-strategies/{strategy_id}")
async def delete_strategy(strategy_id: int, runtime: Runtime = Depends(get_runtime)):
    runtime.strategies.delete(strategy_id)
    return {"success": True, "message": "Strategy deleted successfully"}


# ============================================
# EXECUTION
# ============================================

@router.post("/yield-strategies/{strategy_id}/execute")
async def execute_strategy(strategy_id: int, runtime: Runtime = Depends(get_runtime)):
    """
    Execute once. A strategy with no eligible opportunity still returns 200,
    with execution.status == "failed".
    """
    execution = await runtime.engine.execute(strategy_id)
    succeeded = execution.status.value == "success"
    return {
        "message": "Strategy executed successfully" if succeeded else execution.error_message,
        "execution": execution.to_dict(),
    }


@router.get("/yield-strategies/{strategy_id}/executions")
async def list_strategy_executions(strategy_id: int, runtime: Runtime = Depends(get_runtime)):
    runtime.strategies.get(strategy_id)
    return [e.to_dict() for e in runtime.ledger.list(strategy_id)]


@router.get("/strategy-executions")
async def list_all_executions(runtime: Runtime = Depends(get_runtime)):
    return [e.to_dict() for e in runtime.ledger.list()]
