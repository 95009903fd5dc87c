"""
YieldHunter Services
In-memory stores shared by the scan orchestrator and the strategy engine
"""

from .activity_log import Activity, ActivityLog, ActivityType
from .agent_registry import AgentConfiguration, AgentInstance, AgentPerformance, AgentRegistry, AgentStatus
from .catalog import Catalog, Network, Opportunity, Protocol, risk_level_for_apy
from .execution_ledger import ExecutionLedger, ExecutionStatus, StrategyExecution
from .strategy_store import StrategyStatus, StrategyStore, TriggerType, YieldStrategy
from .runtime import Runtime
from .demo_data import seed_demo_data

__all__ = [
    # Catalog
    "Catalog",
    "Protocol",
    "Network",
    "Opportunity",
    "risk_level_for_apy",

    # Activity
    "Activity",
    "ActivityLog",
    "ActivityType",

    # Agents
    "AgentConfiguration",
    "AgentInstance",
    "AgentPerformance",
    "AgentRegistry",
    "AgentStatus",

    # Strategies
    "StrategyStore",
    "StrategyStatus",
    "TriggerType",
    "YieldStrategy",
    "ExecutionLedger",
    "ExecutionStatus",
    "StrategyExecution",

    "Runtime",
    "seed_demo_data",
]
