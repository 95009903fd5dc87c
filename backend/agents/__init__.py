"""
YieldHunter - Agents

- scan_orchestrator.py: dispatches single and parallel scans to agent instances
- strategy_executor.py: executes yield strategies against the opportunity catalog
"""

from .scan_orchestrator import LatencyProvider, ScanOrchestrator
from .strategy_executor import StrategyExecutionEngine
