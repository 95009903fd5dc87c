"""
Activity Log - append-only audit trail

Written by the agent registry, scan orchestrator, strategy store and
execution engine. External notifiers (bots, social posters) consume it by
subscribing a listener; they never read the internal list directly.
"""

import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Union

from infrastructure.id_allocator import IdAllocator

logger = logging.getLogger("ActivityLog")


class ActivityType(str, Enum):
    OPPORTUNITY = "opportunity"
    AGENT = "agent"
    STRATEGY = "strategy"
    TRANSACTION = "transaction"
    SOCIAL = "social"


# ============================================
# TYPED DETAILS (one per activity kind)
# ============================================

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class _Details:
    def to_dict(self) -> Dict:
        return {_camel(k): v for k, v in asdict(self).items()}


@dataclass(frozen=True)
class OpportunityFoundDetails(_Details):
    opportunity_id: int
    agent_id: Optional[int] = None
    parallel_scan: bool = False


@dataclass(frozen=True)
class AgentDetails(_Details):
    agent_id: int
    protocol_id: Optional[int] = None


@dataclass(frozen=True)
class ParallelScanDetails(_Details):
    agent_ids: List[int]
    configuration_id: int


@dataclass(frozen=True)
class StrategyDetails(_Details):
    strategy_id: int
    change: str


@dataclass(frozen=True)
class TransactionDetails(_Details):
    strategy_id: int
    execution_id: int
    opportunity_id: int
    protocol_id: int
    network_id: int
    amount: float


@dataclass(frozen=True)
class SocialDetails(_Details):
    platform: str


ActivityDetails = Union[
    OpportunityFoundDetails,
    AgentDetails,
    ParallelScanDetails,
    StrategyDetails,
    TransactionDetails,
    SocialDetails,
]


@dataclass(frozen=True)
class Activity:
    id: int
    type: ActivityType
    description: str
    details: ActivityDetails
    user_id: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "details": self.details.to_dict(),
            "userId": self.user_id,
            "timestamp": self.timestamp.isoformat(),
        }


ActivityListener = Callable[[Activity], None]


class ActivityLog:
    """Append-only, insertion ordered. Appends are serialized."""

    def __init__(self, ids: IdAllocator):
        self.ids = ids
        self._entries: List[Activity] = []
        self._listeners: List[tuple] = []
        self._lock = threading.Lock()

    def append(
        self,
        type: ActivityType,
        description: str,
        details: ActivityDetails,
        user_id: int = None,
    ) -> Activity:
        with self._lock:
            activity = Activity(
                id=self.ids.next("activity"),
                type=ActivityType(type),
                description=description,
                details=details,
                user_id=user_id,
            )
            self._entries.append(activity)
            listeners = list(self._listeners)

        logger.info(f"[{activity.type.value}] {description}")
        self._notify(activity, listeners)
        return activity

    def list(self) -> List[Activity]:
        with self._lock:
            return list(self._entries)

    def recent(self, limit: int = 3) -> List[Activity]:
        """Most recent first"""
        ordered = sorted(self.list(), key=lambda a: (a.timestamp, a.id), reverse=True)
        return ordered[:max(0, limit)]

    # ==========================================
    # NOTIFIER SEAM
    # ==========================================

    def subscribe(self, listener: ActivityListener, types: Iterable[ActivityType] = None):
        wanted: Optional[Set[ActivityType]] = {ActivityType(t) for t in types} if types else None
        with self._lock:
            self._listeners.append((listener, wanted))

    def unsubscribe(self, listener: ActivityListener):
        with self._lock:
            self._listeners = [(fn, t) for fn, t in self._listeners if fn != listener]

    def _notify(self, activity: Activity, listeners: List[tuple]):
        for listener, wanted in listeners:
            if wanted is not None and activity.type not in wanted:
                continue
            try:
                listener(activity)
            except Exception:
                # A broken notifier must not fail the scan or execution that wrote the entry
                logger.exception(f"Activity listener failed for activity #{activity.id}")
