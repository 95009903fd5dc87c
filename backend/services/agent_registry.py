"""
Agent Registry - configurations and scanning agent instances

Single boundary for the capacity invariant (instances per configuration never
exceed maxAgents) and for the idle -> scanning -> {idle, error} lifecycle.
Only the scan orchestrator mutates status/task/performance after creation.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from infrastructure.errors import CapacityExceededError, NotFoundError, ValidationError
from infrastructure.id_allocator import IdAllocator
from services.activity_log import ActivityLog, ActivityType, AgentDetails
from services.catalog import Catalog

logger = logging.getLogger("AgentRegistry")


class AgentStatus(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    ERROR = "error"


@dataclass
class AgentConfiguration:
    id: int
    scan_frequency: str = "hourly"
    risk_tolerance: str = "low"
    networks: List[str] = field(default_factory=list)
    posting_mode: str = "approval"
    parallel_scanning: bool = False
    max_agents: int = 3
    user_id: Optional[int] = None

    def allows_network(self, name: str, short_name: str = None) -> bool:
        allowed = {n.lower() for n in self.networks}
        return name.lower() in allowed or (short_name or "").lower() in allowed

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "scanFrequency": self.scan_frequency,
            "riskTolerance": self.risk_tolerance,
            "networks": list(self.networks),
            "postingMode": self.posting_mode,
            "parallelScanning": self.parallel_scanning,
            "maxAgents": self.max_agents,
            "userId": self.user_id,
        }


@dataclass(frozen=True)
class AgentPerformance:
    success_rate: float = 0.0
    opportunities_found: int = 0
    last_found: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            "successRate": self.success_rate,
            "opportunitiesFound": self.opportunities_found,
            "lastFound": self.last_found.isoformat() if self.last_found else None,
        }


@dataclass
class AgentInstance:
    id: int
    name: str
    configuration_id: int
    status: AgentStatus = AgentStatus.IDLE
    assigned_protocol_id: Optional[int] = None
    assigned_network_id: Optional[int] = None
    current_task: str = "Waiting for initialization"
    last_scan_time: Optional[datetime] = None
    performance: AgentPerformance = field(default_factory=AgentPerformance)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "assignedProtocol": self.assigned_protocol_id,
            "assignedNetwork": self.assigned_network_id,
            "currentTask": self.current_task,
            "lastScanTime": self.last_scan_time.isoformat() if self.last_scan_time else None,
            "configurationId": self.configuration_id,
            "performance": self.performance.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }


# Fields a partial update may touch, mapped from API names
_UPDATABLE = {
    "name": "name",
    "status": "status",
    "assignedProtocol": "assigned_protocol_id",
    "assignedNetwork": "assigned_network_id",
    "currentTask": "current_task",
    "configurationId": "configuration_id",
    "performance": "performance",
}

# Instance fields that must always hold a value
_REQUIRED = {
    "name": "name",
    "status": "status",
    "current_task": "currentTask",
    "configuration_id": "configurationId",
    "performance": "performance",
}

# Configuration fields that may be cleared with null
_NULLABLE_CONFIGURATION_FIELDS = {"user_id"}

_CONFIGURATION_API_NAMES = {
    "scan_frequency": "scanFrequency",
    "risk_tolerance": "riskTolerance",
    "posting_mode": "postingMode",
    "parallel_scanning": "parallelScanning",
    "max_agents": "maxAgents",
}


def _invalid(field_name: str, message: str) -> ValidationError:
    return ValidationError(f"{field_name} {message}", {"fields": [{"field": field_name, "message": message}]})


class AgentRegistry:
    """
    Owns AgentConfiguration and AgentInstance records.
    Records handed out are copies; all writes go through update().
    """

    def __init__(self, ids: IdAllocator, catalog: Catalog, activity: ActivityLog):
        self.ids = ids
        self.catalog = catalog
        self.activity = activity
        self._configurations: Dict[int, AgentConfiguration] = {}
        self._instances: Dict[int, AgentInstance] = {}
        self._lock = threading.RLock()

    # ==========================================
    # CONFIGURATIONS
    # ==========================================

    def create_configuration(self, **fields) -> AgentConfiguration:
        max_agents = fields.get("max_agents", 3)
        if max_agents < 1:
            raise ValidationError("maxAgents must be at least 1", {"fields": [{"field": "maxAgents", "message": "must be >= 1"}]})

        with self._lock:
            configuration = AgentConfiguration(id=self.ids.next("agent_configuration"), **fields)
            self._configurations[configuration.id] = configuration

        logger.info(f"Created agent configuration #{configuration.id} (maxAgents={configuration.max_agents})")
        return replace(configuration)

    def get_configuration(self, configuration_id: int) -> AgentConfiguration:
        with self._lock:
            configuration = self._configurations.get(configuration_id)
            if configuration is None:
                raise NotFoundError("Configuration", configuration_id)
            return replace(configuration)

    def list_configurations(self) -> List[AgentConfiguration]:
        with self._lock:
            return [replace(c) for c in self._configurations.values()]

    def update_configuration(self, configuration_id: int, changes: Dict[str, Any]) -> AgentConfiguration:
        with self._lock:
            current = self._configurations.get(configuration_id)
            if current is None:
                raise NotFoundError("Configuration", configuration_id)

            for key, value in changes.items():
                if value is None and key not in _NULLABLE_CONFIGURATION_FIELDS:
                    raise _invalid(_CONFIGURATION_API_NAMES.get(key, key), "cannot be null")

            if "max_agents" in changes:
                max_agents = changes["max_agents"]
                if isinstance(max_agents, bool) or not isinstance(max_agents, int):
                    raise _invalid("maxAgents", "must be an integer")
                in_use = self._count_for(configuration_id)
                if max_agents < 1 or max_agents < in_use:
                    raise ValidationError(
                        f"maxAgents cannot be lower than the {in_use} agents already assigned",
                        {"fields": [{"field": "maxAgents", "message": f"must be >= {max(1, in_use)}"}]},
                    )

            updated = replace(current, **changes)
            self._configurations[configuration_id] = updated
            return replace(updated)

    # ==========================================
    # INSTANCES
    # ==========================================

    def _count_for(self, configuration_id: int) -> int:
        return sum(1 for i in self._instances.values() if i.configuration_id == configuration_id)

    def _check_capacity(self, configuration_id: int):
        configuration = self._configurations.get(configuration_id)
        if configuration is None:
            raise NotFoundError("Configuration", configuration_id)
        current = self._count_for(configuration_id)
        if current >= configuration.max_agents:
            raise CapacityExceededError(configuration.max_agents, current)

    def create(
        self,
        name: str,
        configuration_id: int,
        assigned_protocol_id: int = None,
        assigned_network_id: int = None,
        status: AgentStatus = AgentStatus.IDLE,
        current_task: str = "Waiting for initialization",
        performance: AgentPerformance = None,
    ) -> AgentInstance:
        """
        Create an agent under a configuration.

        Raises:
            NotFoundError: unknown configuration
            CapacityExceededError: configuration already holds maxAgents instances
        """
        if not name or not str(name).strip():
            raise ValidationError("Name and configurationId are required", {"fields": [{"field": "name", "message": "required"}]})

        # Check and insert under one lock so two creates cannot both pass the check
        with self._lock:
            self._check_capacity(configuration_id)
            instance = AgentInstance(
                id=self.ids.next("agent_instance"),
                name=name,
                configuration_id=configuration_id,
                status=AgentStatus(status),
                assigned_protocol_id=assigned_protocol_id,
                assigned_network_id=assigned_network_id,
                current_task=current_task,
                performance=performance or AgentPerformance(),
            )
            if instance.status == AgentStatus.SCANNING:
                instance.last_scan_time = datetime.now()
            self._instances[instance.id] = instance

        self.activity.append(
            ActivityType.AGENT,
            f"Created new agent instance: {name}",
            AgentDetails(agent_id=instance.id, protocol_id=assigned_protocol_id),
        )
        return replace(instance)

    def get(self, agent_id: int) -> AgentInstance:
        with self._lock:
            instance = self._instances.get(agent_id)
            if instance is None:
                raise NotFoundError("Agent instance", agent_id)
            return replace(instance)

    def list(self) -> List[AgentInstance]:
        with self._lock:
            return [replace(i) for i in self._instances.values()]

    def list_by_configuration(self, configuration_id: int) -> List[AgentInstance]:
        with self._lock:
            return [replace(i) for i in self._instances.values() if i.configuration_id == configuration_id]

    def update(self, agent_id: int, changes: Dict[str, Any]) -> AgentInstance:
        """
        Apply a partial update. Keys are either API names (camelCase) or
        attribute names. Moving into `scanning` from any other status stamps
        lastScanTime.
        """
        with self._lock:
            current = self._instances.get(agent_id)
            if current is None:
                raise NotFoundError("Agent instance", agent_id)

            fields = {}
            for key, value in changes.items():
                attr = _UPDATABLE.get(key, key)
                if attr not in _UPDATABLE.values():
                    raise ValidationError(f"Unknown agent field '{key}'", {"fields": [{"field": key, "message": "not updatable"}]})
                if value is None and attr in _REQUIRED:
                    raise _invalid(_REQUIRED[attr], "cannot be null")
                fields[attr] = value

            if "name" in fields and not str(fields["name"]).strip():
                raise _invalid("name", "cannot be empty")

            if "status" in fields:
                try:
                    fields["status"] = AgentStatus(fields["status"])
                except ValueError:
                    raise ValidationError(
                        f"Invalid status '{fields['status']}'",
                        {"fields": [{"field": "status", "message": "must be one of idle, scanning, error"}]},
                    )

            if isinstance(fields.get("performance"), dict):
                fields["performance"] = _performance_from_dict(fields["performance"], current.performance)

            target_config = fields.get("configuration_id", current.configuration_id)
            if target_config != current.configuration_id:
                self._check_capacity(target_config)

            updated = replace(current, **fields)
            if updated.status == AgentStatus.SCANNING and current.status != AgentStatus.SCANNING:
                updated.last_scan_time = datetime.now()

            self._instances[agent_id] = updated
            return replace(updated)

    def delete(self, agent_id: int) -> bool:
        with self._lock:
            instance = self._instances.pop(agent_id, None)
        if instance is None:
            raise NotFoundError("Agent instance", agent_id)

        self.activity.append(
            ActivityType.AGENT,
            f"Deleted agent instance: {instance.name}",
            AgentDetails(agent_id=agent_id),
        )
        return True

    # ==========================================
    # ENRICHMENT
    # ==========================================

    def enrich(self, instance: AgentInstance) -> Dict:
        """Instance dict with {id, name} refs for its protocol and network"""
        protocol = self.catalog.get_protocol(instance.assigned_protocol_id)
        network = self.catalog.get_network(instance.assigned_network_id)
        return {
            **instance.to_dict(),
            "protocol": protocol.ref() if protocol else None,
            "network": network.ref() if network else None,
        }


def _performance_from_dict(data: Dict[str, Any], base: AgentPerformance) -> AgentPerformance:
    """Merge a partial performance dict over the stored values, enforcing ranges."""
    try:
        success_rate = float(data.get("successRate", base.success_rate))
        opportunities_found = int(data.get("opportunitiesFound", base.opportunities_found))
    except (TypeError, ValueError):
        raise _invalid("performance", "successRate and opportunitiesFound must be numbers")

    if not 0 <= success_rate <= 100:
        raise _invalid("performance.successRate", "must be between 0 and 100")
    if opportunities_found < 0:
        raise _invalid("performance.opportunitiesFound", "must be >= 0")

    last_found = data.get("lastFound", base.last_found)
    if isinstance(last_found, str):
        try:
            last_found = datetime.fromisoformat(last_found.replace("Z", "+00:00"))
        except ValueError:
            raise _invalid("performance.lastFound", "must be an ISO-8601 timestamp")

    return AgentPerformance(
        success_rate=success_rate,
        opportunities_found=opportunities_found,
        last_found=last_found,
    )
