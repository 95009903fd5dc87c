"""
Agent API Router
Agent instances, agent configurations, single and parallel scans
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
import logging

from api.deps import get_runtime
from services.runtime import Runtime

logger = logging.getLogger("AgentRouter")

router = APIRouter(prefix="/api", tags=["Agents"])

# ============================================
# MODELS
# ============================================

class AgentInstanceCreate(BaseModel):
    name: str
    configurationId: int
    assignedProtocol: Optional[int] = None
    assignedNetwork: Optional[int] = None

class AgentInstanceUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None
    assignedProtocol: Optional[int] = None
    assignedNetwork: Optional[int] = None
    currentTask: Optional[str] = None
    configurationId: Optional[int] = None
    performance: Optional[Dict[str, Any]] = None

class ParallelScanRequest(BaseModel):
    configurationId: int = 1

class AgentConfigurationCreate(BaseModel):
    scanFrequency: str = "hourly"
    riskTolerance: str = "low"
    networks: List[str] = Field(default_factory=list)
    postingMode: str = "approval"
    parallelScanning: bool = False
    maxAgents: int = Field(3, ge=1)
    userId: Optional[int] = None

class AgentConfigurationUpdate(BaseModel):
    scanFrequency: Optional[str] = None
    riskTolerance: Optional[str] = None
    networks: Optional[List[str]] = None
    postingMode: Optional[str] = None
    parallelScanning: Optional[bool] = None
    maxAgents: Optional[int] = Field(None, ge=1)
    userId: Optional[int] = None


_CONFIGURATION_FIELDS = {
    "scanFrequency": "scan_frequency",
    "riskTolerance": "risk_tolerance",
    "networks": "networks",
    "postingMode": "posting_mode",
    "parallelScanning": "parallel_scanning",
    "maxAgents": "max_agents",
    "userId": "user_id",
}


def _configuration_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {_CONFIGURATION_FIELDS[k]: v for k, v in data.items()}


# ============================================
# AGENT INSTANCES
# ============================================

@router.get("/agent-instances")
async def list_agent_instances(runtime: Runtime = Depends(get_runtime)):
    """All agents with their assigned protocol/network resolved to {id, name}."""
    registry = runtime.registry
    return [registry.enrich(instance) for instance in registry.list()]


@router.get("/agent-instances/{agent_id}")
async def get_agent_instance(agent_id: int, runtime: Runtime = Depends(get_runtime)):
    registry = runtime.registry
    return registry.enrich(registry.get(agent_id))


@router.post("/agent-instances", status_code=201)
async def create_agent_instance(request: AgentInstanceCreate, runtime: Runtime = Depends(get_runtime)):
    """
    Create an agent under a configuration.

    Fails with 400 CAPACITY_EXCEEDED when the configuration already holds
    maxAgents instances, 404 when the configuration does not exist.
    """
    instance = runtime.registry.create(
        name=request.name,
        configuration_id=request.configurationId,
        assigned_protocol_id=request.assignedProtocol,
        assigned_network_id=request.assignedNetwork,
    )
    logger.info(f"Agent #{instance.id} created: {instance.name}")
    return instance.to_dict()


@router.put("/agent-instances/{agent_id}")
async def update_agent_instance(
    agent_id: int,
    request: AgentInstanceUpdate,
    runtime: Runtime = Depends(get_runtime),
):
    changes = request.model_dump(exclude_unset=True)
    return runtime.registry.update(agent_id, changes).to_dict()


@router.delete("/agent-instances/{agent_id}")
async def delete_agent_instance(agent_id: int, runtime: Runtime = Depends(get_runtime)):
    runtime.registry.delete(agent_id)
    return {"success": True}


# ============================================
# SCANS
# ============================================

@router.post("/agent-instances/{agent_id}/scan", status_code=202)
async def start_scan(agent_id: int, runtime: Runtime = Depends(get_runtime)):
    """
    Flip the agent to `scanning` and return immediately.
    The outcome is only observable through a later GET.
    """
    instance = await runtime.orchestrator.start_scan(agent_id)
    return {
        "message": "Scan initiated",
        "instance": instance.to_dict(),
    }


@router.post("/parallel-scan")
async def parallel_scan(
    request: Optional[ParallelScanRequest] = None,
    runtime: Runtime = Depends(get_runtime),
):
    configuration_id = request.configurationId if request else 1
    dispatched = await runtime.orchestrator.parallel_scan(configuration_id)
    return {
        "message": f"Parallel scan initiated with {len(dispatched)} agents",
        "agents": [agent.to_dict() for agent in dispatched],
    }


# ============================================
# AGENT CONFIGURATIONS
# ============================================

@router.get("/agent-configurations")
async def list_agent_configurations(runtime: Runtime = Depends(get_runtime)):
    return [c.to_dict() for c in runtime.registry.list_configurations()]


@router.get("/agent-configurations/{configuration_id}")
async def get_agent_configuration(configuration_id: int, runtime: Runtime = Depends(get_runtime)):
    return runtime.registry.get_configuration(configuration_id).to_dict()


@router.post("/agent-configurations", status_code=201)
async def create_agent_configuration(
    request: AgentConfigurationCreate,
    runtime: Runtime = Depends(get_runtime),
):
    fields = _configuration_fields(request.model_dump())
    return runtime.registry.create_configuration(**fields).to_dict()


@router.put("/agent-configurations/{configuration_id}")
async def update_agent_configuration(
    configuration_id: int,
    request: AgentConfigurationUpdate,
    runtime: Runtime = Depends(get_runtime),
):
    changes = _configuration_fields(request.model_dump(exclude_unset=True))
    return runtime.registry.update_configuration(configuration_id, changes).to_dict()
