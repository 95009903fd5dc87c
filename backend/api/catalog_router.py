"""
Catalog API Router
Protocols, networks, opportunities, activity feed and analytics
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from typing import Optional
import logging

from api.deps import get_runtime
from infrastructure.errors import NotFoundError, ValidationError
from services.activity_log import ActivityType, OpportunityFoundDetails
from services.catalog import risk_level_for_apy
from services.runtime import Runtime

logger = logging.getLogger("CatalogRouter")

router = APIRouter(prefix="/api", tags=["Catalog"])

# ============================================
# MODELS
# ============================================

class ProtocolCreate(BaseModel):
    name: str
    logo: str
    riskLevel: str = "medium"
    website: Optional[str] = None
    description: Optional[str] = None

class OpportunityCreate(BaseModel):
    protocolId: int
    networkId: int
    asset: str
    apy: float = Field(..., ge=0)
    tvl: Optional[float] = None
    riskLevel: Optional[str] = None
    details: Optional[str] = None
    url: Optional[str] = None


# ============================================
# PROTOCOLS / NETWORKS
# ============================================

@router.get("/protocols")
async def list_protocols(runtime: Runtime = Depends(get_runtime)):
    return [p.to_dict() for p in runtime.catalog.list_protocols()]


@router.get("/protocols/{protocol_id}")
async def get_protocol(protocol_id: int, runtime: Runtime = Depends(get_runtime)):
    protocol = runtime.catalog.get_protocol(protocol_id)
    if protocol is None:
        raise NotFoundError("Protocol", protocol_id)
    return protocol.to_dict()


@router.post("/protocols", status_code=201)
async def create_protocol(request: ProtocolCreate, runtime: Runtime = Depends(get_runtime)):
    protocol = runtime.catalog.add_protocol(
        request.name,
        request.logo,
        request.riskLevel,
        website=request.website,
        description=request.description,
    )
    return protocol.to_dict()


@router.get("/networks")
async def list_networks(runtime: Runtime = Depends(get_runtime)):
    return [n.to_dict() for n in runtime.catalog.list_networks()]


# ============================================
# OPPORTUNITIES
# ============================================

@router.get("/opportunities")
async def list_opportunities(runtime: Runtime = Depends(get_runtime)):
    catalog = runtime.catalog
    return [catalog.enrich_opportunity(o) for o in catalog.list_opportunities()]


@router.get("/opportunities/top")
async def top_opportunities(
    limit: int = Query(5, ge=0),
    runtime: Runtime = Depends(get_runtime),
):
    catalog = runtime.catalog
    return [catalog.enrich_opportunity(o) for o in catalog.top_opportunities(limit)]


@router.post("/opportunities", status_code=201)
async def create_opportunity(request: OpportunityCreate, runtime: Runtime = Depends(get_runtime)):
    catalog = runtime.catalog
    protocol = catalog.get_protocol(request.protocolId)
    if protocol is None:
        raise ValidationError(
            f"Unknown protocol {request.protocolId}",
            {"fields": [{"field": "protocolId", "message": "unknown protocol"}]},
        )
    if catalog.get_network(request.networkId) is None:
        raise ValidationError(
            f"Unknown network {request.networkId}",
            {"fields": [{"field": "networkId", "message": "unknown network"}]},
        )

    opportunity = catalog.add_opportunity(
        protocol_id=request.protocolId,
        network_id=request.networkId,
        asset=request.asset,
        apy=request.apy,
        risk_level=request.riskLevel or risk_level_for_apy(request.apy),
        tvl=request.tvl,
        details=request.details,
        url=request.url,
    )
    runtime.activity.append(
        ActivityType.OPPORTUNITY,
        f"New yield opportunity found on {protocol.name}",
        OpportunityFoundDetails(opportunity_id=opportunity.id),
    )
    return opportunity.to_dict()


# ============================================
# ACTIVITY FEED
# ============================================

@router.get("/activities")
async def list_activities(runtime: Runtime = Depends(get_runtime)):
    return [a.to_dict() for a in runtime.activity.list()]


@router.get("/activities/recent")
async def recent_activities(
    limit: int = Query(3, ge=0),
    runtime: Runtime = Depends(get_runtime),
):
    return [a.to_dict() for a in runtime.activity.recent(limit)]


# ============================================
# ANALYTICS
# ============================================

@router.get("/analytics/summary")
async def analytics_summary(runtime: Runtime = Depends(get_runtime)):
    return runtime.catalog.summary()


@router.get("/analytics/historical")
async def analytics_historical(
    period: str = Query("7days", pattern="^(7|30|90)days$"),
    runtime: Runtime = Depends(get_runtime),
):
    """Daily APY series for the top protocols over 7, 30 or 90 days."""
    agents = runtime.registry.list()
    accuracy = sum(a.performance.success_rate for a in agents) / len(agents) if agents else 0.0
    return runtime.catalog.historical(period, runtime.rng, round(accuracy, 1))
