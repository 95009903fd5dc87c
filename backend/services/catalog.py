"""
Catalog - Protocols, Networks and Opportunities
In-memory read/append store shared by the scan orchestrator and strategy engine
"""

import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from infrastructure.id_allocator import IdAllocator

logger = logging.getLogger("Catalog")

# Days covered by each analytics history window
HISTORY_PERIODS = {"7days": 7, "30days": 30, "90days": 90}


@dataclass
class Protocol:
    id: int
    name: str
    logo: str
    risk_level: str
    website: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "logo": self.logo,
            "website": self.website,
            "description": self.description,
            "riskLevel": self.risk_level,
        }

    def ref(self) -> Dict:
        return {"id": self.id, "name": self.name}


@dataclass
class Network:
    id: int
    name: str
    short_name: str
    logo: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "shortName": self.short_name,
            "logo": self.logo,
            "isActive": self.is_active,
        }

    def ref(self) -> Dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Opportunity:
    """Never mutated once appended"""
    id: int
    protocol_id: int
    network_id: int
    asset: str
    apy: float
    risk_level: str
    tvl: Optional[float] = None
    details: Optional[str] = None
    url: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "protocolId": self.protocol_id,
            "networkId": self.network_id,
            "asset": self.asset,
            "apy": self.apy,
            "tvl": self.tvl,
            "riskLevel": self.risk_level,
            "details": self.details,
            "url": self.url,
            "timestamp": self.timestamp.isoformat(),
        }


def risk_level_for_apy(apy: float) -> str:
    """apy > 15 is high, apy > 10 is medium, anything else low."""
    if apy > 15:
        return "high"
    if apy > 10:
        return "medium"
    return "low"


class Catalog:
    """
    Read-mostly catalog. Opportunities are append-only; the id comes from the
    shared IdAllocator so concurrent scan completions never collide.
    """

    def __init__(self, ids: IdAllocator):
        self.ids = ids
        self._protocols: Dict[int, Protocol] = {}
        self._networks: Dict[int, Network] = {}
        self._opportunities: Dict[int, Opportunity] = {}
        self._lock = threading.Lock()

    # ==========================================
    # PROTOCOLS / NETWORKS
    # ==========================================

    def add_protocol(self, name: str, logo: str, risk_level: str,
                     website: str = None, description: str = None) -> Protocol:
        protocol = Protocol(
            id=self.ids.next("protocol"),
            name=name,
            logo=logo,
            risk_level=risk_level,
            website=website,
            description=description,
        )
        with self._lock:
            self._protocols[protocol.id] = protocol
        return protocol

    def get_protocol(self, protocol_id: Optional[int]) -> Optional[Protocol]:
        if protocol_id is None:
            return None
        return self._protocols.get(protocol_id)

    def list_protocols(self) -> List[Protocol]:
        return list(self._protocols.values())

    def add_network(self, name: str, short_name: str, logo: str = None, is_active: bool = True) -> Network:
        network = Network(
            id=self.ids.next("network"),
            name=name,
            short_name=short_name,
            logo=logo,
            is_active=is_active,
        )
        with self._lock:
            self._networks[network.id] = network
        return network

    def get_network(self, network_id: Optional[int]) -> Optional[Network]:
        if network_id is None:
            return None
        return self._networks.get(network_id)

    def list_networks(self) -> List[Network]:
        return list(self._networks.values())

    # ==========================================
    # OPPORTUNITIES
    # ==========================================

    def add_opportunity(
        self,
        protocol_id: int,
        network_id: int,
        asset: str,
        apy: float,
        risk_level: str,
        tvl: float = None,
        details: str = None,
        url: str = None,
    ) -> Opportunity:
        if apy < 0:
            raise ValueError("apy must be >= 0")

        with self._lock:
            opportunity = Opportunity(
                id=self.ids.next("opportunity"),
                protocol_id=protocol_id,
                network_id=network_id,
                asset=asset,
                apy=apy,
                risk_level=risk_level,
                tvl=tvl,
                details=details,
                url=url,
            )
            self._opportunities[opportunity.id] = opportunity

        logger.debug(f"Opportunity #{opportunity.id} added: {asset} @ {apy:.2f}%")
        return opportunity

    def get_opportunity(self, opportunity_id: int) -> Optional[Opportunity]:
        return self._opportunities.get(opportunity_id)

    def list_opportunities(self) -> List[Opportunity]:
        """Insertion order"""
        with self._lock:
            return list(self._opportunities.values())

    def top_opportunities(self, limit: int = 5) -> List[Opportunity]:
        ranked = sorted(self.list_opportunities(), key=lambda o: (-o.apy, o.id))
        return ranked[:max(0, limit)]

    # ==========================================
    # ENRICHMENT
    # ==========================================

    def enrich_opportunity(self, opportunity: Opportunity) -> Dict:
        protocol = self.get_protocol(opportunity.protocol_id)
        network = self.get_network(opportunity.network_id)
        return {
            **opportunity.to_dict(),
            "protocol": protocol.to_dict() if protocol else None,
            "network": network.to_dict() if network else None,
        }

    def summary(self) -> Dict:
        """Aggregate TVL / APY figures for the analytics endpoint"""
        opportunities = self.list_opportunities()
        tvl = sum(o.tvl or 0 for o in opportunities)
        avg_apy = sum(o.apy for o in opportunities) / len(opportunities) if opportunities else 0.0
        return {
            "tvl": tvl,
            "avgApy": avg_apy,
            "weeklyYield": tvl * (avg_apy / 100) / 52,
            "opportunitiesCount": len(opportunities),
        }

    def protocol_averages(self) -> List[Dict]:
        """Mean opportunity APY per protocol, best first (0 for protocols with none)"""
        opportunities = self.list_opportunities()
        averages = []
        for protocol in self.list_protocols():
            apys = [o.apy for o in opportunities if o.protocol_id == protocol.id]
            averages.append({
                "protocol": protocol.name,
                "avgApy": sum(apys) / len(apys) if apys else 0.0,
            })
        return sorted(averages, key=lambda a: -a["avgApy"])

    def historical(self, period: str, rng: random.Random, agent_accuracy: float,
                   today: date = None) -> Dict:
        """
        Simulated daily APY history for the top five protocols.

        Each day jitters the protocol's current average by up to +/-2 points
        (floored at 0). Days run oldest first and end the day before `today`.
        """
        days = HISTORY_PERIODS[period]
        today = today or date.today()
        start = today - timedelta(days=days)
        top = self.protocol_averages()[:5]

        series = []
        for offset in range(days):
            series.append({
                "date": (start + timedelta(days=offset)).isoformat(),
                "data": [
                    {"protocol": a["protocol"], "apy": max(0.0, a["avgApy"] + rng.uniform(-2, 2))}
                    for a in top
                ],
            })

        return {
            "period": period,
            "bestProtocol": top[0]["protocol"] if top else "None",
            "avgApy": self.summary()["avgApy"],
            "yieldChange": rng.uniform(-1, 4),
            "agentAccuracy": agent_accuracy,
            "timeSeriesData": series,
        }
