"""
Demo data seeded at startup (SEED_DEMO_DATA)
Networks, protocols, opportunities, one agent configuration and its agents
"""

import logging

from services.activity_log import OpportunityFoundDetails, SocialDetails, ActivityType
from services.agent_registry import AgentPerformance, AgentStatus

logger = logging.getLogger("DemoData")

NETWORKS = [
    ("Ethereum", "ETH"),
    ("Polygon", "MATIC"),
    ("Binance Smart Chain", "BSC"),
    ("Arbitrum", "ARB"),
    ("Optimism", "OP"),
    ("Solana", "SOL"),
    ("Base", "BASE"),
]

PROTOCOLS = [
    ("Aave v3", "AAVE", "https://aave.com", "low"),
    ("Compound", "COMP", "https://compound.finance", "low"),
    ("PancakeSwap", "CAKE", "https://pancakeswap.finance", "medium"),
    ("Curve Finance", "CRV", "https://curve.fi", "low"),
    ("SushiSwap", "SUSHI", "https://sushi.com", "medium"),
    ("Convex Finance", "CVX", "https://convexfinance.com", "medium"),
]

# (protocol_id, network_id, asset, apy, tvl, risk)
OPPORTUNITIES = [
    (1, 2, "USDC", 18.4, 500_000_000, "low"),
    (2, 1, "ETH", 12.9, 800_000_000, "medium"),
    (3, 3, "CAKE-BNB LP", 34.5, 150_000_000, "high"),
    (4, 1, "3pool", 8.2, 950_000_000, "low"),
    (5, 2, "SUSHI-ETH LP", 22.7, 120_000_000, "medium"),
    (6, 1, "cvxCRV", 15.6, 730_000_000, "medium"),
    (5, 7, "SUSHI-ETH LP", 28.3, 85_000_000, "medium"),
    (5, 7, "SUSHI-USDC LP", 31.2, 65_000_000, "medium"),
    (4, 7, "Base-3pool", 11.8, 220_000_000, "low"),
]

# (name, protocol_id, network_id, status, task, success_rate, found)
AGENTS = [
    ("Yield Scanner Alpha", 1, 2, AgentStatus.IDLE, "Monitoring stablecoin pools", 98, 12),
    ("Yield Scanner Beta", 3, 3, AgentStatus.SCANNING, "Scanning liquidity pools", 95, 9),
    ("Yield Scanner Gamma", 6, 1, AgentStatus.IDLE, "Waiting for next scan", 97, 7),
    ("Base LP Scanner", 5, 7, AgentStatus.IDLE, "Monitoring Base liquidity pools", 99, 5),
]


def seed_demo_data(runtime):
    """Populate an empty runtime. No-op when the catalog already has protocols."""
    catalog = runtime.catalog
    if catalog.list_protocols():
        logger.info("Catalog already populated, skipping demo seed")
        return

    for name, short_name in NETWORKS:
        catalog.add_network(name, short_name, logo=short_name.lower())

    for name, logo, website, risk in PROTOCOLS:
        catalog.add_protocol(name, logo, risk, website=website)

    for protocol_id, network_id, asset, apy, tvl, risk in OPPORTUNITIES:
        protocol = catalog.get_protocol(protocol_id)
        catalog.add_opportunity(
            protocol_id=protocol_id,
            network_id=network_id,
            asset=asset,
            apy=apy,
            risk_level=risk,
            tvl=tvl,
            details=f"{asset} pool on {protocol.name}",
            url=protocol.website,
        )

    runtime.activity.append(
        ActivityType.OPPORTUNITY,
        "New high-yield opportunity found on Aave v3",
        OpportunityFoundDetails(opportunity_id=1),
    )
    runtime.activity.append(
        ActivityType.SOCIAL,
        "Posted new yield opportunity to Twitter",
        SocialDetails(platform="twitter"),
    )

    configuration = runtime.registry.create_configuration(
        scan_frequency="hourly",
        risk_tolerance="low",
        networks=["ethereum", "polygon", "bsc", "base"],
        posting_mode="approval",
        parallel_scanning=True,
        max_agents=4,
    )

    for name, protocol_id, network_id, status, task, rate, found in AGENTS:
        runtime.registry.create(
            name=name,
            configuration_id=configuration.id,
            assigned_protocol_id=protocol_id,
            assigned_network_id=network_id,
            status=status,
            current_task=task,
            performance=AgentPerformance(success_rate=rate, opportunities_found=found),
        )

    logger.info(
        f"Seeded demo data: {len(NETWORKS)} networks, {len(PROTOCOLS)} protocols, "
        f"{len(OPPORTUNITIES)} opportunities, {len(AGENTS)} agents"
    )
