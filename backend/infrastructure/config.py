"""
Configuration Management for YieldHunter
Environment-based configuration with feature flags

Features:
- Environment-based config (dev/staging/prod)
- Scan and execution simulation knobs
- Feature flags
- Dynamic reload
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum

from dotenv import load_dotenv

logger = logging.getLogger("Config")


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


@dataclass
class ScanConfig:
    """Simulated scanner behaviour"""
    single_scan_latency: float = 5.0
    parallel_latency_min: float = 3.0
    parallel_latency_max: float = 7.0
    discovery_probability: float = 0.7

    # Synthesized opportunity bands
    apy_min: float = 5.0
    apy_max: float = 25.0
    tvl_min: float = 50_000_000
    tvl_max: float = 550_000_000
    assets: List[str] = field(default_factory=lambda: ["USDC", "ETH", "DAI", "WBTC"])


@dataclass
class ExecutionConfig:
    """Simulated strategy execution"""
    investment_amount: float = 1.0
    gas_fee_min: float = 0.001
    gas_fee_max: float = 0.01
    gas_used_min: int = 100_000
    gas_used_max: int = 300_000
    # Await between opportunity selection and commit, stands in for tx confirmation
    confirmation_delay: float = 0.0


@dataclass
class SecurityConfig:
    """Security configuration"""
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class MonitoringConfig:
    """Monitoring configuration"""
    log_level: str = "INFO"
    sentry_dsn: Optional[str] = None
    sentry_traces_sample_rate: float = 0.2


@dataclass
class FeatureFlags:
    """Feature flags"""
    enable_seed_demo_data: bool = True
    # Drop discoveries on networks the parent configuration does not list
    enable_filter_scans_by_configuration_networks: bool = False

    def is_enabled(self, feature: str) -> bool:
        return getattr(self, f"enable_{feature}", False)


@dataclass
class YieldHunterConfig:
    """Main application configuration"""
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True
    version: str = "1.0.0"

    scan: ScanConfig = field(default_factory=ScanConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    features: FeatureFlags = field(default_factory=FeatureFlags)

    @classmethod
    def from_env(cls) -> "YieldHunterConfig":
        """Create configuration from environment variables (and .env)"""
        load_dotenv()
        env = os.environ.get("YIELDHUNTER_ENV", "development").lower()

        config = cls(
            environment=Environment(env) if env in [e.value for e in Environment] else Environment.DEVELOPMENT,
            debug=_env_bool("DEBUG", True),
        )

        config.scan = ScanConfig(
            single_scan_latency=_env_float("SCAN_LATENCY_SECONDS", 5.0),
            parallel_latency_min=_env_float("PARALLEL_SCAN_LATENCY_MIN", 3.0),
            parallel_latency_max=_env_float("PARALLEL_SCAN_LATENCY_MAX", 7.0),
            discovery_probability=_env_float("SCAN_DISCOVERY_PROBABILITY", 0.7),
        )

        config.execution = ExecutionConfig(
            investment_amount=_env_float("STRATEGY_INVESTMENT_AMOUNT", 1.0),
        )

        origins = os.environ.get("CORS_ORIGINS")
        if origins:
            config.security.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

        config.monitoring = MonitoringConfig(
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            sentry_dsn=os.environ.get("SENTRY_DSN") or None,
        )

        config.features = FeatureFlags(
            enable_seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
            enable_filter_scans_by_configuration_networks=_env_bool("FILTER_SCANS_BY_CONFIG_NETWORKS", False),
        )

        if config.environment == Environment.PRODUCTION:
            config.debug = False
            config.monitoring.log_level = "WARNING"

        return config

    def to_dict(self) -> Dict:
        """Convert to dictionary (hiding secrets)"""
        hidden = ("password", "secret", "dsn")

        def sanitize(obj):
            if isinstance(obj, dict):
                return {k: sanitize(v) for k, v in obj.items() if not any(h in k.lower() for h in hidden)}
            elif hasattr(obj, '__dataclass_fields__'):
                return sanitize({k: getattr(obj, k) for k in obj.__dataclass_fields__})
            elif isinstance(obj, Enum):
                return obj.value
            else:
                return obj

        return sanitize(self)


# ============================================
# GLOBAL INSTANCES
# ============================================

config = YieldHunterConfig.from_env()

logger.info(f"Configuration loaded for environment: {config.environment.value}")


def get_config() -> YieldHunterConfig:
    """Get the global configuration"""
    return config


def reload_config() -> YieldHunterConfig:
    """Reload configuration from environment"""
    global config
    config = YieldHunterConfig.from_env()
    logger.info("Configuration reloaded")
    return config
