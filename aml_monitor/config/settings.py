import os
from typing import Optional, Dict, Any, FrozenSet
from dataclasses import dataclass, field
from enum import Enum
import logging

logger = logging.getLogger(__name__)

class Environment(Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"

def _country_set(raw: str) -> FrozenSet[str]:
    return frozenset(code.strip().upper() for code in raw.split(",") if code.strip())

@dataclass
class RuleThresholdConfig:
    large_transaction_threshold: float = field(
        default_factory=lambda: float(os.getenv("RULE_LARGE_TXN_THRESHOLD", "10000"))
    )
    cross_border_threshold: float = field(
        default_factory=lambda: float(os.getenv("RULE_CROSS_BORDER_THRESHOLD", "5000"))
    )
    high_risk_countries: FrozenSet[str] = field(
        default_factory=lambda: _country_set(os.getenv("RULE_HIGH_RISK_COUNTRIES", "IR,RU,NG,PK"))
    )

    # Structuring (smurfing)
    structuring_threshold: float = field(
        default_factory=lambda: float(os.getenv("RULE_STRUCTURING_THRESHOLD", "10000"))
    )
    structuring_window_hours: int = field(
        default_factory=lambda: int(os.getenv("RULE_STRUCTURING_WINDOW_HOURS", "24"))
    )
    structuring_min_transactions: int = field(
        default_factory=lambda: int(os.getenv("RULE_STRUCTURING_MIN_TXNS", "3"))
    )

    # Behavioural rules
    velocity_max_transactions: int = field(
        default_factory=lambda: int(os.getenv("RULE_VELOCITY_MAX_TXNS", "10"))
    )
    velocity_window_minutes: int = field(
        default_factory=lambda: int(os.getenv("RULE_VELOCITY_WINDOW_MINUTES", "60"))
    )
    dormancy_days: int = field(
        default_factory=lambda: int(os.getenv("RULE_DORMANCY_DAYS", "180"))
    )
    circular_max_depth: int = field(
        default_factory=lambda: int(os.getenv("RULE_CIRCULAR_MAX_DEPTH", "3"))
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "large_transaction_threshold": self.large_transaction_threshold,
            "cross_border_threshold": self.cross_border_threshold,
            "high_risk_countries": sorted(self.high_risk_countries),
            "structuring": {
                "threshold": self.structuring_threshold,
                "window_hours": self.structuring_window_hours,
                "min_transactions": self.structuring_min_transactions
            },
            "velocity": {
                "max_transactions": self.velocity_max_transactions,
                "window_minutes": self.velocity_window_minutes
            },
            "dormancy_days": self.dormancy_days,
            "circular_max_depth": self.circular_max_depth
        }

@dataclass
class RiskWeightConfig:
    critical: int = field(default_factory=lambda: int(os.getenv("RISK_WEIGHT_CRITICAL", "30")))
    high: int = field(default_factory=lambda: int(os.getenv("RISK_WEIGHT_HIGH", "20")))
    medium: int = field(default_factory=lambda: int(os.getenv("RISK_WEIGHT_MEDIUM", "15")))
    low: int = field(default_factory=lambda: int(os.getenv("RISK_WEIGHT_LOW", "5")))
    risky_geography: int = field(default_factory=lambda: int(os.getenv("RISK_WEIGHT_GEOGRAPHY", "20")))
    structuring: int = field(default_factory=lambda: int(os.getenv("RISK_WEIGHT_STRUCTURING", "25")))
    max_score: int = 100

    def severity_weights(self) -> Dict[str, int]:
        return {
            "Critical": self.critical,
            "High": self.high,
            "Medium": self.medium,
            "Low": self.low
        }

@dataclass
class MonitoringConfig:
    enable_prometheus: bool = field(
        default_factory=lambda: os.getenv("MONITORING_PROMETHEUS", "false").lower() == "true"
    )
    prometheus_port: int = field(default_factory=lambda: int(os.getenv("PROMETHEUS_PORT", "8000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(
        default_factory=lambda: os.getenv("LOG_FORMAT", "structured")  # structured or standard
    )
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))

@dataclass
class GeneratorConfig:
    transaction_count: int = field(
        default_factory=lambda: int(os.getenv("GENERATOR_TXN_COUNT", "500"))
    )
    seed: Optional[int] = field(
        default_factory=lambda: int(os.environ["GENERATOR_SEED"]) if os.getenv("GENERATOR_SEED") else None
    )
    laundering_ratio: float = field(
        default_factory=lambda: float(os.getenv("GENERATOR_LAUNDERING_RATIO", "0.12"))
    )
    history_days: int = field(default_factory=lambda: int(os.getenv("GENERATOR_HISTORY_DAYS", "90")))

@dataclass
class ComplianceConfig:
    environment: Environment = field(
        default_factory=lambda: Environment(os.getenv("ENVIRONMENT", "development"))
    )

    # Sub-configurations
    rules: RuleThresholdConfig = field(default_factory=RuleThresholdConfig)
    risk: RiskWeightConfig = field(default_factory=RiskWeightConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)

    def validate(self) -> bool:
        try:
            # Validate thresholds
            assert self.rules.large_transaction_threshold > 0, "Large transaction threshold must be positive"
            assert self.rules.cross_border_threshold > 0, "Cross-border threshold must be positive"
            assert self.rules.structuring_threshold > 0, "Structuring threshold must be positive"
            assert self.rules.structuring_window_hours > 0, "Structuring window must be positive"
            assert self.rules.structuring_min_transactions >= 1, "Structuring needs at least one transaction"
            assert self.rules.circular_max_depth >= 2, "Circular transfer depth must be at least 2"

            # Validate weights
            weights = self.risk.severity_weights()
            assert all(w >= 0 for w in weights.values()), "Risk weights must be non-negative"
            assert weights["Critical"] >= weights["High"] >= weights["Medium"] >= weights["Low"], \
                "Risk weights must follow severity order"

            assert 0.0 <= self.generator.laundering_ratio <= 1.0, "Laundering ratio must be in [0, 1]"

            logger.info("Configuration validation passed")
            return True

        except AssertionError as e:
            logger.error(f"Configuration validation failed: {e}")
            return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "environment": self.environment.value,
            "rules": self.rules.to_dict(),
            "risk": {
                "severity_weights": self.risk.severity_weights(),
                "risky_geography": self.risk.risky_geography,
                "structuring": self.risk.structuring,
                "max_score": self.risk.max_score
            },
            "monitoring": {
                "prometheus": self.monitoring.enable_prometheus,
                "port": self.monitoring.prometheus_port,
                "log_level": self.monitoring.log_level
            },
            "generator": {
                "transaction_count": self.generator.transaction_count,
                "seed": self.generator.seed
            }
        }

# Global configuration instance
_config_instance: Optional[ComplianceConfig] = None

def get_config() -> ComplianceConfig:
    global _config_instance
    if _config_instance is None:
        _config_instance = ComplianceConfig()
        _config_instance.validate()
    return _config_instance

def reload_config() -> ComplianceConfig:
    global _config_instance
    _config_instance = ComplianceConfig()
    _config_instance.validate()
    logger.info("Configuration reloaded")
    return _config_instance
