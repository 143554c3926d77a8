"""
oppnet Router Configuration
============================
Configuration dataclasses for the forwarding decision engine.

Mirrors the settings namespaces of the opportunistic routers:
- predictability: aging and transitivity of delivery predictabilities
- gate: encounter-saturation readiness threshold
- cluster: neighbour partitioning for the cluster strategy
"""

from dataclasses import dataclass, field, fields
from numbers import Integral
from typing import Any, Dict, Optional
from enum import Enum

from .contracts import ConfigurationError


# Delivery predictability initialization constant
P_INIT = 0.75
# Transitivity scaling constant default value
DEFAULT_BETA = 0.25
# Aging constant
GAMMA = 0.98
# Fraction of the encounter matrix allowed to stay empty before forwarding starts
DEFAULT_ZERO_THRESHOLD = 0.25


class Strategy(Enum):
    """Utility strategy selected once per deployment"""
    PROBABILISTIC = "probabilistic"
    ENCOUNTER_DISTANCE = "encounter_distance"
    MEAN_THRESHOLD = "mean_threshold"
    CLUSTER = "cluster"

    @property
    def gated(self) -> bool:
        """Strategies that wait for the readiness gate before forwarding"""
        return self is not Strategy.PROBABILISTIC


class QueueMode(Enum):
    """Tie-break order for equally ranked candidates"""
    FIFO = "fifo"
    LIFO = "lifo"


@dataclass
class PredictabilityConfig:
    """Probabilistic strategy configuration"""
    # How many seconds one aging time unit is. No default, must be tuned per scenario.
    seconds_in_time_unit: Optional[int] = None

    beta: float = DEFAULT_BETA  # transitivity scaling
    p_init: float = P_INIT
    gamma: float = GAMMA


@dataclass
class GateConfig:
    """Readiness gate configuration"""
    zero_threshold: float = DEFAULT_ZERO_THRESHOLD


@dataclass
class ClusterConfig:
    """Cluster strategy configuration"""
    n_clusters: int = 2
    max_iter: int = 10

    # Min-max scale [encounters, distance] before clustering
    normalize_features: bool = False


@dataclass
class RouterConfig:
    """Master configuration shared by every node's forwarding policy"""
    strategy: Strategy = Strategy.PROBABILISTIC
    queue_mode: QueueMode = QueueMode.FIFO

    predictability: PredictabilityConfig = field(default_factory=PredictabilityConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)

    # Transfers the reference scheduler starts per connection per offer
    max_transfers_per_connection: int = 1

    def validate(self):
        """Validate configuration consistency"""
        seconds = self.predictability.seconds_in_time_unit
        if seconds is None:
            raise ConfigurationError("seconds_in_time_unit must be supplied")
        if isinstance(seconds, bool) or not isinstance(seconds, Integral):
            raise ConfigurationError(
                f"seconds_in_time_unit must be an integer, got {seconds!r}"
            )
        if seconds <= 0:
            raise ConfigurationError(
                f"seconds_in_time_unit must be positive, got {seconds}"
            )
        if self.predictability.beta < 0:
            raise ConfigurationError(f"beta must be non-negative, got {self.predictability.beta}")
        if not 0.0 <= self.gate.zero_threshold <= 1.0:
            raise ConfigurationError(
                f"zero_threshold must be in [0, 1], got {self.gate.zero_threshold}"
            )
        if self.cluster.n_clusters != 2:
            raise ConfigurationError("cluster strategy partitions into exactly 2 groups")
        if self.max_transfers_per_connection < 1:
            raise ConfigurationError("max_transfers_per_connection must be at least 1")
        return True


def create_default_config(seconds_in_time_unit: Optional[int] = None,
                          strategy: Strategy = Strategy.PROBABILISTIC) -> RouterConfig:
    """Create default configuration"""
    config = RouterConfig(strategy=strategy)
    config.predictability.seconds_in_time_unit = seconds_in_time_unit
    return config


def create_small_test_config(strategy: Strategy = Strategy.PROBABILISTIC) -> RouterConfig:
    """Create configuration with a short time unit for tests"""
    return create_default_config(seconds_in_time_unit=30, strategy=strategy)


def _section(cls, data: Optional[Dict[str, Any]], name: str):
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown {name} settings: {sorted(unknown)}")
    return cls(**data)


def config_from_dict(data: Dict[str, Any]) -> RouterConfig:
    """
    Build a RouterConfig from a plain dict (e.g. loaded from JSON).

    Expected layout:
        {"strategy": "cluster", "queue_mode": "fifo",
         "predictability": {"seconds_in_time_unit": 30, "beta": 0.25},
         "gate": {"zero_threshold": 0.25},
         "cluster": {"normalize_features": false}}
    """
    try:
        strategy = Strategy(data.get("strategy", Strategy.PROBABILISTIC.value))
    except ValueError:
        raise ConfigurationError(f"Unknown strategy: {data.get('strategy')!r}") from None
    try:
        queue_mode = QueueMode(data.get("queue_mode", QueueMode.FIFO.value))
    except ValueError:
        raise ConfigurationError(f"Unknown queue mode: {data.get('queue_mode')!r}") from None

    config = RouterConfig(
        strategy=strategy,
        queue_mode=queue_mode,
        predictability=_section(PredictabilityConfig, data.get("predictability"), "predictability"),
        gate=_section(GateConfig, data.get("gate"), "gate"),
        cluster=_section(ClusterConfig, data.get("cluster"), "cluster"),
        max_transfers_per_connection=data.get("max_transfers_per_connection", 1),
    )
    config.validate()
    return config


def config_to_dict(config: RouterConfig) -> Dict[str, Any]:
    """Inverse of config_from_dict, for dumping run settings next to results"""
    return {
        "strategy": config.strategy.value,
        "queue_mode": config.queue_mode.value,
        "predictability": {
            "seconds_in_time_unit": config.predictability.seconds_in_time_unit,
            "beta": config.predictability.beta,
            "p_init": config.predictability.p_init,
            "gamma": config.predictability.gamma,
        },
        "gate": {"zero_threshold": config.gate.zero_threshold},
        "cluster": {
            "n_clusters": config.cluster.n_clusters,
            "max_iter": config.cluster.max_iter,
            "normalize_features": config.cluster.normalize_features,
        },
        "max_transfers_per_connection": config.max_transfers_per_connection,
    }
