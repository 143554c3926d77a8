"""
oppnet
======
Opportunistic-forwarding decision engine for delay-tolerant networks.

Given a node's current contacts and buffered messages, decides which messages
to offer to which neighbours, and in what order, from learned contact history.

Modules:
--------
- config: Router configuration dataclasses and defaults
- contracts: Collaborator protocols and error types
- contacts: Shared pairwise encounter ledger
- predictability: Delivery predictabilities with aging and transitivity
- readiness: Encounter-saturation readiness gate
- utility: Probabilistic, encounter/distance, mean-threshold and cluster strategies
- policy: Per-node forwarding orchestration
- network: Data model and in-memory event replay
- scheduler: Reference transfer scheduler
- trace: JSON contact traces and synthetic benchmarks
- main: CLI and trace runner

Example Usage:
--------------
>>> from oppnet import Network, ContactEvent, create_default_config
>>> config = create_default_config(seconds_in_time_unit=30)
>>> net = Network([(0, 0), (10, 0), (20, 0)], config)
>>> msg = net.create_message("M1", source=0, destination=2)
>>> net.apply_event(ContactEvent(0, 1, timestamp=0.0, up=True))
>>> offered = net.tick()
"""

__version__ = "1.0.0"

# Configuration
from .config import (
    RouterConfig,
    PredictabilityConfig,
    GateConfig,
    ClusterConfig,
    Strategy,
    QueueMode,
    create_default_config,
    create_small_test_config,
    config_from_dict,
    config_to_dict,
    P_INIT,
    DEFAULT_BETA,
    GAMMA,
    DEFAULT_ZERO_THRESHOLD,
)

# Contracts
from .contracts import (
    RoutingError,
    ConfigurationError,
    ProtocolMismatchError,
    Clock,
    DeliveryEstimate,
    NodeDirectory,
    TransferScheduler,
)

# Core
from .contacts import ContactTracker
from .predictability import PredictabilityStore
from .readiness import ReadinessGate
from .utility import (
    UtilityEstimator,
    ProbabilisticUtility,
    EncounterDistanceUtility,
    MeanThresholdUtility,
    ClusterUtility,
    Assessment,
    create_estimator,
)
from .policy import ForwardingPolicy, Candidate

# Simulation stand-ins
from .network import (
    Network,
    Node,
    Message,
    Connection,
    ContactEvent,
    SimClock,
)
from .scheduler import InstantTransferScheduler
from .trace import (
    ContactTrace,
    MessageSpec,
    Move,
    load_trace,
    save_trace,
    trace_from_dict,
    create_benchmark_trace,
)
from .main import run_trace

__all__ = [
    "__version__",

    # Configuration
    "RouterConfig",
    "PredictabilityConfig",
    "GateConfig",
    "ClusterConfig",
    "Strategy",
    "QueueMode",
    "create_default_config",
    "create_small_test_config",
    "config_from_dict",
    "config_to_dict",
    "P_INIT",
    "DEFAULT_BETA",
    "GAMMA",
    "DEFAULT_ZERO_THRESHOLD",

    # Contracts
    "RoutingError",
    "ConfigurationError",
    "ProtocolMismatchError",
    "Clock",
    "DeliveryEstimate",
    "NodeDirectory",
    "TransferScheduler",

    # Core
    "ContactTracker",
    "PredictabilityStore",
    "ReadinessGate",
    "UtilityEstimator",
    "ProbabilisticUtility",
    "EncounterDistanceUtility",
    "MeanThresholdUtility",
    "ClusterUtility",
    "Assessment",
    "create_estimator",
    "ForwardingPolicy",
    "Candidate",

    # Simulation stand-ins
    "Network",
    "Node",
    "Message",
    "Connection",
    "ContactEvent",
    "SimClock",
    "InstantTransferScheduler",
    "ContactTrace",
    "MessageSpec",
    "Move",
    "load_trace",
    "save_trace",
    "trace_from_dict",
    "create_benchmark_trace",
    "run_trace",
]
