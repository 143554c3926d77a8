"""
oppnet Architectural Contracts
===============================
Interfaces that define the boundary between the decision core and the
surrounding simulation.

The core only ranks and selects (message, neighbour) candidates. Everything
it needs from outside is expressed as a narrow protocol here:

- Clock: monotonic simulation time
- DeliveryEstimate: a peer's delivery predictability table
- NodeDirectory: lookup of nodes by address
- TransferScheduler: accepts ranked candidates and reports outcomes
"""

from typing import (
    Dict, List, Protocol, Sequence, TYPE_CHECKING, runtime_checkable
)

if TYPE_CHECKING:
    from .network import Node
    from .policy import Candidate


# =============================================================================
# ERRORS
# =============================================================================

class RoutingError(Exception):
    """Base class for errors raised by the decision core."""
    pass


class ConfigurationError(RoutingError):
    """Raised when router settings are missing or inconsistent. Halts setup."""
    pass


class ProtocolMismatchError(RoutingError):
    """Raised when a peer cannot provide what this node's strategy needs."""
    pass


# =============================================================================
# COLLABORATOR CONTRACTS
# =============================================================================

@runtime_checkable
class Clock(Protocol):
    """Monotonic simulation time in seconds."""

    def now(self) -> float:
        ...


@runtime_checkable
class DeliveryEstimate(Protocol):
    """
    Capability exposed by any node that maintains delivery predictabilities.

    Both methods age the table before answering, so reading is not free of
    side effects: the last-aged timestamp moves to the current time.
    """

    def get_predictability(self, target: int) -> float:
        ...

    def get_delivery_table(self) -> Dict[int, float]:
        ...


@runtime_checkable
class NodeDirectory(Protocol):
    """The full, stable node set with addresses 0..N-1."""

    def get_node(self, address: int) -> "Node":
        ...

    def all_nodes(self) -> Sequence["Node"]:
        ...


@runtime_checkable
class TransferScheduler(Protocol):
    """
    Attempts deliveries for an ordered candidate list.

    Returns one success flag per candidate, aligned with the input.
    """

    def offer(self, candidates: Sequence["Candidate"]) -> List[bool]:
        ...


# =============================================================================
# VALIDATION GUARDS
# =============================================================================

def assert_delivery_estimate(peer: object, peer_address: int) -> DeliveryEstimate:
    """
    Guard: a peer used for transitive updates must expose a predictability table.
    """
    if not isinstance(peer, DeliveryEstimate):
        raise ProtocolMismatchError(
            f"Node {peer_address} does not expose delivery predictabilities "
            f"({type(peer).__name__}); transitive updates need a peer running "
            f"the probabilistic strategy."
        )
    return peer
