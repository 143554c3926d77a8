"""
oppnet Network Model
=====================
Data model and in-memory stand-in for the surrounding simulation.

The decision core treats everything in this module as external: messages and
connections are read-only to it, buffers belong to the node, and the Network
only replays contact events it is given. Nothing here models mobility,
propagation or bandwidth.
"""

import logging
import numpy as np
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from .config import RouterConfig
from .contacts import ContactTracker
from .contracts import TransferScheduler
from .predictability import PredictabilityStore
from .readiness import ReadinessGate

if TYPE_CHECKING:
    from .policy import ForwardingPolicy, Candidate

logger = logging.getLogger(__name__)


class SimClock:
    """Monotonic simulation clock in seconds"""

    def __init__(self, start: float = 0.0):
        self.time = float(start)

    def now(self) -> float:
        return self.time

    def set_time(self, time: float):
        if time < self.time:
            raise ValueError(f"Clock cannot move backwards ({self.time} -> {time})")
        self.time = float(time)

    def advance(self, dt: float):
        self.set_time(self.time + dt)


@dataclass(frozen=True)
class Message:
    """Opaque payload with a stable id and a destination node"""
    id: str
    source: int
    destination: int
    receive_time: float = 0.0  # When the holding node got this copy
    size: int = 0


@dataclass(eq=False)
class Connection:
    """Live link between two nodes"""
    node_a: int
    node_b: int
    up: bool = True

    @property
    def key(self) -> Tuple[int, int]:
        return (min(self.node_a, self.node_b), max(self.node_a, self.node_b))

    def other(self, address: int) -> int:
        """Address of the far end as seen from address"""
        if address == self.node_a:
            return self.node_b
        if address == self.node_b:
            return self.node_a
        raise ValueError(f"Node {address} is not an endpoint of {self.key}")


@dataclass(frozen=True)
class ContactEvent:
    """Two nodes connecting (up=True) or disconnecting"""
    node_a: int
    node_b: int
    timestamp: float
    up: bool = True


@dataclass(eq=False)
class Node:
    """A participating host"""
    address: int
    location: np.ndarray
    predictability: Optional[PredictabilityStore] = None
    router: Optional["ForwardingPolicy"] = None
    transferring: bool = False

    # Messages held for forwarding, in arrival order
    buffer: Dict[str, Message] = field(default_factory=dict)
    # Messages that reached this node as their final destination
    delivered: Dict[str, Message] = field(default_factory=dict)
    connections: List[Connection] = field(default_factory=list)

    def __post_init__(self):
        self.location = np.asarray(self.location, dtype=np.float64)

    def messages(self) -> List[Message]:
        """Buffered messages eligible for forwarding"""
        return list(self.buffer.values())

    def has_message(self, message_id: str) -> bool:
        return message_id in self.buffer or message_id in self.delivered

    def receive(self, message: Message, time: float):
        """Store a copy, or record final delivery when addressed to this node"""
        copy = replace(message, receive_time=time)
        if message.destination == self.address:
            self.delivered[message.id] = copy
        else:
            self.buffer[message.id] = copy

    def distance_to(self, other: "Node") -> float:
        return float(np.linalg.norm(self.location - other.location))


class Network:
    """
    Node set, live connections and shared collaborators for one simulation.

    Owns the single ContactTracker and ReadinessGate and injects them into
    every node's ForwardingPolicy.
    """

    def __init__(self, locations: Sequence[Sequence[float]], config: RouterConfig,
                 clock: Optional[SimClock] = None,
                 scheduler: Optional[TransferScheduler] = None):
        from .policy import ForwardingPolicy
        from .scheduler import InstantTransferScheduler

        config.validate()
        self.config = config
        self.clock = clock or SimClock()

        n_nodes = len(locations)
        self.tracker = ContactTracker(n_nodes)
        self.gate = ReadinessGate(config.gate, self.tracker)

        self.nodes: List[Node] = [
            Node(
                address=address,
                location=location,
                predictability=PredictabilityStore(address, config.predictability, self.clock),
            )
            for address, location in enumerate(locations)
        ]

        self.scheduler = scheduler or InstantTransferScheduler(
            self, self.clock, config.max_transfers_per_connection
        )

        for node in self.nodes:
            node.router = ForwardingPolicy(
                node, config, self.tracker, self.gate, self, self.scheduler, self.clock
            )

        self.connections: Dict[Tuple[int, int], Connection] = {}

        # Statistics
        self.events_applied = 0
        self.messages_created = 0

        logger.info("Network created: %d nodes, strategy=%s",
                    n_nodes, config.strategy.value)

    # NodeDirectory

    def get_node(self, address: int) -> Node:
        if not 0 <= address < len(self.nodes):
            raise KeyError(f"Unknown node address {address}")
        return self.nodes[address]

    def all_nodes(self) -> Sequence[Node]:
        return self.nodes

    # Event replay

    def apply_event(self, event: ContactEvent):
        """Bring a connection up or down and notify both endpoints' policies"""
        if event.node_a == event.node_b:
            raise ValueError(f"Node {event.node_a} cannot contact itself")
        self.clock.set_time(event.timestamp)

        node_a = self.get_node(event.node_a)
        node_b = self.get_node(event.node_b)
        key = (min(event.node_a, event.node_b), max(event.node_a, event.node_b))

        if event.up:
            if key in self.connections:
                logger.debug("Connection %s already up at t=%.1f", key, event.timestamp)
                return
            con = Connection(event.node_a, event.node_b, up=True)
            self.connections[key] = con
            node_a.connections.append(con)
            node_b.connections.append(con)
        else:
            con = self.connections.pop(key, None)
            if con is None:
                logger.debug("Connection %s already down at t=%.1f", key, event.timestamp)
                return
            con.up = False
            node_a.connections.remove(con)
            node_b.connections.remove(con)

        node_a.router.changed_connection(con)
        node_b.router.changed_connection(con)
        self.events_applied += 1

    def move(self, address: int, location: Sequence[float]):
        """Update a node's position as reported by the mobility model"""
        self.get_node(address).location = np.asarray(location, dtype=np.float64)

    def create_message(self, message_id: str, source: int, destination: int,
                       size: int = 0) -> Message:
        """Place a new message in the source node's buffer"""
        message = Message(message_id, source, destination, self.clock.now(), size)
        self.get_node(source).buffer[message_id] = message
        self.messages_created += 1
        return message

    def tick(self) -> List["Candidate"]:
        """Run one decision pass on every node, in address order"""
        offered = []
        for node in self.nodes:
            offered.extend(node.router.update())
        return offered

    def delivered_ids(self) -> List[str]:
        """Ids of every message that has reached its destination"""
        return sorted(
            message_id
            for node in self.nodes
            for message_id in node.delivered
        )
