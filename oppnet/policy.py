"""
oppnet Forwarding Policy
=========================
Per-node orchestration of the forwarding decision.

On every connection-up event:
1. Record the encounter in the shared ContactTracker
2. Re-check the shared ReadinessGate (gated strategies)
3. Update delivery predictabilities, direct and transitive (probabilistic)

On every tick:
1. Skip when transferring or when there is nothing to send
2. Offer messages addressed to a neighbour first; stop if any is delivered
3. Stop while the readiness gate is closed (gated strategies)
4. Score every (message, neighbour) pair and keep the admitted ones
5. Order them and hand them to the TransferScheduler
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple, TYPE_CHECKING

from .config import RouterConfig, Strategy
from .contacts import ContactTracker
from .contracts import (
    Clock, DeliveryEstimate, NodeDirectory, ProtocolMismatchError,
    TransferScheduler, assert_delivery_estimate
)
from .readiness import ReadinessGate
from .utility import UtilityEstimator, create_estimator, peer_estimate

if TYPE_CHECKING:
    from .network import Connection, Message, Node

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """A (message, connection) pair offered this tick. Never persisted."""
    message: "Message"
    connection: "Connection"
    sender: int
    utility: float
    label: Optional[str] = None

    @property
    def receiver(self) -> int:
        return self.connection.other(self.sender)


class ForwardingPolicy:
    """
    Decision logic for one node.

    The tracker and gate are shared by every policy of a simulation; the
    predictability table belongs to the node.
    """

    def __init__(self, node: "Node", config: RouterConfig, tracker: ContactTracker,
                 gate: ReadinessGate, directory: NodeDirectory,
                 scheduler: TransferScheduler, clock: Clock,
                 estimator: Optional[UtilityEstimator] = None):
        config.validate()
        self.node = node
        self.config = config
        self.tracker = tracker
        self.gate = gate
        self.directory = directory
        self.scheduler = scheduler
        self.clock = clock
        self.estimator = estimator or create_estimator(config, tracker, directory)

        # Bookkeeping from scheduler outcomes
        self.delivered_ids: Set[str] = set()

        # Diagnostics
        self.last_candidates: List[Candidate] = []
        self.last_partitions: Dict[str, Dict[int, str]] = {}

        # Statistics
        self.ticks = 0
        self.skipped_ticks = 0
        self.total_offered = 0
        self.total_transferred = 0

    @property
    def strategy(self) -> Strategy:
        return self.estimator.strategy

    def delivery_estimate(self) -> DeliveryEstimate:
        """This node's predictability table, for peers running the probabilistic strategy"""
        if self.strategy is not Strategy.PROBABILISTIC:
            raise ProtocolMismatchError(
                f"Node {self.node.address} runs the {self.strategy.value} strategy "
                f"and keeps no delivery predictabilities"
            )
        return assert_delivery_estimate(self.node.predictability, self.node.address)

    # Contact events

    def changed_connection(self, con: "Connection"):
        """React to a connection of this node going up or down"""
        if not con.up:
            return

        other = self.directory.get_node(con.other(self.node.address))

        peer = None
        if self.strategy is Strategy.PROBABILISTIC:
            # Fail before touching any state
            self.delivery_estimate()
            peer = peer_estimate(other)

        self.tracker.record_encounter(
            self.node.address, other.address, symmetric=other.router is self
        )
        if self.estimator.gated and not self.gate.started:
            self.gate.observe()

        if peer is not None:
            store = self.node.predictability
            store.record_contact(other.address)
            store.update_transitive(other.address, peer.get_delivery_table())

    # Tick

    def is_transferring(self) -> bool:
        return self.node.transferring

    def pending_messages(self) -> List["Message"]:
        """Buffered messages not yet known to be delivered"""
        return [m for m in self.node.messages() if m.id not in self.delivered_ids]

    def live_neighbors(self) -> List[Tuple["Connection", "Node"]]:
        return [
            (con, self.directory.get_node(con.other(self.node.address)))
            for con in self.node.connections
            if con.up
        ]

    def can_start_transfer(self) -> bool:
        return bool(self.node.connections) and bool(self.pending_messages())

    def update(self) -> List[Candidate]:
        """
        One decision pass.

        Returns:
            Every candidate offered to the scheduler this tick, in offer order
        """
        self.ticks += 1
        self.last_candidates = []
        self.last_partitions = {}

        if self.is_transferring() or not self.can_start_transfer():
            self.skipped_ticks += 1
            return []

        offered = []

        direct = self.deliverable_candidates()
        if direct:
            offered.extend(direct)
            if any(self._offer(direct)):
                self.last_candidates = offered
                return offered

        if self.estimator.gated and not self.gate.started:
            self.last_candidates = offered
            return offered

        forward = self.estimator.order(self.forward_candidates(), self.config.queue_mode)
        if forward:
            offered.extend(forward)
            self._offer(forward)

        self.last_candidates = offered
        return offered

    def deliverable_candidates(self) -> List[Candidate]:
        """Messages whose final recipient is a connected neighbour"""
        candidates = []
        for con, neighbor in self.live_neighbors():
            if neighbor.transferring:
                continue
            for message in self.pending_messages():
                if message.destination != neighbor.address:
                    continue
                if neighbor.has_message(message.id):
                    continue
                candidates.append(Candidate(message, con, self.node.address, utility=1.0))
        return candidates

    def forward_candidates(self) -> List[Candidate]:
        """Admitted candidates for every buffered message, in discovery order"""
        neighbors = self.live_neighbors()
        if not neighbors:
            return []

        candidates = []
        self.last_partitions = {}
        nodes = [neighbor for _, neighbor in neighbors]

        for message in self.pending_messages():
            assessments = self.estimator.assess(self.node, message, nodes)

            labels = {
                neighbor.address: a.label
                for neighbor, a in zip(nodes, assessments)
                if a.label is not None
            }
            if labels:
                self.last_partitions[message.id] = labels

            for (con, neighbor), assessment in zip(neighbors, assessments):
                if neighbor.transferring or neighbor.has_message(message.id):
                    continue
                if not assessment.admitted:
                    continue
                candidates.append(Candidate(
                    message, con, self.node.address,
                    utility=assessment.utility, label=assessment.label
                ))

        return candidates

    def _offer(self, candidates: List[Candidate]) -> List[bool]:
        results = self.scheduler.offer(candidates)
        self.total_offered += len(candidates)

        for cand, ok in zip(candidates, results):
            if not ok:
                continue
            self.total_transferred += 1
            if cand.message.destination == cand.receiver:
                self.delivered_ids.add(cand.message.id)
                logger.debug("Node %d delivered %s to its destination %d",
                             self.node.address, cand.message.id, cand.receiver)

        return results

    def get_statistics(self) -> Dict[str, int]:
        """Per-node counters for reporting"""
        return {
            "ticks": self.ticks,
            "skipped_ticks": self.skipped_ticks,
            "offered": self.total_offered,
            "transferred": self.total_transferred,
            "delivered": len(self.delivered_ids),
        }
