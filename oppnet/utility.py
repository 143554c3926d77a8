"""
oppnet Utility Estimators
==========================
Per-candidate scoring strategies, chosen once at configuration time.

- ProbabilisticUtility:      neighbour's delivery predictability for the destination
- EncounterDistanceUtility:  alpha(X) / dist(X), alpha(X) = count(D,X) / sum(D)
- MeanThresholdUtility:      gamma(X) = alpha(X) / beta(X) against the neighbourhood mean
- ClusterUtility:            2-means partition of neighbours on [encounters, distance]

Every estimator answers `assess(host, message, neighbours)` with one
Assessment per neighbour, in the order given. Any ratio with a zero
denominator scores 0.
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Type, TYPE_CHECKING
from scipy.cluster.vq import kmeans2

from .config import ClusterConfig, QueueMode, RouterConfig, Strategy
from .contacts import ContactTracker
from .contracts import DeliveryEstimate, NodeDirectory, ProtocolMismatchError

if TYPE_CHECKING:
    from .network import Message, Node
    from .policy import Candidate

logger = logging.getLogger(__name__)

FAVORABLE = "favorable"
UNFAVORABLE = "unfavorable"
FLOOD = "flood"


@dataclass
class Assessment:
    """Score and admission decision for one (message, neighbour) pair"""
    utility: float
    admitted: bool
    label: Optional[str] = None


def peer_estimate(node: "Node") -> DeliveryEstimate:
    """Delivery predictabilities of a peer, through its forwarding policy"""
    if node.router is None:
        raise ProtocolMismatchError(f"Node {node.address} has no forwarding policy")
    return node.router.delivery_estimate()


def queue_key(message: "Message", mode: QueueMode) -> Tuple[float, str]:
    """Sort key that orders equally ranked messages by queue mode"""
    if mode is QueueMode.LIFO:
        return (-message.receive_time, message.id)
    return (message.receive_time, message.id)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


class UtilityEstimator(ABC):
    """Base class for the forwarding utility strategies"""

    strategy: Strategy

    def __init__(self, tracker: ContactTracker, directory: NodeDirectory):
        self.tracker = tracker
        self.directory = directory

    @property
    def gated(self) -> bool:
        return self.strategy.gated

    @abstractmethod
    def assess(self, host: "Node", message: "Message",
               neighbors: Sequence["Node"]) -> List[Assessment]:
        """Score every neighbour for one message"""

    def order(self, candidates: List["Candidate"], queue_mode: QueueMode) -> List["Candidate"]:
        """Offer order. Discovery order unless a strategy ranks."""
        return list(candidates)

    def _alpha(self, node: "Node", destination: "Node") -> float:
        """Share of the destination's encounters that were with node"""
        return _ratio(
            self.tracker.get_count(destination.address, node.address),
            self.tracker.get_sum(destination.address),
        )


class ProbabilisticUtility(UtilityEstimator):
    """
    Forward to neighbours with a higher delivery predictability for the
    destination than our own. Ranked descending, ties by queue mode.
    """

    strategy = Strategy.PROBABILISTIC

    def assess(self, host, message, neighbors):
        own = peer_estimate(host).get_predictability(message.destination)
        assessments = []
        for neighbor in neighbors:
            theirs = peer_estimate(neighbor).get_predictability(message.destination)
            assessments.append(Assessment(utility=theirs, admitted=theirs > own))
        return assessments

    def order(self, candidates, queue_mode):
        return sorted(
            candidates,
            key=lambda c: (-c.utility,) + queue_key(c.message, queue_mode)
        )


class EncounterDistanceUtility(UtilityEstimator):
    """
    utility(X) = alpha(X) / dist(X, D).

    A message is offered to a neighbour whose utility is LOWER than the
    host's own.
    """

    strategy = Strategy.ENCOUNTER_DISTANCE

    def utility_for(self, node: "Node", destination: "Node") -> float:
        return _ratio(self._alpha(node, destination), node.distance_to(destination))

    def assess(self, host, message, neighbors):
        destination = self.directory.get_node(message.destination)
        own = self.utility_for(host, destination)
        assessments = []
        for neighbor in neighbors:
            utility = self.utility_for(neighbor, destination)
            assessments.append(Assessment(utility=utility, admitted=utility < own))
        return assessments


class MeanThresholdUtility(UtilityEstimator):
    """
    gamma(X) = alpha(X) / beta(X), beta(X) = dist(X, D) / sum of all nodes' dist to D.

    Neighbours above the neighbourhood's mean gamma are admitted. When none
    is, the message floods to every neighbour.
    """

    strategy = Strategy.MEAN_THRESHOLD

    def total_distance(self, destination: "Node") -> float:
        return float(sum(n.distance_to(destination) for n in self.directory.all_nodes()))

    def gamma_for(self, node: "Node", destination: "Node", total_distance: float) -> float:
        beta = _ratio(node.distance_to(destination), total_distance)
        return _ratio(self._alpha(node, destination), beta)

    def assess(self, host, message, neighbors):
        if not neighbors:
            return []
        destination = self.directory.get_node(message.destination)
        total_distance = self.total_distance(destination)

        gammas = [self.gamma_for(n, destination, total_distance) for n in neighbors]
        threshold = float(np.mean(gammas))

        admitted = [g > threshold for g in gammas]
        if not any(admitted):
            return [Assessment(utility=g, admitted=True, label=FLOOD) for g in gammas]
        return [Assessment(utility=g, admitted=a) for g, a in zip(gammas, admitted)]


class ClusterUtility(UtilityEstimator):
    """
    Partition neighbours into favorable / unfavorable groups with 2-means on
    [encounters(neighbour, D), dist(neighbour, D)].

    The favorable group has the smaller mean distance; ties go to the larger
    mean encounter count. Labels are diagnostic only: every neighbour is
    admitted.
    """

    strategy = Strategy.CLUSTER

    def __init__(self, tracker: ContactTracker, directory: NodeDirectory,
                 config: Optional[ClusterConfig] = None):
        super().__init__(tracker, directory)
        self.config = config or ClusterConfig()

    def features(self, destination: "Node", neighbors: Sequence["Node"]) -> np.ndarray:
        return np.array(
            [[self.tracker.get_count(n.address, destination.address),
              n.distance_to(destination)] for n in neighbors],
            dtype=np.float64,
        ).reshape(-1, 2)

    @staticmethod
    def normalize(features: np.ndarray) -> np.ndarray:
        """Min-max scale each column; constant columns become 0"""
        low = features.min(axis=0)
        span = features.max(axis=0) - low
        span[span == 0] = 1.0
        return (features - low) / span

    def partition(self, features: np.ndarray) -> np.ndarray:
        """
        Boolean mask of the favorable rows.

        Fewer than two distinct rows cannot be split; all rows are favorable.
        """
        n_rows = len(features)
        if n_rows < 2 or len(np.unique(features, axis=0)) < 2:
            return np.ones(n_rows, dtype=bool)

        data = self.normalize(features) if self.config.normalize_features else features

        # Deterministic seeds: first row and the row farthest from it
        farthest = int(np.argmax(np.linalg.norm(data - data[0], axis=1)))
        init = data[[0, farthest]]
        _, labels = kmeans2(data, init, iter=self.config.max_iter, minit="matrix")

        groups = [labels == k for k in range(self.config.n_clusters)]
        if not all(g.any() for g in groups):
            return np.ones(n_rows, dtype=bool)

        mean_encounters = [features[g, 0].mean() for g in groups]
        mean_distance = [features[g, 1].mean() for g in groups]

        if mean_distance[0] < mean_distance[1]:
            favorable = 0
        elif mean_distance[0] > mean_distance[1]:
            favorable = 1
        else:
            favorable = 0 if mean_encounters[0] > mean_encounters[1] else 1

        return groups[favorable]

    def assess(self, host, message, neighbors):
        if not neighbors:
            return []
        destination = self.directory.get_node(message.destination)
        mask = self.partition(self.features(destination, neighbors))

        logger.debug("Message %s at node %d: %d/%d neighbours favorable",
                     message.id, host.address, int(mask.sum()), len(neighbors))

        return [
            Assessment(utility=1.0 if fav else 0.0, admitted=True,
                       label=FAVORABLE if fav else UNFAVORABLE)
            for fav in mask
        ]


ESTIMATORS: Dict[Strategy, Type[UtilityEstimator]] = {
    Strategy.PROBABILISTIC: ProbabilisticUtility,
    Strategy.ENCOUNTER_DISTANCE: EncounterDistanceUtility,
    Strategy.MEAN_THRESHOLD: MeanThresholdUtility,
    Strategy.CLUSTER: ClusterUtility,
}


def create_estimator(config: RouterConfig, tracker: ContactTracker,
                     directory: NodeDirectory) -> UtilityEstimator:
    """Build the estimator selected by config.strategy"""
    if config.strategy is Strategy.CLUSTER:
        return ClusterUtility(tracker, directory, config.cluster)
    return ESTIMATORS[config.strategy](tracker, directory)
