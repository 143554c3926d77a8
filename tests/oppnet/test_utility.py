"""
Unit tests for oppnet/utility.py

Tests the four forwarding utility strategies.
"""

import pytest
import numpy as np
from oppnet.config import ClusterConfig, QueueMode, Strategy
from oppnet.contracts import ProtocolMismatchError
from oppnet.network import Connection, Message
from oppnet.policy import Candidate
from oppnet.utility import (
    FAVORABLE, FLOOD, UNFAVORABLE, ClusterUtility, EncounterDistanceUtility,
    MeanThresholdUtility, ProbabilisticUtility, create_estimator, peer_estimate,
    queue_key
)


def _message(destination, message_id="M1", receive_time=0.0):
    return Message(message_id, 0, destination, receive_time)


class TestHelpers:
    """Tests for shared helpers"""

    def test_queue_key_fifo(self):
        older = _message(1, "B", receive_time=5.0)
        newer = _message(1, "A", receive_time=10.0)
        assert queue_key(older, QueueMode.FIFO) < queue_key(newer, QueueMode.FIFO)

    def test_queue_key_lifo(self):
        older = _message(1, "B", receive_time=5.0)
        newer = _message(1, "A", receive_time=10.0)
        assert queue_key(newer, QueueMode.LIFO) < queue_key(older, QueueMode.LIFO)

    def test_queue_key_ties_by_id(self):
        a = _message(1, "A", receive_time=5.0)
        b = _message(1, "B", receive_time=5.0)
        assert queue_key(a, QueueMode.LIFO) < queue_key(b, QueueMode.LIFO)

    def test_peer_estimate_without_router(self, make_network, line_locations):
        net = make_network(line_locations)
        net.nodes[1].router = None
        with pytest.raises(ProtocolMismatchError):
            peer_estimate(net.nodes[1])

    @pytest.mark.parametrize("strategy, cls", [
        (Strategy.PROBABILISTIC, ProbabilisticUtility),
        (Strategy.ENCOUNTER_DISTANCE, EncounterDistanceUtility),
        (Strategy.MEAN_THRESHOLD, MeanThresholdUtility),
        (Strategy.CLUSTER, ClusterUtility),
    ])
    def test_create_estimator(self, make_network, line_locations, strategy, cls):
        net = make_network(line_locations, strategy)
        estimator = create_estimator(net.config, net.tracker, net)
        assert isinstance(estimator, cls)
        assert estimator.gated == strategy.gated


class TestProbabilisticUtility:
    """Tests for predictability comparison"""

    def test_admits_higher_predictability(self, make_network, line_locations):
        net = make_network(line_locations)
        net.nodes[1].predictability.record_contact(2)

        estimator = ProbabilisticUtility(net.tracker, net)
        [assessment] = estimator.assess(net.nodes[0], _message(2), [net.nodes[1]])

        assert assessment.utility == pytest.approx(0.75)
        assert assessment.admitted is True

    def test_rejects_equal_predictability(self, make_network, line_locations):
        net = make_network(line_locations)
        estimator = ProbabilisticUtility(net.tracker, net)
        [assessment] = estimator.assess(net.nodes[0], _message(2), [net.nodes[1]])

        assert assessment.utility == 0.0
        assert assessment.admitted is False

    def test_rejects_lower_predictability(self, make_network, line_locations):
        net = make_network(line_locations)
        net.nodes[0].predictability.record_contact(2)
        net.nodes[1].predictability.record_contact(2)
        net.nodes[0].predictability.record_contact(2)

        estimator = ProbabilisticUtility(net.tracker, net)
        [assessment] = estimator.assess(net.nodes[0], _message(2), [net.nodes[1]])
        assert assessment.admitted is False

    def test_order_descending_then_queue_mode(self):
        con = Connection(0, 1)
        low_old = Candidate(_message(2, "A", 0.0), con, 0, utility=0.5)
        high = Candidate(_message(2, "B", 5.0), con, 0, utility=0.9)
        low_new = Candidate(_message(2, "C", 10.0), con, 0, utility=0.5)
        candidates = [low_new, high, low_old]

        estimator = ProbabilisticUtility(None, None)
        fifo = estimator.order(candidates, QueueMode.FIFO)
        lifo = estimator.order(candidates, QueueMode.LIFO)

        assert [c.message.id for c in fifo] == ["B", "A", "C"]
        assert [c.message.id for c in lifo] == ["B", "C", "A"]


class TestEncounterDistanceUtility:
    """Tests for alpha / distance scoring"""

    @pytest.fixture
    def net(self, make_network):
        # Distances to node 2: node 0 -> 10, node 1 -> 5
        net = make_network([(0.0, 0.0), (3.0, 4.0), (6.0, 8.0)], Strategy.ENCOUNTER_DISTANCE)
        net.tracker.record_encounter(2, 0)
        for _ in range(3):
            net.tracker.record_encounter(2, 1)
        return net

    def test_utility_values(self, net):
        estimator = EncounterDistanceUtility(net.tracker, net)
        dest = net.nodes[2]
        assert estimator.utility_for(net.nodes[0], dest) == pytest.approx(0.025)
        assert estimator.utility_for(net.nodes[1], dest) == pytest.approx(0.15)

    def test_admits_lower_utility(self, net):
        """The neighbour is admitted when its utility is below the host's"""
        estimator = EncounterDistanceUtility(net.tracker, net)
        [assessment] = estimator.assess(net.nodes[1], _message(2), [net.nodes[0]])
        assert assessment.utility == pytest.approx(0.025)
        assert assessment.admitted is True

    def test_rejects_higher_utility(self, net):
        estimator = EncounterDistanceUtility(net.tracker, net)
        [assessment] = estimator.assess(net.nodes[0], _message(2), [net.nodes[1]])
        assert assessment.admitted is False

    def test_unseen_destination_scores_zero(self, make_network, line_locations):
        net = make_network(line_locations, Strategy.ENCOUNTER_DISTANCE)
        estimator = EncounterDistanceUtility(net.tracker, net)
        assert estimator.utility_for(net.nodes[0], net.nodes[2]) == 0.0

    def test_zero_distance_scores_zero(self, net):
        estimator = EncounterDistanceUtility(net.tracker, net)
        assert estimator.utility_for(net.nodes[2], net.nodes[2]) == 0.0


class TestMeanThresholdUtility:
    """Tests for gamma against the neighbourhood mean"""

    @pytest.fixture
    def net(self, make_network):
        # Distances to node 3: 100, 10, 20, 0 (total 130)
        return make_network([(100.0, 0.0), (10.0, 0.0), (20.0, 0.0), (0.0, 0.0)],
                            Strategy.MEAN_THRESHOLD)

    def test_gamma_values(self, net):
        for _ in range(2):
            net.tracker.record_encounter(3, 1)
            net.tracker.record_encounter(3, 2)
        estimator = MeanThresholdUtility(net.tracker, net)
        dest = net.nodes[3]
        total = estimator.total_distance(dest)

        assert total == pytest.approx(130.0)
        assert estimator.gamma_for(net.nodes[1], dest, total) == pytest.approx(6.5)
        assert estimator.gamma_for(net.nodes[2], dest, total) == pytest.approx(3.25)

    def test_admits_above_mean(self, net):
        for _ in range(2):
            net.tracker.record_encounter(3, 1)
            net.tracker.record_encounter(3, 2)
        estimator = MeanThresholdUtility(net.tracker, net)
        first, second = estimator.assess(net.nodes[0], _message(3), [net.nodes[1], net.nodes[2]])

        assert first.admitted is True
        assert second.admitted is False
        assert first.label is None

    def test_floods_when_none_above_mean(self, net):
        estimator = MeanThresholdUtility(net.tracker, net)
        assessments = estimator.assess(net.nodes[0], _message(3), [net.nodes[1], net.nodes[2]])

        assert all(a.admitted for a in assessments)
        assert all(a.label == FLOOD for a in assessments)
        assert all(a.utility == 0.0 for a in assessments)

    def test_no_neighbors(self, net):
        estimator = MeanThresholdUtility(net.tracker, net)
        assert estimator.assess(net.nodes[0], _message(3), []) == []


class TestClusterUtility:
    """Tests for the 2-means neighbour partition"""

    def test_partitions_by_distance(self, make_network):
        net = make_network([(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (100.0, 0.0),
                            (101.0, 0.0), (50.0, 0.0)], Strategy.CLUSTER)
        estimator = ClusterUtility(net.tracker, net)
        neighbors = net.nodes[1:5]
        assessments = estimator.assess(net.nodes[5], _message(0), neighbors)

        assert [a.label for a in assessments] == [FAVORABLE, FAVORABLE, UNFAVORABLE, UNFAVORABLE]
        assert [a.utility for a in assessments] == [1.0, 1.0, 0.0, 0.0]
        assert all(a.admitted for a in assessments)

    def test_distance_tie_prefers_more_encounters(self, make_network):
        net = make_network([(0.0, 0.0), (3.0, 4.0), (4.0, 3.0), (5.0, 0.0),
                            (0.0, 5.0), (50.0, 50.0)], Strategy.CLUSTER)
        for _ in range(10):
            net.tracker.record_encounter(1, 0)
            net.tracker.record_encounter(2, 0)
        estimator = ClusterUtility(net.tracker, net)
        mask = estimator.partition(estimator.features(net.nodes[0], net.nodes[1:5]))

        assert mask.tolist() == [True, True, False, False]

    def test_features(self, make_network):
        net = make_network([(0.0, 0.0), (3.0, 4.0), (10.0, 0.0)], Strategy.CLUSTER)
        net.tracker.record_encounter(1, 0)
        estimator = ClusterUtility(net.tracker, net)
        features = estimator.features(net.nodes[0], [net.nodes[1], net.nodes[2]])
        np.testing.assert_allclose(features, [[1.0, 5.0], [0.0, 10.0]])

    def test_identical_rows_all_favorable(self, make_network):
        estimator = ClusterUtility(None, None)
        mask = estimator.partition(np.array([[0.0, 5.0], [0.0, 5.0], [0.0, 5.0]]))
        assert mask.tolist() == [True, True, True]

    def test_single_neighbor_favorable(self):
        estimator = ClusterUtility(None, None)
        assert estimator.partition(np.array([[3.0, 7.0]])).tolist() == [True]

    def test_normalize(self):
        scaled = ClusterUtility.normalize(np.array([[0.0, 10.0], [5.0, 10.0], [10.0, 10.0]]))
        np.testing.assert_allclose(scaled, [[0.0, 0.0], [0.5, 0.0], [1.0, 0.0]])

    def test_normalized_partition(self, make_network):
        net = make_network([(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (100.0, 0.0),
                            (101.0, 0.0), (50.0, 0.0)], Strategy.CLUSTER)
        estimator = ClusterUtility(net.tracker, net, ClusterConfig(normalize_features=True))
        mask = estimator.partition(estimator.features(net.nodes[0], net.nodes[1:5]))
        assert mask.tolist() == [True, True, False, False]
