"""
Unit tests for oppnet/predictability.py

Tests delivery predictability updates, aging and transitivity.
"""

import pytest
from oppnet.config import PredictabilityConfig
from oppnet.contracts import ConfigurationError, DeliveryEstimate
from oppnet.predictability import PredictabilityStore


class TestConstruction:
    """Tests for store setup"""

    def test_requires_time_unit(self, clock):
        with pytest.raises(ConfigurationError):
            PredictabilityStore(0, PredictabilityConfig(), clock)

    def test_rejects_non_positive_time_unit(self, clock):
        with pytest.raises(ConfigurationError):
            PredictabilityStore(0, PredictabilityConfig(seconds_in_time_unit=0), clock)

    def test_empty_table(self, store):
        assert len(store) == 0
        assert store.get_predictability(3) == 0.0

    def test_satisfies_delivery_estimate(self, store):
        assert isinstance(store, DeliveryEstimate)


class TestDirectUpdate:
    """Tests for P(a,b) = P_old + (1 - P_old) * P_INIT"""

    def test_first_contact(self, store):
        """A never-seen peer gets exactly P_INIT"""
        store.record_contact(1)
        assert store.get_predictability(1) == pytest.approx(0.75)

    def test_repeated_contact(self, store):
        store.record_contact(1)
        store.record_contact(1)
        assert store.get_predictability(1) == pytest.approx(0.75 + 0.25 * 0.75)

    def test_contact_creates_entry(self, store):
        store.record_contact(2)
        assert 2 in store
        assert 1 not in store


class TestAging:
    """Tests for P = P_old * GAMMA^k"""

    def test_idempotent_at_same_time(self, store, clock):
        """Aging twice without elapsed time changes nothing"""
        store.record_contact(1)
        clock.set_time(45.0)
        store.age()
        first = dict(store.preds)
        store.age()
        store.age(45.0)
        assert store.preds == first

    def test_one_time_unit(self, store, clock, seconds_in_time_unit):
        """predictability(t + unit) == predictability(t) * 0.98"""
        store.record_contact(1)
        before = store.get_predictability(1)
        clock.advance(seconds_in_time_unit)
        assert store.get_predictability(1) == pytest.approx(before * 0.98)

    def test_multiple_time_units(self, store, clock, seconds_in_time_unit):
        store.record_contact(1)
        clock.advance(3 * seconds_in_time_unit)
        assert store.get_predictability(1) == pytest.approx(0.75 * 0.98 ** 3)

    def test_fractional_time_unit(self, store, clock, seconds_in_time_unit):
        store.record_contact(1)
        clock.advance(seconds_in_time_unit / 2)
        assert store.get_predictability(1) == pytest.approx(0.75 * 0.98 ** 0.5)

    def test_aging_is_path_independent(self, store, clock, seconds_in_time_unit):
        """Reading in between does not change where the value ends up"""
        store.record_contact(1)
        clock.advance(seconds_in_time_unit)
        store.get_predictability(1)
        clock.advance(seconds_in_time_unit)
        assert store.get_predictability(1) == pytest.approx(0.75 * 0.98 ** 2)

    def test_read_moves_last_aged_timestamp(self, store, clock):
        store.record_contact(1)
        clock.set_time(90.0)
        store.get_predictability(1)
        assert store.last_age_update == 90.0

    def test_earlier_time_is_noop(self, store, clock):
        clock.set_time(60.0)
        store.record_contact(1)
        store.age(30.0)
        assert store.preds[1] == pytest.approx(0.75)
        assert store.last_age_update == 60.0

    def test_contact_ages_first(self, store, clock, seconds_in_time_unit):
        store.record_contact(1)
        clock.advance(seconds_in_time_unit)
        store.record_contact(1)
        old = 0.75 * 0.98
        assert store.get_predictability(1) == pytest.approx(old + (1 - old) * 0.75)

    def test_end_to_end_decay(self, store, clock, seconds_in_time_unit):
        """A meets B at t=0; one time unit later P(A,B) == 0.735"""
        store.record_contact(1, now=0.0)
        assert store.get_predictability(1) == pytest.approx(0.75)
        clock.set_time(seconds_in_time_unit)
        assert store.get_predictability(1) == pytest.approx(0.735)


class TestTransitivity:
    """Tests for P(a,c) = P_old + (1 - P_old) * P(a,b) * P(b,c) * BETA"""

    def test_transitive_arithmetic(self, store):
        """p(a,b)=0.75, p(b,c)=0.5, beta=0.25 gives p(a,c)=0.09375"""
        store.record_contact(1)
        store.update_transitive(1, {2: 0.5})
        assert store.get_predictability(2) == pytest.approx(0.09375)

    def test_existing_entry_raised(self, store):
        store.record_contact(1)
        store.record_contact(2)
        store.update_transitive(1, {2: 0.5})
        expected = 0.75 + (1 - 0.75) * 0.75 * 0.5 * 0.25
        assert store.get_predictability(2) == pytest.approx(expected)

    def test_self_entry_skipped(self, store):
        """The peer's belief about us never lands in our own table"""
        store.record_contact(1)
        store.update_transitive(1, {0: 0.9, 2: 0.5})
        assert 0 not in store
        assert 2 in store

    def test_beta_override(self, store):
        store.record_contact(1)
        store.update_transitive(1, {2: 0.5}, beta=0.5)
        assert store.get_predictability(2) == pytest.approx(0.75 * 0.5 * 0.5)

    def test_unknown_peer_contributes_nothing(self, store):
        """Without P(a,b) the transitive term is zero, but the entry exists"""
        store.update_transitive(1, {2: 0.5})
        assert store.get_predictability(2) == 0.0
        assert 2 in store


class TestReporting:
    """Tests for diagnostic snapshots"""

    def test_delivery_table_is_copy(self, store):
        store.record_contact(1)
        table = store.get_delivery_table()
        table[1] = 0.0
        assert store.get_predictability(1) == pytest.approx(0.75)

    def test_snapshot_sorted_and_aged(self, store, clock, seconds_in_time_unit):
        store.record_contact(3)
        store.record_contact(1)
        clock.advance(seconds_in_time_unit)
        snapshot = store.snapshot()
        assert [t for t, _ in snapshot] == [1, 3]
        assert snapshot[0][1] == pytest.approx(0.735)

    def test_routing_info(self, store):
        store.record_contact(1)
        assert store.routing_info() == ["1 delivery prediction(s)", "1 : 0.750000"]
