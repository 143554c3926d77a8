"""
oppnet Delivery Predictability
===============================
Per-node table of delivery predictabilities with lazy aging.

Update rules:
- Contact:     P(a,b) = P(a,b)_old + (1 - P(a,b)_old) * P_INIT
- Aging:       P(a,b) = P(a,b)_old * GAMMA^k, k = elapsed time units
- Transitive:  P(a,c) = P(a,c)_old + (1 - P(a,c)_old) * P(a,b) * P(b,c) * BETA

Aging is applied on every read. Reading twice at the same simulated time
changes nothing; reading after the clock moved decays every entry first.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from .config import PredictabilityConfig
from .contracts import Clock, ConfigurationError

logger = logging.getLogger(__name__)


class PredictabilityStore:
    """
    One node's beliefs about delivery chances towards every node it has heard of.

    Entries are created on first contact (direct or transitive), mutated on
    every contact and every read, and never deleted. Values are not clamped.
    """

    def __init__(self, owner: int, config: PredictabilityConfig, clock: Clock):
        if config.seconds_in_time_unit is None or config.seconds_in_time_unit <= 0:
            raise ConfigurationError(
                f"seconds_in_time_unit must be a positive integer, "
                f"got {config.seconds_in_time_unit!r}"
            )
        self.owner = owner
        self.config = config
        self.clock = clock

        self.preds: Dict[int, float] = {}
        self.last_age_update = 0.0

    def age(self, now: Optional[float] = None):
        """
        Age all entries by GAMMA^k where k is the number of time units since
        the last aging. No-op unless time has moved forward.
        """
        if now is None:
            now = self.clock.now()
        time_diff = (now - self.last_age_update) / self.config.seconds_in_time_unit

        if time_diff <= 0:
            return

        mult = self.config.gamma ** time_diff
        for target in self.preds:
            self.preds[target] *= mult

        self.last_age_update = now

    def get_predictability(self, target: int) -> float:
        """Current P(owner, target), or 0 if never learned"""
        self.age()
        return self.preds.get(target, 0.0)

    def record_contact(self, peer: int, now: Optional[float] = None):
        """Direct update for a peer we just met"""
        self.age(now)
        old_value = self.preds.get(peer, 0.0)
        self.preds[peer] = old_value + (1 - old_value) * self.config.p_init

    def update_transitive(self, peer: int, peer_table: Mapping[int, float],
                          beta: Optional[float] = None):
        """
        Transitive (A->B->C) update from the table of the peer B we just met.

        The entry for this node itself is never touched.
        """
        if beta is None:
            beta = self.config.beta

        p_for_peer = self.get_predictability(peer)  # P(a,b)

        for target, p_peer_target in peer_table.items():
            if target == self.owner:
                continue

            p_old = self.get_predictability(target)  # P(a,c)_old
            self.preds[target] = p_old + (1 - p_old) * p_for_peer * p_peer_target * beta

    def get_delivery_table(self) -> Dict[int, float]:
        """Aged copy of the whole table"""
        self.age()
        return dict(self.preds)

    def snapshot(self) -> List[Tuple[int, float]]:
        """(target, score) pairs sorted by target, for external reporting"""
        return sorted(self.get_delivery_table().items())

    def routing_info(self) -> List[str]:
        """Human readable dump of the table"""
        table = self.snapshot()
        lines = [f"{len(table)} delivery prediction(s)"]
        lines.extend("%s : %.6f" % (target, value) for target, value in table)
        return lines

    def __len__(self) -> int:
        return len(self.preds)

    def __contains__(self, target: int) -> bool:
        return target in self.preds
