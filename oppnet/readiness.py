"""
oppnet Readiness Gate
======================
Defers speculative forwarding until the shared contact ledger is dense enough
for encounter-based utilities to mean anything.

The gate opens once fewer than N*N*zero_threshold ledger cells are still zero,
and never closes again. Like the ContactTracker, one gate is shared by every
policy in a simulation.
"""

import logging

from .config import GateConfig
from .contacts import ContactTracker

logger = logging.getLogger(__name__)


class ReadinessGate:
    """Encounter-saturation gate over a ContactTracker"""

    def __init__(self, config: GateConfig, tracker: ContactTracker):
        self.config = config
        self.tracker = tracker
        self.started = False

    @property
    def max_possible_zeroes(self) -> float:
        """Zero cells must drop strictly below this for the gate to open"""
        n = self.tracker.n_nodes
        return n * n * self.config.zero_threshold

    def observe(self) -> bool:
        """
        Re-check the ledger after a contact update.

        Returns:
            Whether the gate is open
        """
        if self.started:
            return True

        zeroes = self.tracker.zero_cells()
        if zeroes < self.max_possible_zeroes:
            self.started = True
            logger.info(
                "Readiness gate opened: %d zero cells < %.2f (N=%d, threshold=%.2f)",
                zeroes, self.max_possible_zeroes, self.tracker.n_nodes,
                self.config.zero_threshold
            )
        return self.started
