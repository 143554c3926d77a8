"""
oppnet Contact Ledger
======================
Shared record of how often node pairs have met.

One ContactTracker is created per simulation and injected into every node's
forwarding policy. Encounter statistics describe node pairs, not individual
routers, so per-node copies would drift apart.

- count[a][b]: encounters recorded from a's side with b
- sum[a]: total encounters recorded for a
"""

import logging
import numpy as np
from typing import Tuple

logger = logging.getLogger(__name__)


class ContactTracker:
    """
    Pairwise encounter counts and per-node encounter totals.

    Counts only ever increase. Every accessor is total: unseen pairs and
    addresses outside the ledger read as 0.
    """

    def __init__(self, n_nodes: int):
        if n_nodes < 0:
            raise ValueError(f"n_nodes must be non-negative, got {n_nodes}")
        self.n_nodes = n_nodes
        self.counts = np.zeros((n_nodes, n_nodes), dtype=np.int64)
        self.sums = np.zeros(n_nodes, dtype=np.int64)

        # Statistics
        self.total_encounters = 0

    def _grow(self, n_nodes: int):
        """Extend the ledger to hold addresses below n_nodes, keeping counts"""
        if n_nodes <= self.n_nodes:
            return
        counts = np.zeros((n_nodes, n_nodes), dtype=np.int64)
        counts[:self.n_nodes, :self.n_nodes] = self.counts
        sums = np.zeros(n_nodes, dtype=np.int64)
        sums[:self.n_nodes] = self.sums

        logger.debug("Contact ledger grown from %d to %d nodes", self.n_nodes, n_nodes)
        self.counts = counts
        self.sums = sums
        self.n_nodes = n_nodes

    def record_encounter(self, a: int, b: int, symmetric: bool = False):
        """
        Record that a met b.

        Asymmetric by default: only count[a][b] and sum[a] move, because the
        peer's own policy records the reverse direction when it sees the same
        connection. When both endpoints are driven by one policy instance that
        second notification never happens, so the caller passes symmetric=True
        and both directions are recorded here.
        """
        if a < 0 or b < 0:
            raise ValueError(f"Node addresses must be non-negative, got ({a}, {b})")
        self._grow(max(a, b) + 1)

        self.counts[a, b] += 1
        self.sums[a] += 1
        if symmetric:
            self.counts[b, a] += 1
            self.sums[b] += 1

        self.total_encounters += 1

    def _in_range(self, *addresses: int) -> bool:
        return all(0 <= addr < self.n_nodes for addr in addresses)

    def get_count(self, a: int, b: int) -> int:
        """Encounters recorded from a's side with b"""
        if not self._in_range(a, b):
            return 0
        return int(self.counts[a, b])

    def get_sum(self, a: int) -> int:
        """Total encounters recorded for a"""
        if not self._in_range(a):
            return 0
        return int(self.sums[a])

    def zero_cells(self) -> int:
        """Number of ledger cells (including the diagonal) never incremented"""
        return int(np.count_nonzero(self.counts == 0))

    def coverage(self) -> float:
        """Fraction of ledger cells with at least one encounter"""
        cells = self.n_nodes * self.n_nodes
        if cells == 0:
            return 0.0
        return 1.0 - self.zero_cells() / cells

    def matrix(self) -> np.ndarray:
        """Copy of the count matrix for reporting"""
        return self.counts.copy()

    def busiest_pair(self) -> Tuple[int, int, int]:
        """(a, b, count) of the most frequently recorded pair"""
        if self.n_nodes == 0:
            return (0, 0, 0)
        a, b = np.unravel_index(int(np.argmax(self.counts)), self.counts.shape)
        return int(a), int(b), int(self.counts[a, b])

    def reset(self):
        """Forget all encounters, keeping the ledger size"""
        self.counts[:] = 0
        self.sums[:] = 0
        self.total_encounters = 0
