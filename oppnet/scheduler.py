"""
oppnet Reference Transfer Scheduler
====================================
Minimal TransferScheduler used by the trace runner and the tests.

Transfers complete instantly: an accepted candidate copies the message into
the receiver's buffer (or its delivered set when the receiver is the
destination). Each connection accepts a bounded number of transfers per
offer, standing in for the bandwidth rules of a real scheduler.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .contracts import Clock, NodeDirectory
    from .policy import Candidate

logger = logging.getLogger(__name__)


class InstantTransferScheduler:
    """Accepts candidates in order until each connection's budget is spent"""

    def __init__(self, directory: "NodeDirectory", clock: "Clock",
                 max_transfers_per_connection: int = 1):
        self.directory = directory
        self.clock = clock
        self.max_transfers_per_connection = max_transfers_per_connection

        # Statistics
        self.total_offered = 0
        self.total_transferred = 0

    def offer(self, candidates: Sequence["Candidate"]) -> List[bool]:
        """
        Attempt each candidate in order.

        Returns:
            One success flag per candidate
        """
        used: Dict[Tuple[int, int], int] = defaultdict(int)
        results = []

        for cand in candidates:
            self.total_offered += 1
            con = cand.connection

            if not con.up or used[con.key] >= self.max_transfers_per_connection:
                results.append(False)
                continue

            sender = self.directory.get_node(cand.sender)
            receiver = self.directory.get_node(cand.receiver)

            if sender.transferring or receiver.transferring:
                results.append(False)
                continue
            if receiver.has_message(cand.message.id):
                results.append(False)
                continue

            receiver.receive(cand.message, self.clock.now())
            used[con.key] += 1
            self.total_transferred += 1
            results.append(True)

            logger.debug("Transferred %s: %d -> %d (utility=%.4f)",
                         cand.message.id, cand.sender, cand.receiver, cand.utility)

        return results
