"""
oppnet Visualization
=====================
Diagnostic plots of the shared contact ledger, a node's predictability
table, and per-tick offer counts from a trace replay.
"""

import numpy as np
from typing import Any, Dict, Optional

from .contacts import ContactTracker
from .predictability import PredictabilityStore

try:
    import matplotlib.pyplot as plt
    MATPLOTLIB_AVAILABLE = True
except ImportError:
    MATPLOTLIB_AVAILABLE = False


def _require_matplotlib():
    if not MATPLOTLIB_AVAILABLE:
        raise ImportError("matplotlib is required for plotting. "
                          "Install with: pip install matplotlib")


def _finish(fig, output_path: Optional[str]):
    if output_path:
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
    return fig


def plot_contact_ledger(tracker: ContactTracker, output_path: Optional[str] = None):
    """Heatmap of count[a][b]"""
    _require_matplotlib()

    fig, ax = plt.subplots(figsize=(7, 6))
    im = ax.imshow(tracker.matrix(), cmap="viridis", origin="upper")
    fig.colorbar(im, ax=ax, label="Encounters")

    ax.set_xlabel("Peer address")
    ax.set_ylabel("Recording node address")
    ax.set_title(f"Contact ledger ({tracker.coverage():.0%} filled)")

    return _finish(fig, output_path)


def plot_predictability(store: PredictabilityStore, output_path: Optional[str] = None):
    """Bar chart of one node's aged delivery predictabilities"""
    _require_matplotlib()

    table = store.snapshot()
    targets = [str(t) for t, _ in table]
    values = [p for _, p in table]

    fig, ax = plt.subplots(figsize=(max(6, len(table) * 0.4), 4))
    ax.bar(targets, values, color="steelblue")
    ax.set_ylim(0, max([1.0] + values))
    ax.set_xlabel("Target node")
    ax.set_ylabel("P(owner, target)")
    ax.set_title(f"Delivery predictabilities of node {store.owner}")

    return _finish(fig, output_path)


def plot_offers(results: Dict[str, Any], output_path: Optional[str] = None):
    """Candidates offered per tick over the replay"""
    _require_matplotlib()

    fig, ax = plt.subplots(figsize=(10, 4))
    times = np.asarray(results["times"], dtype=float)
    ax.step(times, results["offers"], where="post")

    if results.get("gate_started_at") is not None:
        ax.axvline(results["gate_started_at"], color="red", linestyle="--",
                   label="Readiness gate opened")
        ax.legend()

    ax.set_xlabel("Simulation time (s)")
    ax.set_ylabel("Candidates offered")
    ax.set_title(f"Offers per tick ({results.get('strategy', '')})")

    return _finish(fig, output_path)
