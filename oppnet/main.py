"""
oppnet Trace Runner
====================
Entry point for replaying contact traces through the forwarding policies.

Provides:
- run_trace: replay a ContactTrace and collect per-tick offers
- CLI interface for replaying a JSON trace or a synthetic benchmark
- Result dumps and optional plots
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tqdm import tqdm

from .config import (
    QueueMode, RouterConfig, Strategy, config_from_dict, config_to_dict,
    create_default_config
)
from .contracts import ConfigurationError
from .network import Network
from .trace import ContactTrace, create_benchmark_trace, load_trace

logger = logging.getLogger(__name__)

# Order of same-timestamp items: positions, then new messages, then contacts
_MOVE, _MESSAGE, _EVENT = 0, 1, 2


def _timeline(trace: ContactTrace) -> List[Tuple[float, List[Tuple[int, Any]]]]:
    """Group trace items by timestamp, in replay order"""
    items = (
        [(m.time, _MOVE, i, m) for i, m in enumerate(trace.moves)]
        + [(m.time, _MESSAGE, i, m) for i, m in enumerate(trace.messages)]
        + [(e.timestamp, _EVENT, i, e) for i, e in enumerate(trace.events)]
    )
    items.sort(key=lambda item: item[:3])

    groups: List[Tuple[float, List[Tuple[int, Any]]]] = []
    for time, kind, _, payload in items:
        if not groups or groups[-1][0] != time:
            groups.append((time, []))
        groups[-1][1].append((kind, payload))
    return groups


def run_trace(config: RouterConfig, trace: ContactTrace,
              show_progress: bool = False) -> Dict[str, Any]:
    """
    Replay a trace, ticking every node after each distinct timestamp.

    Args:
        config: Router configuration shared by all nodes
        trace: Contact trace to replay
        show_progress: Show a tqdm progress bar

    Returns:
        Results dictionary
    """
    network = Network(trace.locations, config)

    results = {
        "times": [],
        "offers": [],
        "gate_started_at": None,
    }

    groups = _timeline(trace)
    for time, group in tqdm(groups, desc="Replaying trace", disable=not show_progress):
        network.clock.set_time(time)

        for kind, payload in group:
            if kind == _MOVE:
                network.move(payload.node, payload.location)
            elif kind == _MESSAGE:
                network.create_message(payload.id, payload.source,
                                       payload.destination, payload.size)
            else:
                network.apply_event(payload)

        if results["gate_started_at"] is None and network.gate.started:
            results["gate_started_at"] = time

        offered = network.tick()
        results["times"].append(time)
        results["offers"].append(len(offered))

    delivered = network.delivered_ids()
    results.update({
        "strategy": config.strategy.value,
        "n_nodes": trace.n_nodes,
        "n_messages": len(trace.messages),
        "delivered": delivered,
        "delivery_ratio": len(delivered) / len(trace.messages) if trace.messages else 0.0,
        "gate_started": network.gate.started,
        "ledger_coverage": network.tracker.coverage(),
        "total_encounters": network.tracker.total_encounters,
        "node_statistics": {
            node.address: node.router.get_statistics() for node in network.nodes
        },
        "network": network,
    })
    if config.strategy is Strategy.PROBABILISTIC:
        results["predictability"] = {
            node.address: node.predictability.snapshot() for node in network.nodes
        }

    logger.info("Replay finished: %d/%d messages delivered, %d encounters",
                len(delivered), len(trace.messages), network.tracker.total_encounters)
    return results


def print_config_summary(config: RouterConfig):
    """Print a short description of the router settings"""
    print("=" * 50)
    print("oppnet Router Configuration")
    print("=" * 50)
    print(f"Strategy:              {config.strategy.value}")
    print(f"Queue mode:            {config.queue_mode.value}")
    print(f"Seconds in time unit:  {config.predictability.seconds_in_time_unit}")
    print(f"Beta (transitivity):   {config.predictability.beta}")
    print(f"Zero threshold:        {config.gate.zero_threshold}")
    print(f"Gated strategy:        {config.strategy.gated}")
    if config.strategy is Strategy.CLUSTER:
        print(f"Normalize features:    {config.cluster.normalize_features}")
    print("=" * 50)


def _setup_logging(level: str, output_dir: Optional[str] = None):
    handlers = [logging.StreamHandler()]
    if output_dir:
        Path(output_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(f"{output_dir}/oppnet.log"))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def _serializable(results: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in results.items() if k != "network"}
    if "predictability" in out:
        out["predictability"] = {
            str(addr): [[t, p] for t, p in table]
            for addr, table in out["predictability"].items()
        }
    out["node_statistics"] = {str(k): v for k, v in out["node_statistics"].items()}
    return out


def build_config(args: argparse.Namespace) -> RouterConfig:
    """Config file first, then command-line overrides"""
    if args.config:
        with open(args.config) as f:
            config = config_from_dict(json.load(f))
    else:
        config = create_default_config()

    if args.strategy:
        config.strategy = Strategy(args.strategy)
    if args.queue_mode:
        config.queue_mode = QueueMode(args.queue_mode)
    if args.seconds_in_time_unit is not None:
        config.predictability.seconds_in_time_unit = args.seconds_in_time_unit
    if args.beta is not None:
        config.predictability.beta = args.beta
    if args.zero_threshold is not None:
        config.gate.zero_threshold = args.zero_threshold
    if args.normalize_features:
        config.cluster.normalize_features = True

    config.validate()
    return config


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description="oppnet forwarding decision engine")

    parser.add_argument("--trace", type=str, help="JSON contact trace to replay")
    parser.add_argument("--config", type=str, help="JSON router configuration")

    parser.add_argument("--nodes", type=int, default=10, help="Benchmark node count")
    parser.add_argument("--duration", type=float, default=3600.0, help="Benchmark duration (s)")
    parser.add_argument("--messages", type=int, default=20, help="Benchmark message count")
    parser.add_argument("--seed", type=int, default=None)

    parser.add_argument("--strategy", type=str, choices=[s.value for s in Strategy])
    parser.add_argument("--queue-mode", type=str, choices=[q.value for q in QueueMode])
    parser.add_argument("--seconds-in-time-unit", type=int, default=None)
    parser.add_argument("--beta", type=float, default=None)
    parser.add_argument("--zero-threshold", type=float, default=None)
    parser.add_argument("--normalize-features", action="store_true")

    parser.add_argument("--output", type=str, help="Output path for results JSON")
    parser.add_argument("--plot", type=str, help="Directory for ledger/predictability plots")
    parser.add_argument("--log-dir", type=str, default=None)
    parser.add_argument("--log-level", type=str, default="info")
    parser.add_argument("--progress", action="store_true", help="Show progress bar")

    args = parser.parse_args(argv)
    _setup_logging(args.log_level, args.log_dir)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        parser.error(str(e))

    if args.trace:
        trace = load_trace(args.trace)
    else:
        trace = create_benchmark_trace(
            n_nodes=args.nodes, duration=args.duration,
            n_messages=args.messages, seed=args.seed
        )

    print_config_summary(config)
    print(f"Replaying {len(trace.events)} contact events over {trace.n_nodes} nodes...")

    results = run_trace(config, trace, show_progress=args.progress)

    print("\nReplay complete!")
    print(f"Delivered: {len(results['delivered'])}/{results['n_messages']} "
          f"({results['delivery_ratio']:.1%})")
    print(f"Ledger coverage: {results['ledger_coverage']:.1%}")
    print(f"Readiness gate open: {results['gate_started']}")

    if args.output:
        payload = _serializable(results)
        payload["config"] = config_to_dict(config)
        with open(args.output, 'w') as f:
            json.dump(payload, f, indent=2)

    if args.plot:
        from .visualize import plot_contact_ledger, plot_offers, plot_predictability

        out_dir = Path(args.plot)
        out_dir.mkdir(parents=True, exist_ok=True)
        network = results["network"]
        plot_contact_ledger(network.tracker, str(out_dir / "ledger.png"))
        plot_offers(results, str(out_dir / "offers.png"))
        if config.strategy is Strategy.PROBABILISTIC:
            plot_predictability(network.nodes[0].predictability,
                                str(out_dir / "predictability_node0.png"))

    return 0


if __name__ == "__main__":
    sys.exit(main())
