"""
oppnet Contact Traces
======================
JSON contact traces replayed by the runner.

Layout:
    {
      "nodes":    [{"address": 0, "location": [x, y]}, ...],
      "messages": [{"id": "M1", "source": 0, "destination": 3, "time": 0.0}],
      "events":   [{"time": 0.0, "a": 0, "b": 1, "up": true}],
      "moves":    [{"time": 10.0, "node": 2, "location": [x, y]}]
    }
"""

import json
import numpy as np
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .network import ContactEvent


@dataclass(frozen=True)
class MessageSpec:
    """Message injected into its source's buffer at a given time"""
    id: str
    source: int
    destination: int
    time: float
    size: int = 0


@dataclass(frozen=True)
class Move:
    """Position update reported for a node"""
    time: float
    node: int
    location: Tuple[float, float]


@dataclass
class ContactTrace:
    locations: List[Tuple[float, float]]
    events: List[ContactEvent] = field(default_factory=list)
    messages: List[MessageSpec] = field(default_factory=list)
    moves: List[Move] = field(default_factory=list)

    @property
    def n_nodes(self) -> int:
        return len(self.locations)

    @property
    def duration(self) -> float:
        times = ([e.timestamp for e in self.events] + [m.time for m in self.messages]
                 + [m.time for m in self.moves])
        return max(times) if times else 0.0


def _field(entry: Dict[str, Any], name: str, kind: str, index: int):
    if name not in entry:
        raise ValueError(f"{kind}[{index}] is missing '{name}'")
    return entry[name]


def _location(value, kind: str, index: int) -> Tuple[float, float]:
    if len(value) != 2:
        raise ValueError(f"{kind}[{index}] location must have 2 coordinates, got {value!r}")
    return (float(value[0]), float(value[1]))


def _address(value, n_nodes: int, kind: str, index: int) -> int:
    address = int(value)
    if not 0 <= address < n_nodes:
        raise ValueError(f"{kind}[{index}] refers to unknown node {address}")
    return address


def trace_from_dict(data: Dict[str, Any]) -> ContactTrace:
    """Parse and validate a trace dict"""
    nodes = data.get("nodes")
    if not nodes:
        raise ValueError("Trace must list at least one node")

    by_address = {}
    for i, entry in enumerate(nodes):
        address = int(_field(entry, "address", "nodes", i))
        if address in by_address:
            raise ValueError(f"nodes[{i}] repeats address {address}")
        by_address[address] = _location(_field(entry, "location", "nodes", i), "nodes", i)
    if sorted(by_address) != list(range(len(by_address))):
        raise ValueError("Node addresses must be exactly 0..N-1")
    n_nodes = len(by_address)
    locations = [by_address[a] for a in range(n_nodes)]

    events = []
    for i, entry in enumerate(data.get("events", [])):
        a = _address(_field(entry, "a", "events", i), n_nodes, "events", i)
        b = _address(_field(entry, "b", "events", i), n_nodes, "events", i)
        if a == b:
            raise ValueError(f"events[{i}] connects node {a} to itself")
        up = entry.get("up", True)
        if not isinstance(up, bool):
            raise ValueError(f"events[{i}].up must be true or false, got {up!r}")
        events.append(ContactEvent(a, b, float(_field(entry, "time", "events", i)), up))

    messages = []
    for i, entry in enumerate(data.get("messages", [])):
        source = _address(_field(entry, "source", "messages", i), n_nodes, "messages", i)
        destination = _address(_field(entry, "destination", "messages", i),
                               n_nodes, "messages", i)
        if source == destination:
            raise ValueError(f"messages[{i}] is addressed to its own source {source}")
        messages.append(MessageSpec(
            id=str(_field(entry, "id", "messages", i)),
            source=source,
            destination=destination,
            time=float(entry.get("time", 0.0)),
            size=int(entry.get("size", 0)),
        ))
    if len({m.id for m in messages}) != len(messages):
        raise ValueError("Message ids must be unique")

    moves = []
    for i, entry in enumerate(data.get("moves", [])):
        moves.append(Move(
            time=float(_field(entry, "time", "moves", i)),
            node=_address(_field(entry, "node", "moves", i), n_nodes, "moves", i),
            location=_location(_field(entry, "location", "moves", i), "moves", i),
        ))

    return ContactTrace(locations, events, messages, moves)


def trace_to_dict(trace: ContactTrace) -> Dict[str, Any]:
    return {
        "nodes": [{"address": a, "location": list(loc)} for a, loc in enumerate(trace.locations)],
        "messages": [
            {"id": m.id, "source": m.source, "destination": m.destination,
             "time": m.time, "size": m.size}
            for m in trace.messages
        ],
        "events": [
            {"time": e.timestamp, "a": e.node_a, "b": e.node_b, "up": e.up}
            for e in trace.events
        ],
        "moves": [
            {"time": m.time, "node": m.node, "location": list(m.location)}
            for m in trace.moves
        ],
    }


def load_trace(path: Union[str, Path]) -> ContactTrace:
    with open(path) as f:
        return trace_from_dict(json.load(f))


def save_trace(trace: ContactTrace, path: Union[str, Path]):
    with open(path, 'w') as f:
        json.dump(trace_to_dict(trace), f, indent=2)


def create_benchmark_trace(n_nodes: int = 10, duration: float = 3600.0,
                           step: float = 10.0, contacts_per_step: int = 2,
                           max_contact_steps: int = 6, n_messages: int = 20,
                           area: float = 1000.0,
                           seed: Optional[int] = None) -> ContactTrace:
    """
    Synthetic scenario: static nodes scattered over a square area and random
    pairwise contacts of random length. Messages are created between random
    distinct nodes during the first half of the run.
    """
    if n_nodes < 2:
        raise ValueError("A benchmark trace needs at least 2 nodes")
    rng = np.random.default_rng(seed)

    locations = [tuple(float(c) for c in xy) for xy in rng.uniform(0.0, area, size=(n_nodes, 2))]

    events = []
    busy_until: Dict[Tuple[int, int], float] = {}
    t = 0.0
    while t < duration:
        for _ in range(contacts_per_step):
            a, b = (int(x) for x in rng.choice(n_nodes, size=2, replace=False))
            key = (min(a, b), max(a, b))
            if busy_until.get(key, -1.0) > t:
                continue
            end = t + step * int(rng.integers(1, max_contact_steps + 1))
            events.append(ContactEvent(a, b, t, up=True))
            events.append(ContactEvent(a, b, end, up=False))
            busy_until[key] = end
        t += step

    # Disconnects before connects at the same instant
    events.sort(key=lambda e: (e.timestamp, e.up))

    messages = []
    for i in range(n_messages):
        source, destination = (int(x) for x in rng.choice(n_nodes, size=2, replace=False))
        time = float(rng.integers(0, max(1, int(duration / 2 / step)))) * step
        messages.append(MessageSpec(f"M{i}", source, destination, time))
    messages.sort(key=lambda m: (m.time, m.id))

    return ContactTrace(locations, events, messages)
