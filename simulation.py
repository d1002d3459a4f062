"""
Simulation coordinator for the DTN epidemic network
"""

import enum
import logging
import queue
import random
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from agent import AGENT_TYPES, Agent, wire_together
from config import ConfigError, validate_config
from connectivity import CONNECTIVITY, Connectivity
from messages import AgentView, Delivery
from mobility import MOBILITY_MODELS, StaticMobility, create_path
from monitor import LogMonitor, Monitor, NullMonitor, TraceMonitor

logger = logging.getLogger(__name__)


class MonitorTimeout(TimeoutError):
    """A monitor call did not return within `monitor_timeout_s`."""


class SimState(enum.Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    CLOSING = "closing"


@dataclass
class SimulationClock:
    delta: float
    tmax: float
    time: float = 0.0

    def advance(self):
        self.time += self.delta

    @property
    def expired(self) -> bool:
        return self.time > self.tmax


def _live_monitor(cfg: Dict[str, Any]) -> Monitor:
    # matplotlib is only loaded when the live view is selected
    from visualization import LiveMonitor
    return LiveMonitor(cfg["step_delay_s"])


MONITORS: Dict[str, Callable[[Dict[str, Any]], Monitor]] = {
    "null": lambda cfg: NullMonitor(),
    "log": lambda cfg: LogMonitor(cfg["log_every"]),
    "trace": lambda cfg: TraceMonitor(cfg["trace_path"]),
    "live": _live_monitor,
}


def _resolve(registry: Dict[str, Any], key: str, kind: str):
    try:
        return registry[key]
    except (KeyError, TypeError):
        choices = ", ".join(sorted(registry))
        raise ConfigError(f"unknown {kind} {key!r} (expected one of: {choices})") from None


class Simulation:
    """Owns the agent population and drives move -> forward -> tick -> display"""

    def __init__(self, cfg: Dict[str, Any], monitor: Optional[Monitor] = None):
        self.cfg = validate_config(cfg)
        self.state = SimState.INITIALIZING

        # Resolve every variant up front; nothing is built if one is unknown
        self.mobility_cls = _resolve(MOBILITY_MODELS, cfg["mobility"], "mobility model")
        self.agent_cls = _resolve(AGENT_TYPES, cfg["agent"], "agent type")
        self.links: Connectivity = _resolve(CONNECTIVITY, cfg["connectivity"], "connectivity")()
        if monitor is None:
            monitor = _resolve(MONITORS, cfg["monitor"], "monitor")(cfg)
        self.monitor = monitor

        self.rng = random.Random(cfg["seed"])
        self.clock = SimulationClock(delta=cfg["delta"], tmax=cfg["tmax"])
        self.agents: List[Agent] = []
        self.path = None
        self.steps = 0
        self._by_id: Dict[int, Agent] = {}

    # -------- Initializing --------

    def build(self):
        """Create the population, wire the backbone and seed the initial carriers"""
        W, H = self.cfg["world_size"]
        if self.mobility_cls.uses_path:
            self.path = create_path(W, H, self.rng, tuple(self.cfg["path_cells"]))

        agents = []
        for aid in range(self.cfg["num_agents"]):
            wired = aid < self.cfg["num_wired"]
            mobility_cls = StaticMobility if wired else self.mobility_cls
            mobility = mobility_cls(
                (W, H), self.cfg["z_level"], self.rng,
                speed_range=tuple(self.cfg["speed_mps"]),
                pause_range=tuple(self.cfg["waypoint_pause_s"]),
                path=self.path,
            )
            agents.append(self.agent_cls(aid, self.cfg["comm_range"], mobility,
                                         rng=self.rng, delivery_prob=self.cfg["delivery_prob"]))
        if self.cfg["num_wired"]:
            wire_together(agents[:self.cfg["num_wired"]])

        self.populate(agents)
        for aid in self.cfg["infected"]:
            self._by_id[aid].infect(self.cfg["message_id"], at=self.clock.time)

        logger.info("Built %d agents (%d wired), mobility=%s agent=%s, seeded %s with message %r",
                    len(agents), self.cfg["num_wired"], self.cfg["mobility"], self.cfg["agent"],
                    list(self.cfg["infected"]), self.cfg["message_id"])
        return self

    def populate(self, agents: Sequence[Agent]):
        """Install a ready-made population (fixed for the rest of the run)"""
        if self.state is not SimState.INITIALIZING:
            raise RuntimeError(f"cannot change the population while {self.state.value}")
        if not agents:
            raise ConfigError("population must contain at least one agent")
        by_id = {a.aid: a for a in agents}
        if len(by_id) != len(agents):
            raise ConfigError("agent ids must be unique")
        self.agents = list(agents)
        self._by_id = by_id
        return self

    # -------- Running --------

    def snapshot(self) -> Tuple[AgentView, ...]:
        return tuple(a.view() for a in self.agents)

    def _notify(self, fn: Callable, *args):
        """
        Call a monitor method, bounded by monitor_timeout_s.

        The call runs on a daemon thread so a monitor that never returns
        cannot keep the interpreter alive after MonitorTimeout.
        """
        timeout = self.cfg["monitor_timeout_s"]
        if timeout is None:
            fn(*args)
            return

        done: "queue.Queue[Optional[BaseException]]" = queue.Queue(maxsize=1)

        def _call():
            try:
                fn(*args)
            except BaseException as exc:
                done.put(exc)
            else:
                done.put(None)

        worker = threading.Thread(target=_call, name=f"monitor-{fn.__name__}", daemon=True)
        worker.start()
        try:
            exc = done.get(timeout=timeout)
        except queue.Empty:
            raise MonitorTimeout(
                f"monitor {type(self.monitor).__name__}.{fn.__name__} "
                f"did not return within {timeout}s") from None
        if exc is not None:
            raise exc

    def _apply(self, pending: Sequence[Delivery], at: float) -> int:
        """Barrier: apply every delivery collected this step; returns new deliveries"""
        new = 0
        for d in pending:
            sender = self._by_id[d.src]
            if self._by_id[d.dst].accept(d.message, at, hops=sender.hops.get(d.message, 0) + 1):
                new += 1
        return new

    def step(self) -> int:
        """Advance one clock tick; returns the number of new deliveries"""
        if not self.agents:
            raise RuntimeError("no agents: call build() or populate() first")
        delta = self.clock.delta

        for a in self.agents:
            a.mobility.move(delta)

        # Deliveries are collected against this snapshot, then applied together
        self.links.prepare(self.agents)
        pending: List[Delivery] = []
        for a in self.agents:
            a.forward(self.agents, links=self.links, pending=pending)
        new = self._apply(pending, at=self.clock.time)

        self.clock.advance()
        self.steps += 1
        if new:
            logger.debug("t=%.2f: %d new deliveries", self.clock.time, new)

        self._notify(self.monitor.display, self.clock.time, self.snapshot())
        return new

    def run(self):
        """Run until the clock passes tmax, then close the monitor"""
        if self.state is not SimState.INITIALIZING:
            raise RuntimeError(f"simulation already {self.state.value}")
        if not self.agents:
            self.build()

        self.state = SimState.RUNNING
        self._notify(self.monitor.open, self.snapshot())
        while not self.clock.expired:
            self.step()
        self.state = SimState.CLOSING
        self._notify(self.monitor.close, self.snapshot())
        logger.info("Finished %d steps at t=%.2f", self.steps, self.clock.time)
        return self

    # -------- Summary --------

    def infected_count(self, message: Optional[str] = None) -> int:
        if message is None:
            return sum(1 for a in self.agents if a.received)
        return sum(1 for a in self.agents if a.has(message))

    def coverage(self, message: Optional[str] = None) -> float:
        message = self.cfg["message_id"] if message is None else message
        return self.infected_count(message) / len(self.agents) if self.agents else 0.0

    def report(self):
        """Print simulation statistics and results"""
        msg = self.cfg["message_id"]
        carriers = [a for a in self.agents if a.has(msg)]
        times = [a.received_at[msg] for a in carriers]
        hops = [a.hops[msg] for a in carriers]

        print("\n=== Simulation Summary ===")
        print(f"Agents: {len(self.agents)} ({self.cfg['num_wired']} wired)  "
              f"Range: {self.cfg['comm_range']} m  Duration: {self.clock.time:.1f} s  Steps: {self.steps}")
        print(f"Message {msg!r}: {len(carriers)}/{len(self.agents)} carriers  "
              f"coverage={self.coverage(msg):.3f}")
        if times:
            print(f"Last delivery at: {max(times):.2f} s")
        if hops:
            print(f"Avg hops: {sum(hops)/len(hops):.3f}  Max hops: {max(hops)}")

        print("\nPer-agent quick view:")
        for a in self.agents:
            s = a.summary()
            at = s["received_at"].get(msg)
            print(f"- Agent {s['aid']}{' [wired]' if s['wired'] else ''}: pos={s['pos']} "
                  f"got={None if at is None else round(at, 2)}s "
                  f"hops={s['hops'].get(msg)} legs={s['legs']}")
