"""
Monitors observing the simulation: open / display / close
"""

import logging
from typing import List, Sequence, Tuple

from messages import AgentView

logger = logging.getLogger(__name__)


class Monitor:
    """Receives a read-only snapshot of the population once per step"""

    def open(self, population: Sequence[AgentView]):
        pass

    def display(self, time: float, population: Sequence[AgentView]):
        pass

    def close(self, population: Sequence[AgentView]):
        pass


class NullMonitor(Monitor):
    """Discards every snapshot."""


class LogMonitor(Monitor):
    """Logs infection spread every `every` steps."""

    def __init__(self, every: int = 1):
        self.every = max(1, int(every))
        self.steps = 0

    def open(self, population: Sequence[AgentView]):
        wired = sum(1 for a in population if a.wired)
        logger.info("Monitoring %d agents (%d wired)", len(population), wired)

    def display(self, time: float, population: Sequence[AgentView]):
        self.steps += 1
        if self.steps % self.every:
            return
        infected = sum(1 for a in population if a.infected)
        logger.info("t=%.2f infected %d/%d", time, infected, len(population))

    def close(self, population: Sequence[AgentView]):
        infected = sum(1 for a in population if a.infected)
        logger.info("Finished after %d steps: infected %d/%d", self.steps, infected, len(population))


class TraceMonitor(Monitor):
    """
    Records the infection curve and writes it on close as whitespace-delimited
    columns: time, infected count, infected fraction.
    """

    def __init__(self, path: str):
        self.path = path
        self.rows: List[Tuple[float, int, float]] = []

    def open(self, population: Sequence[AgentView]):
        self.rows = []

    def display(self, time: float, population: Sequence[AgentView]):
        infected = sum(1 for a in population if a.infected)
        frac = infected / len(population) if population else 0.0
        self.rows.append((time, infected, frac))

    @property
    def curve(self) -> List[int]:
        return [infected for _, infected, _ in self.rows]

    def close(self, population: Sequence[AgentView]):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("# time infected fraction\n")
            for t, infected, frac in self.rows:
                f.write(f"{t:.4f} {infected} {frac:.4f}\n")
        logger.info("Wrote %d trace rows to %s", len(self.rows), self.path)
