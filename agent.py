"""
DTN agent implementation with epidemic forwarding
"""

import logging
import random
from typing import Dict, List, Optional, Sequence, Set

from connectivity import Connectivity, RangeConnectivity
from messages import AgentView, Delivery
from mobility import MobilityModel

logger = logging.getLogger(__name__)

_BRUTE_FORCE = RangeConnectivity()


class Agent:
    """A network node carrying messages; subclasses decide whether a relay attempt succeeds"""

    def __init__(self, aid: int, comm_range: float, mobility: MobilityModel,
                 rng: Optional[random.Random] = None, delivery_prob: float = 1.0):
        if comm_range <= 0:
            raise ValueError(f"agent {aid}: range must be positive, got {comm_range!r}")
        self.aid = aid
        self.range = comm_range
        self.mobility = mobility
        self.rng = rng if rng is not None else random.Random()
        self.delivery_prob = delivery_prob

        # Static neighbors (wired backbone only)
        self.friends: Set[int] = set()
        self.wired = False

        # message id -> delivered; entries are only ever added or set True
        self.received: Dict[str, bool] = {}
        self.received_at: Dict[str, float] = {}
        self.hops: Dict[str, int] = {}

    @property
    def pos(self):
        return self.mobility.pos

    def has(self, message: str) -> bool:
        return self.received.get(message, False)

    def held(self) -> List[str]:
        return sorted(m for m, ok in self.received.items() if ok)

    # -------- Delivery --------

    def infect(self, message: str, at: float = 0.0):
        """Seed this agent with a message it originates"""
        self.accept(message, at, hops=0)

    def accept(self, message: str, at: float, hops: int = 1) -> bool:
        """Mark a message delivered; returns False if it was already held"""
        if self.has(message):
            return False
        self.received[message] = True
        self.received_at[message] = at
        self.hops[message] = hops
        return True

    def should_deliver(self, other: "Agent", message: str) -> bool:
        return True

    # -------- Forwarding --------

    def forward(self, population: Sequence["Agent"], links: Optional[Connectivity] = None,
                pending: Optional[List[Delivery]] = None, at: float = 0.0):
        """
        Push every held message to reachable agents lacking it.

        With `pending`, deliveries are queued for the caller to apply at a
        barrier; otherwise receivers are updated immediately. Only the
        receivers' `received` maps change.
        """
        held = self.held()
        if not held:
            return
        links = links or _BRUTE_FORCE
        for other in links.neighbors(self, population):
            for m in held:
                if other.has(m) or not self.should_deliver(other, m):
                    continue
                if pending is None:
                    other.accept(m, at, hops=self.hops.get(m, 0) + 1)
                else:
                    pending.append(Delivery(self.aid, other.aid, m))

    # -------- Summary --------

    def view(self) -> AgentView:
        return AgentView(
            aid=self.aid,
            pos=self.pos,
            range=self.range,
            wired=self.wired,
            friends=frozenset(self.friends),
            messages=frozenset(self.held()),
        )

    def summary(self) -> Dict:
        """Return agent statistics summary"""
        return {
            "aid": self.aid,
            "wired": self.wired,
            "pos": tuple(round(c, 1) for c in self.pos),
            "messages": self.held(),
            "received_at": dict(self.received_at),
            "hops": dict(self.hops),
            "legs": self.mobility.legs,
        }


class EpidemicAgent(Agent):
    """Flooding: every relay attempt succeeds."""


class ProbabilisticAgent(Agent):
    """Probabilistic broadcast: each (receiver, message) attempt succeeds with `delivery_prob`."""

    def should_deliver(self, other: Agent, message: str) -> bool:
        return self.rng.random() < self.delivery_prob


def wire_together(agents: Sequence[Agent]):
    """Make every agent in the group a permanent neighbor of every other"""
    ids = {a.aid for a in agents}
    for a in agents:
        a.friends = ids - {a.aid}
        a.wired = True
    logger.debug("Wired backbone: %s", sorted(ids))


AGENT_TYPES = {
    "epidemic": EpidemicAgent,
    "probabilistic": ProbabilisticAgent,
}
