"""
Connectivity oracles: which agents can hear each other this step
"""

import math
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple


def in_range(a, b) -> bool:
    """b is reachable from a: an explicit wired friend, or within a's radio range"""
    return b.aid in a.friends or math.dist(a.pos, b.pos) <= a.range


class Connectivity:
    """Neighbor lookup over a population snapshot."""

    def prepare(self, population: Sequence):
        """Called once per step after movement, before any neighbor query"""

    def neighbors(self, agent, population: Sequence) -> List:
        raise NotImplementedError

    def links(self, population: Sequence) -> List[Tuple[int, int]]:
        """Undirected (aid, aid) pairs where either side can reach the other"""
        self.prepare(population)
        pairs = set()
        for a in population:
            for b in self.neighbors(a, population):
                pairs.add((min(a.aid, b.aid), max(a.aid, b.aid)))
        return sorted(pairs)


class RangeConnectivity(Connectivity):
    """Brute-force O(n^2) pairwise distance scan."""

    def neighbors(self, agent, population: Sequence) -> List:
        return [b for b in population if b is not agent and in_range(agent, b)]


class GridConnectivity(Connectivity):
    """
    Uniform grid bucketed by the largest radio range in the population.

    Any agent within range of `a` lies in the 3x3 block of cells around `a`, so
    results match RangeConnectivity, returned in population order.
    """

    def __init__(self):
        self.cell = 1.0
        self._buckets: Dict[Tuple[int, int], List] = {}
        self._order: Dict[int, int] = {}
        self._by_id: Dict[int, object] = {}

    def _key(self, pos) -> Tuple[int, int]:
        return int(math.floor(pos[0] / self.cell)), int(math.floor(pos[1] / self.cell))

    def prepare(self, population: Sequence):
        self.cell = max((a.range for a in population), default=1.0)
        buckets = defaultdict(list)
        for a in population:
            buckets[self._key(a.pos)].append(a)
        self._buckets = dict(buckets)
        self._order = {a.aid: i for i, a in enumerate(population)}
        self._by_id = {a.aid: a for a in population}

    def neighbors(self, agent, population: Sequence) -> List:
        cx, cy = self._key(agent.pos)
        found = {}
        for gx in (cx - 1, cx, cx + 1):
            for gy in (cy - 1, cy, cy + 1):
                for b in self._buckets.get((gx, gy), ()):
                    if b is not agent and in_range(agent, b):
                        found[b.aid] = b
        for fid in agent.friends:
            b = self._by_id.get(fid)
            if b is not None and b is not agent:
                found[fid] = b
        return sorted(found.values(), key=lambda b: self._order[b.aid])


CONNECTIVITY = {
    "range": RangeConnectivity,
    "grid": GridConnectivity,
}
