"""
Mobility models for DTN agents
"""

import logging
import math
import random
from typing import List, Optional, Tuple

import networkx as nx

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]


class PathGraph:
    """Frozen graph of waypoints shared read-only by path-constrained mobility models."""

    def __init__(self, graph: nx.Graph):
        self.graph = nx.freeze(graph)
        self._edges: List[Tuple] = list(self.graph.edges())
        self._vertices: List = list(self.graph.nodes())

    def __len__(self):
        return len(self._vertices)

    def vertex_pos(self, v) -> Tuple[float, float]:
        return self.graph.nodes[v]["pos"]

    def random_vertex(self, rng: random.Random) -> Tuple[float, float]:
        return self.vertex_pos(rng.choice(self._vertices))

    def random_point(self, rng: random.Random) -> Tuple[float, float]:
        """Uniform point along a uniformly chosen edge (a vertex if the graph has no edges)."""
        if not self._edges:
            return self.random_vertex(rng)
        u, v = rng.choice(self._edges)
        (ux, uy), (vx, vy) = self.vertex_pos(u), self.vertex_pos(v)
        t = rng.random()
        return ux + t * (vx - ux), uy + t * (vy - uy)


def create_path(width: float, height: float, rng: random.Random,
                cells: Tuple[int, int] = (6, 4)) -> PathGraph:
    """
    Build a jittered grid of waypoints covering the field.

    Each grid vertex is placed uniformly inside its own cell, so every vertex
    (and every point on an edge) lies within the field bounds.
    """
    cols, rows = cells
    G = nx.grid_2d_graph(cols, rows)
    cw, ch = width / cols, height / rows
    for (i, j) in sorted(G.nodes()):
        G.nodes[(i, j)]["pos"] = ((i + rng.random()) * cw, (j + rng.random()) * ch)
    G.graph["world_size"] = (width, height)
    logger.debug("Path graph: %d vertices, %d edges", G.number_of_nodes(), G.number_of_edges())
    return PathGraph(G)


class MobilityModel:
    """Base trajectory generator. `move(delta)` updates `pos` in place."""

    uses_path = False

    def __init__(self, world_size: Tuple[float, float], z_level: float, rng: random.Random,
                 speed_range: Tuple[float, float] = (0.0, 0.0),
                 pause_range: Tuple[float, float] = (0.0, 0.0),
                 path: Optional[PathGraph] = None,
                 pos: Optional[Vec3] = None):
        self.world_size = world_size
        self.z = z_level
        self.rng = rng
        self.speed_range = speed_range
        self.pause_range = pause_range
        self.path = path

        self.pos: Vec3 = pos if pos is not None else self._initial_pos()
        self.destination: Tuple[float, float] = (self.pos[0], self.pos[1])
        self.speed = 0.0
        self.pause_remaining = 0.0

        self.legs = 0
        self.arrivals = 0

    def _initial_pos(self) -> Vec3:
        return (self.rng.uniform(0, self.world_size[0]),
                self.rng.uniform(0, self.world_size[1]),
                self.z)

    def draw_speed(self) -> float:
        return self.rng.uniform(*self.speed_range)

    def draw_pause(self) -> float:
        return self.rng.uniform(*self.pause_range)

    def draw_destination(self) -> Tuple[float, float]:
        return (self.rng.uniform(0, self.world_size[0]),
                self.rng.uniform(0, self.world_size[1]))

    def move(self, delta: float):
        raise NotImplementedError


class RandomWaypoint(MobilityModel):
    """Pick a destination and speed, travel there, pause, repeat."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._pick_new_waypoint(pause=False)

    def _pick_new_waypoint(self, pause: bool = True):
        """Draw the next (destination, speed, pause) triple"""
        self.destination = self.draw_destination()
        self.speed = self.draw_speed()
        if pause:
            self.pause_remaining = self.draw_pause()
        self.legs += 1

    def _clamp(self, x: float, y: float) -> Vec3:
        W, H = self.world_size
        return (min(max(x, 0.0), W), min(max(y, 0.0), H), self.z)

    def move(self, delta: float):
        """Advance `delta` seconds toward the current waypoint"""
        if self.pause_remaining > 0:
            self.pause_remaining = max(0.0, self.pause_remaining - delta)
            return
        tx, ty = self.destination
        x, y, _ = self.pos
        dx, dy = tx - x, ty - y
        dist = math.hypot(dx, dy)
        step = self.speed * delta
        if step >= dist:
            self.pos = self._clamp(tx, ty)
            self.arrivals += 1
            self._pick_new_waypoint()
        else:
            self.pos = self._clamp(x + step * dx / dist, y + step * dy / dist)


class PathWaypoint(RandomWaypoint):
    """Random waypoint whose destinations lie on the shared path graph."""

    uses_path = True

    def __init__(self, *args, **kwargs):
        path = kwargs.get("path")
        if path is None:
            raise ValueError("PathWaypoint requires a shared PathGraph")
        super().__init__(*args, **kwargs)

    def _initial_pos(self) -> Vec3:
        x, y = self.path.random_vertex(self.rng)
        return (x, y, self.z)

    def draw_destination(self) -> Tuple[float, float]:
        return self.path.random_point(self.rng)


class StaticMobility(MobilityModel):
    """Wired backbone element: speed and pause generators yield zero, so it never moves."""

    def draw_speed(self) -> float:
        return 0.0

    def draw_pause(self) -> float:
        return 0.0

    def move(self, delta: float):
        pass


MOBILITY_MODELS = {
    "random_waypoint": RandomWaypoint,
    "path_waypoint": PathWaypoint,
    "static": StaticMobility,
}
