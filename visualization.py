"""
Live visualization for the DTN epidemic simulation
"""

import threading
import time
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation
from matplotlib.collections import LineCollection

from connectivity import RangeConnectivity
from messages import AgentView
from monitor import Monitor

HEALTHY = "tab:blue"
INFECTED = "tab:red"


def _compute_edges(views: Sequence[AgentView]):
    """Line segments for every in-range or wired pair"""
    pos = {v.aid: v.pos for v in views}
    segs = []
    for a, b in RangeConnectivity().links(views):
        (xa, ya, _), (xb, yb, _) = pos[a], pos[b]
        segs.append(((xa, ya), (xb, yb)))
    return segs


class LiveMonitor(Monitor):
    """
    Publishes the latest snapshot for the matplotlib artist.

    display() never draws, so rendering cannot stall the engine; it only
    sleeps for the configured pacing delay.
    """

    def __init__(self, step_delay_s: float = 0.0):
        self.step_delay_s = step_delay_s
        self._lock = threading.Lock()
        self._latest: Optional[Tuple[float, Tuple[AgentView, ...]]] = None
        self.finished = False

    def _publish(self, t: float, population: Sequence[AgentView]):
        with self._lock:
            self._latest = (t, tuple(population))

    def latest(self) -> Optional[Tuple[float, Tuple[AgentView, ...]]]:
        with self._lock:
            return self._latest

    def open(self, population: Sequence[AgentView]):
        self.finished = False
        self._publish(0.0, population)

    def display(self, t: float, population: Sequence[AgentView]):
        self._publish(t, population)
        if self.step_delay_s:
            time.sleep(self.step_delay_s)

    def close(self, population: Sequence[AgentView]):
        self.finished = True


class LiveArtist:
    """Matplotlib view of agent positions, links and infection state"""

    def __init__(self, monitor: LiveMonitor, world_size: Tuple[float, float]):
        self.monitor = monitor
        self.fig, self.ax = plt.subplots(figsize=(8.6, 6.0))
        W, H = world_size
        self.ax.set_xlim(0, W)
        self.ax.set_ylim(0, H)
        self.ax.set_aspect("equal", adjustable="box")
        self.ax.set_xlabel("X (m)")
        self.ax.set_ylabel("Y (m)")
        self.ax.set_title("DTN Epidemic - Live View")

        self.scatter = self.ax.scatter([], [], s=46)
        self.wired = self.ax.scatter([], [], s=70, marker="s", facecolors="none",
                                     edgecolors="black", linewidths=1.0)
        self.lines = LineCollection([], linewidths=0.9, alpha=0.5)
        self.ax.add_collection(self.lines)
        self.labels: List = []

        # Stats banner
        self.stats_txt = self.ax.text(0.01, 0.99, "", transform=self.ax.transAxes, va="top")
        self.update(0)

    def update(self, _frame):
        """Update animation frame"""
        snap = self.monitor.latest()
        if snap is None:
            return (self.scatter, self.wired, self.lines, self.stats_txt)
        t, views = snap

        xs = [v.pos[0] for v in views]
        ys = [v.pos[1] for v in views]
        self.scatter.set_offsets(list(zip(xs, ys)))
        self.scatter.set_color([INFECTED if v.infected else HEALTHY for v in views])
        wired = [(v.pos[0], v.pos[1]) for v in views if v.wired]
        if wired:
            self.wired.set_offsets(wired)

        if len(self.labels) != len(views):
            for lbl in self.labels:
                lbl.remove()
            self.labels = [self.ax.text(v.pos[0], v.pos[1] + 7, str(v.aid),
                                        ha="center", va="bottom", fontsize=8)
                           for v in views]
        for lbl, x, y in zip(self.labels, xs, ys):
            lbl.set_position((x, y + 7))

        self.lines.set_segments(_compute_edges(views))

        infected = sum(1 for v in views if v.infected)
        state = "done" if self.monitor.finished else "running"
        self.stats_txt.set_text(
            f"t = {t:.1f}s  Infected: {infected}/{len(views)}  ({state})"
        )
        return (self.scatter, self.wired, self.lines, *self.labels, self.stats_txt)


def run_live_viz(sim):
    """Run the simulation in a background thread and show a live Matplotlib view"""
    monitor = sim.monitor
    if not isinstance(monitor, LiveMonitor):
        raise TypeError("run_live_viz needs a simulation built with the 'live' monitor")

    errors: List[BaseException] = []

    def _run():
        try:
            sim.run()
        except Exception as exc:
            errors.append(exc)

    t = threading.Thread(target=_run, daemon=True)
    t.start()

    artist = LiveArtist(monitor, sim.cfg["world_size"])
    anim = FuncAnimation(artist.fig, artist.update, interval=100, blit=False, cache_frame_data=False)  # ~10 FPS

    # Show blocking window; after close, wait for the engine and print final report
    plt.show()
    t.join()
    if errors:
        raise errors[0]
    sim.report()
    return anim
