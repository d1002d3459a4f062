import os
import subprocess
import sys
import textwrap
import threading

import pytest

from agent import EpidemicAgent, ProbabilisticAgent
from config import ConfigError, make_config
from messages import AgentView
from mobility import RandomWaypoint
from monitor import Monitor
from simulation import MonitorTimeout, SimState, Simulation

HERE = os.path.dirname(os.path.abspath(__file__))


class RecordingMonitor(Monitor):
    def __init__(self):
        self.calls = []
        self.frames = []

    def open(self, population):
        self.calls.append("open")

    def display(self, time, population):
        self.calls.append("display")
        self.frames.append((time, population))

    def close(self, population):
        self.calls.append("close")


def quiet(**overrides):
    base = dict(monitor="null", monitor_timeout_s=None, num_wired=0, infected=(0,))
    base.update(overrides)
    return make_config(**base)


def _two_agents(cls, rng, **kwargs):
    world = (100.0, 100.0)
    agents = []
    for aid, x in ((1, 40.0), (2, 45.0)):
        mob = RandomWaypoint(world, 0.0, rng, speed_range=(0.1, 0.1), pause_range=(0.0, 0.0),
                             pos=(x, 50.0, 0.0))
        agents.append(cls(aid, 10.0, mob, rng=rng, **kwargs))
    agents[0].infect("1")
    return agents


def test_two_agent_deterministic_delivery():
    sim = Simulation(quiet(num_agents=2, delta=1.0))
    a1, a2 = _two_agents(EpidemicAgent, sim.rng)
    sim.populate([a1, a2])
    sim.step()
    assert a2.received.get("1") is True
    assert a2.hops["1"] == 1


def test_two_agent_probabilistic_delivery_is_reproducible():
    def outcome(seed):
        sim = Simulation(quiet(num_agents=2, delta=1.0, agent="probabilistic",
                               delivery_prob=0.5, seed=seed))
        a1, a2 = _two_agents(ProbabilisticAgent, sim.rng, delivery_prob=0.5)
        sim.populate([a1, a2])
        sim.step()
        return a2.received.get("1", False)

    assert outcome(2024) == outcome(2024)


@pytest.mark.parametrize("order", [(0, 1, 2), (2, 1, 0)])
def test_one_hop_per_step_regardless_of_order(make_static, order):
    chain = [make_static(0, 0, 0), make_static(1, 8, 0), make_static(2, 16, 0)]
    chain[0].infect("1")
    sim = Simulation(quiet(num_agents=3))
    sim.populate([chain[i] for i in order])

    sim.step()
    assert [a.has("1") for a in chain] == [True, True, False]
    sim.step()
    assert [a.has("1") for a in chain] == [True, True, True]
    assert chain[2].hops["1"] == 2
    assert chain[2].received_at["1"] == sim.clock.delta


def test_run_lifecycle_and_step_count():
    mon = RecordingMonitor()
    sim = Simulation(quiet(num_agents=4, delta=0.5, tmax=2.0), monitor=mon).build()
    assert sim.state is SimState.INITIALIZING
    sim.run()
    assert sim.state is SimState.CLOSING
    assert sim.steps == 5
    assert sim.clock.time == pytest.approx(2.5)
    assert mon.calls == ["open"] + ["display"] * 5 + ["close"]
    assert [t for t, _ in mon.frames] == pytest.approx([0.5, 1.0, 1.5, 2.0, 2.5])
    for _, population in mon.frames:
        assert all(isinstance(v, AgentView) for v in population)
    with pytest.raises(RuntimeError):
        sim.run()


def test_build_seeds_infected_and_wired_backbone():
    sim = Simulation(quiet(num_agents=8, num_wired=3, infected=(0, 5))).build()
    assert [a.aid for a in sim.agents] == list(range(8))
    assert sim.infected_count() == 2
    wired = sim.agents[:3]
    for a in wired:
        assert a.wired
        assert a.friends == {0, 1, 2} - {a.aid}
    assert all(not a.wired and not a.friends for a in sim.agents[3:])


def test_wired_subnetwork_never_moves_and_links_unconditionally():
    cfg = quiet(num_agents=5, num_wired=5, comm_range=1.0, world_size=(5000.0, 5000.0))
    sim = Simulation(cfg).build()
    start = [a.pos for a in sim.agents]
    sim.step()
    assert sim.infected_count("1") == 5
    for _ in range(50):
        sim.step()
    assert [a.pos for a in sim.agents] == start


def test_positions_stay_in_bounds_and_received_is_monotone():
    cfg = quiet(num_agents=15, num_wired=2, comm_range=80.0, tmax=60.0, speed_mps=(5.0, 30.0))
    sim = Simulation(cfg).build()
    W, H = cfg["world_size"]
    seen = {}
    for _ in range(120):
        sim.step()
        for a in sim.agents:
            x, y, z = a.pos
            assert 0.0 <= x <= W and 0.0 <= y <= H and z == cfg["z_level"]
            for m in seen.get(a.aid, ()):
                assert a.received[m] is True
            seen[a.aid] = set(a.held())


def test_saturation_with_large_range():
    cfg = quiet(num_agents=20, comm_range=1100.0, tmax=5.0, seed=7)
    sim = Simulation(cfg).build()
    sim.step()
    assert sim.infected_count() == 20


def _curve(**overrides):
    cfg = quiet(**overrides)
    sim = Simulation(cfg).build()
    curve = []
    while not sim.clock.expired:
        sim.step()
        curve.append(sim.infected_count())
    return curve


def test_saturation_curve_is_monotone_reproducible_and_complete():
    params = dict(num_agents=20, comm_range=300.0, tmax=300.0, seed=5)
    curve = _curve(**params)
    assert curve == _curve(**params)
    assert all(b >= a for a, b in zip(curve, curve[1:]))
    assert curve[0] >= 1
    assert curve[-1] == 20


def test_grid_connectivity_reproduces_range_run():
    params = dict(num_agents=25, num_wired=4, comm_range=90.0, tmax=40.0, seed=3,
                  agent="probabilistic", delivery_prob=0.4)
    assert _curve(connectivity="grid", **params) == _curve(connectivity="range", **params)


def test_path_waypoint_agents_share_one_graph():
    sim = Simulation(quiet(num_agents=6, num_wired=1, mobility="path_waypoint")).build()
    assert sim.path is not None
    mobile = [a.mobility for a in sim.agents if not a.wired]
    assert all(m.path is sim.path for m in mobile)
    for _ in range(20):
        sim.step()


def test_same_seed_same_trajectories():
    def trajectory(seed):
        sim = Simulation(quiet(num_agents=10, seed=seed, agent="probabilistic")).build()
        for _ in range(40):
            sim.step()
        return [(a.pos, a.held()) for a in sim.agents]

    assert trajectory(99) == trajectory(99)


@pytest.mark.parametrize("overrides", [
    dict(mobility="teleport"),
    dict(agent="gossip"),
    dict(monitor="video"),
    dict(connectivity="quadtree"),
])
def test_unknown_variant_fails_before_build(overrides):
    with pytest.raises(ConfigError):
        Simulation(quiet(**overrides))


def test_populate_rejects_duplicate_ids(make_static):
    sim = Simulation(quiet(num_agents=2))
    with pytest.raises(ConfigError):
        sim.populate([make_static(1, 0, 0), make_static(1, 5, 0)])
    with pytest.raises(ConfigError):
        sim.populate([])


def test_fault_inside_step_aborts_run():
    class Exploding(RecordingMonitor):
        def display(self, time, population):
            super().display(time, population)
            if len(self.frames) == 3:
                raise RuntimeError("boom")

    mon = Exploding()
    sim = Simulation(quiet(num_agents=3, tmax=10.0), monitor=mon).build()
    with pytest.raises(RuntimeError, match="boom"):
        sim.run()
    assert "close" not in mon.calls
    assert sim.steps == 3


def test_blocking_monitor_times_out():
    release = threading.Event()

    class Stuck(RecordingMonitor):
        def display(self, time, population):
            release.wait(5.0)

    sim = Simulation(quiet(num_agents=2, monitor_timeout_s=0.05), monitor=Stuck()).build()
    try:
        with pytest.raises(MonitorTimeout):
            sim.run()
    finally:
        release.set()
    assert sim.steps == 1


def test_monitor_error_is_reraised_through_timeout_boundary():
    class Broken(RecordingMonitor):
        def open(self, population):
            raise ValueError("bad frame")

    sim = Simulation(quiet(num_agents=2, monitor_timeout_s=1.0), monitor=Broken()).build()
    with pytest.raises(ValueError, match="bad frame"):
        sim.run()
    assert sim.steps == 0


def _run_script(source):
    return subprocess.run([sys.executable, "-c", textwrap.dedent(source)], cwd=HERE,
                          capture_output=True, text=True, timeout=30)


def test_hung_monitor_does_not_keep_process_alive():
    result = _run_script("""
        import threading
        from config import make_config
        from monitor import Monitor
        from simulation import MonitorTimeout, Simulation

        class Hung(Monitor):
            def display(self, time, population):
                threading.Event().wait()

        cfg = make_config(monitor="null", num_agents=2, num_wired=0, infected=(0,),
                          monitor_timeout_s=0.2)
        try:
            Simulation(cfg, monitor=Hung()).build().run()
        except MonitorTimeout as exc:
            print("aborted:", exc)
    """)
    assert result.returncode == 0, result.stderr
    assert "aborted: monitor Hung.display did not return within 0.2s" in result.stdout


def test_headless_run_does_not_load_pyplot():
    result = _run_script("""
        import sys
        from config import make_config
        from simulation import Simulation

        cfg = make_config(monitor="log", monitor_timeout_s=None, num_agents=4, tmax=1.0)
        Simulation(cfg).build().run()
        print("pyplot loaded:", "matplotlib.pyplot" in sys.modules)
    """)
    assert result.returncode == 0, result.stderr
    assert "pyplot loaded: False" in result.stdout


def test_live_monitor_resolves_on_demand():
    from visualization import LiveMonitor

    sim = Simulation(quiet(monitor="live", step_delay_s=0.25))
    assert isinstance(sim.monitor, LiveMonitor)
    assert sim.monitor.step_delay_s == 0.25


# 20 movers spaced 9 m apart on a line with a 10 m range; at 0.01 m/s none can
# drift 0.5 m in 25 steps, so exactly one new carrier appears per step.
CHAIN_REFERENCE = [
    2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19, 20,
    20, 20, 20, 20, 20, 20,
]


def test_saturation_matches_reference_chain_curve():
    cfg = quiet(num_agents=20, delta=1.0, tmax=24.0, seed=5, world_size=(200.0, 20.0))
    sim = Simulation(cfg)
    agents = []
    for aid in range(20):
        mob = RandomWaypoint(cfg["world_size"], 0.0, sim.rng, speed_range=(0.01, 0.01),
                             pause_range=(0.0, 1.0), pos=(1.0 + 9.0 * aid, 10.0, 0.0))
        agents.append(EpidemicAgent(aid, 10.0, mob))
    agents[0].infect("1")
    sim.populate(agents)

    curve = []
    while not sim.clock.expired:
        sim.step()
        curve.append(sim.infected_count())
    assert curve == CHAIN_REFERENCE


def test_saturation_matches_reference_curve_for_covering_range():
    # 1100 m exceeds the 900 x 620 field diagonal, so every pair is linked every step
    curve = _curve(num_agents=20, comm_range=1100.0, tmax=10.0, seed=7)
    assert curve == [20] * 21
