import pytest

from config import SIM_CONFIG, ConfigError, make_config, validate_config


def test_defaults_are_valid():
    cfg = validate_config(dict(SIM_CONFIG))
    assert cfg["num_wired"] <= cfg["num_agents"]


def test_make_config_copies():
    cfg = make_config(num_agents=4, infected=(1,))
    assert cfg["num_agents"] == 4
    cfg["world_size"] = (1.0, 1.0)
    assert SIM_CONFIG["world_size"] != (1.0, 1.0)


@pytest.mark.parametrize("overrides", [
    dict(num_agents=0),
    dict(num_agents=2.5),
    dict(num_agents=4, num_wired=5, infected=(0,)),
    dict(comm_range=0.0),
    dict(delta=0.0),
    dict(tmax=-1.0),
    dict(speed_mps=(0.0, 3.0)),
    dict(speed_mps=(4.0, 3.0)),
    dict(waypoint_pause_s=(2.0, 1.0)),
    dict(waypoint_pause_s=5.0),
    dict(num_agents=3, infected=(3,)),
    dict(delivery_prob=1.5),
    dict(monitor_timeout_s=0),
    dict(path_cells=(0, 2)),
    dict(world_size=900.0),
    dict(world_size=(900.0, 620.0, 50.0)),
    dict(world_size=("wide", 620.0)),
    dict(path_cells=6),
    dict(path_cells=(2.5, 3)),
    dict(infected=3),
    dict(infected=(True,)),
])
def test_invalid_values_rejected(overrides):
    with pytest.raises(ConfigError):
        make_config(**overrides)


def test_unknown_and_missing_keys():
    with pytest.raises(ConfigError):
        make_config(population=10)
    partial = dict(SIM_CONFIG)
    del partial["delta"]
    with pytest.raises(ConfigError, match="delta"):
        validate_config(partial)
