#!/usr/bin/env python3
"""
DTN Epidemic Simulator - Main Entry Point

Mobile agents exchange messages opportunistically whenever they come within
radio range.

Features:
- Random-waypoint mobility, optionally along a shared path graph
- Static, fully-linked wired backbone agents
- Epidemic (flooding) and probabilistic-broadcast forwarding
- Deterministic clock: move -> forward -> tick -> display
- Live Matplotlib animation: moving agents + links + infection state

Run:
    python main.py
"""

import logging
import sys

from config import SIM_CONFIG, ConfigError
from simulation import Simulation
from visualization import run_live_viz


def main():
    """Main entry point for the DTN epidemic simulation"""
    logging.basicConfig(level=SIM_CONFIG["log_level"],
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    try:
        sim = Simulation(SIM_CONFIG).build()
    except ConfigError as e:
        logging.getLogger(__name__).error("Invalid configuration: %s", e)
        return 2

    if SIM_CONFIG["monitor"] == "live":
        print("Starting simulation with live visualization...")
        run_live_viz(sim)
    else:
        sim.run()
        sim.report()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
