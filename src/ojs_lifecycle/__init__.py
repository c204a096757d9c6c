"""
OJS Lifecycle - deterministic job lifecycle simulation engine.

Computes the state transitions, retry delays, rate-limit decisions, cron
schedules, and bulk enqueue outcomes of jobs described by an OJS job
envelope, without running anything for real.

- ojs_lifecycle.core: leaf primitives (durations, PRNG, cron, payload limits, logging)
- ojs_lifecycle.execution: state machine, retry, rate limiting, bulk, simulation
- ojs_lifecycle.cli: the ``ojs-lifecycle`` command
"""

__version__ = "0.1.0"

from ojs_lifecycle.execution import (  # noqa: E402
    SimulationConfig,
    create_simulation_stepper,
    run_simulation,
)

__all__ = ["__version__", "SimulationConfig", "create_simulation_stepper", "run_simulation"]
