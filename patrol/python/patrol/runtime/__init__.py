"""Scheduling, scenario loading and the command line for patrol."""

from .scenario import Scenario, load_scenario
from .scheduler import IntervalTimer, Registration, TickScheduler

__all__ = [
    "TickScheduler",
    "Registration",
    "IntervalTimer",
    "Scenario",
    "load_scenario",
]
