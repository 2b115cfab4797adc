"""Scheduler module for periodic query execution."""

from .scheduler import CycleExecution, JobRegistry, QueryJob, QueryScheduler, RegistryFrozenError, ScheduleError
from .handlers import HandlerConfig, HandlerError, ResultTypeError, build_handler, result_kind
from .triggers import build_trigger
from .daemon import SchedulerDaemon

__all__ = [
    "CycleExecution",
    "HandlerConfig",
    "HandlerError",
    "JobRegistry",
    "QueryJob",
    "QueryScheduler",
    "RegistryFrozenError",
    "ResultTypeError",
    "ScheduleError",
    "SchedulerDaemon",
    "build_handler",
    "build_trigger",
    "result_kind",
]
