"""
Scheduler package for the Elpris service.
Contains the hourly chart refresh scheduler.
"""

from .simple_scheduler import simple_scheduler, SimpleScheduler

__all__ = [
    "simple_scheduler",
    "SimpleScheduler",
]
