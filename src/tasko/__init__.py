"""Tasko: task and weekly-schedule management with notifications and a command assistant."""

__version__ = "0.1.0"
