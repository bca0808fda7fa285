"""Taskboard: a task management API with multi-user assignment."""

__version__ = "1.0.0"
