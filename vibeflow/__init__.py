"""Vibeflow: project boards, quick tasks, notes and calendar with optional cloud sync."""

__version__ = "0.1.0"
