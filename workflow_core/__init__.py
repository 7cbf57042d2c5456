"""Workflow orchestration core: validation rules, ordered tasks, and pluggable executors."""

__version__ = "1.0.0"
