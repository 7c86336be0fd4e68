"""Periodic asyncio jobs: prediction cadence, idle session reaping, gauges."""

from __future__ import annotations

from digitflow.taskmanager.manager import CronJob, JobStats, TaskManager

__all__ = ["CronJob", "JobStats", "TaskManager"]
