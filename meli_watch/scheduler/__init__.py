"""Scheduling of recurring poll and snapshot jobs."""

from .apsched_adapter import SNAPSHOT_JOB_ID, APSchedulerAdapter, poll_job_id

__all__ = ["APSchedulerAdapter", "SNAPSHOT_JOB_ID", "poll_job_id"]
