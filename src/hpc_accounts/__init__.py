"""Slurm account management scripts for HPC clusters.

Provides command-line tools that keep Slurm user associations in line with
UNIX accounts and summarize the live job queue.
"""

__version__ = "0.1.0"

__all__ = ["associations", "directory", "jobs", "policy", "reconcile", "report", "user_jobs", "user_settings"]
