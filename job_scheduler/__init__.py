"""
HTTP job scheduler.

Invokes external HTTP endpoints on cron schedules with bearer-token
authentication, retry with exponential backoff, and recency-window
dependencies between jobs.
"""

__version__ = "1.0.0"
