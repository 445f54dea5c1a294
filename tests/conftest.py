"""
Pytest configuration and shared fixtures.
"""

import os
import pytest


_ISOLATED_ENV = ("JWT_TOKEN", "TZ", "JOBS_FILE", "LOG_LEVEL", "JOB_OVERLAP")


@pytest.fixture(autouse=True, scope="function")
def isolate_scheduler_env():
    """
    Run each test without scheduler variables inherited from the shell
    or a local .env file, restoring them afterwards.
    """
    original = {key: os.environ.get(key) for key in _ISOLATED_ENV}
    for key in _ISOLATED_ENV:
        os.environ.pop(key, None)

    yield

    for key, value in original.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)
