"""Test configuration: point the app at the test config before importing it."""

import os
from pathlib import Path

os.environ.setdefault(
    "FINSTREAM_CONFIG", str(Path(__file__).parent / "config.test.yaml")
)
os.environ.setdefault("APP_ENVIRONMENT", "test")

from tests.fixtures import *  # noqa: E402,F401,F403
