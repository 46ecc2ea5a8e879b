"""Pytest configuration and shared fixtures."""
import sys
from pathlib import Path

import pytest

# Ensure project root is on path when running pytest from anywhere
root = Path(__file__).resolve().parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from src.config.models import AppConfig, Direction, Stop  # noqa: E402


@pytest.fixture
def app_config() -> AppConfig:
    """Two stops, three directions: A1, A2 (agency SF) then B1 (agency left blank)."""
    return AppConfig(
        api_key="test-key",
        refresh_interval=30,
        cache_refresh_interval=240,
        stops=[
            Stop(
                name="Carl & Cole",
                line="N",
                agency="SF",
                directions=[
                    Direction(label="Inbound", stop_id="A1"),
                    Direction(label="Outbound", stop_id="A2"),
                ],
            ),
            Stop(
                name="Duboce & Church",
                line="J",
                agency="",
                directions=[Direction(label="Downtown", stop_id="B1")],
            ),
        ],
    )
