"""Pytest fixtures shared by all tests.

Network is never used: provider clients are stubs (tests/mocks) and the
Spotify client runs against a fake requests session.
"""
from pathlib import Path
from typing import Dict, Any

import pytest

from tests.mocks.fixtures import *  # noqa: F401,F403


@pytest.fixture
def test_config(tmp_path: Path) -> Dict[str, Any]:
    """Provide a minimal test configuration as a dict.

    Tests pass cfg to CLI/modules directly rather than setting environment
    variables. Paths are isolated to tmp_path.
    """
    return {
        'log_level': 'DEBUG',
        'providers': {
            'spotify': {'client_id': 'test-client', 'client_secret': 'test-secret'},
            'apple_music': {'developer_token': None},
        },
        'sync': {
            'skew_seconds': 60,
            'max_workers': 4,
            'playlist_budget_seconds': 30,
            'staleness_hours': 24,
            'batch_size': 100,
        },
        'http': {
            'timeout_seconds': 5,
            'max_attempts': 3,
            'max_retry_after_seconds': 1,
        },
        'database': {
            'path': str(tmp_path / 'db.sqlite'),
        },
    }
