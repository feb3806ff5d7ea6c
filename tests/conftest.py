"""Pytest configuration and fixtures."""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import SUBSCRIPTION_ID, MockAzureContext  # noqa: E402

from hcs_operator.config import Config  # noqa: E402


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Operator config with fast polling and no post-delete cool-down."""
    specs_dir = tmp_path / "specs"
    state_dir = tmp_path / "state"
    specs_dir.mkdir()
    return Config(
        subscription_id=SUBSCRIPTION_ID,
        specs_dir=specs_dir,
        state_dir=state_dir,
        operation_poll_interval_seconds=0.01,
        delete_cooldown_seconds=0,
        reconcile_interval_seconds=60,
        correlation_id="test-correlation-id",
    )


@pytest.fixture
def azure() -> Generator[MockAzureContext, None, None]:
    """Patched Azure control plane backed by in-memory HCS state."""
    with MockAzureContext() as ctx:
        yield ctx
