import sys
from pathlib import Path

import pytest

# Add the project root to sys.path so tests can import synthkit without installing it.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

SAMPLES = ROOT / "samples"

ENV_OVERRIDES = (
    "SYNTHKIT_LOG_LEVEL",
    "SYNTHKIT_STRICT",
    "SYNTHKIT_CONFIG_DIR",
    "CDK_DEFAULT_ACCOUNT",
    "CDK_DEFAULT_REGION",
    "AWS_REGION",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that override configuration."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def sample_path():
    return SAMPLES / "cross_account.yml"


class Counter:
    """Zero-argument producer that counts its invocations."""

    def __init__(self, value):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


@pytest.fixture
def counter():
    return Counter
