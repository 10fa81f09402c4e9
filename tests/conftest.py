import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import swapvault`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from swapvault.config import ConfigManager  # noqa: E402
from swapvault.identity import Pubkey  # noqa: E402
from swapvault.ledger import HostLedger  # noqa: E402
from swapvault.swap import SwapController  # noqa: E402
from swapvault.vault import VaultCustody  # noqa: E402
from tests.helpers import PROGRAM_ID  # noqa: E402


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: spawns guest worker processes (skipped unless SWAPVAULT_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_slow = _env_flag('SWAPVAULT_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set SWAPVAULT_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _clean_config(monkeypatch):
    """Each test starts from default configuration with no SWAPVAULT_* overrides."""
    for name in list(os.environ):
        if name.startswith("SWAPVAULT_") and name != "SWAPVAULT_RUN_SLOW":
            monkeypatch.delenv(name, raising=False)
    ConfigManager().reset()
    yield
    ConfigManager().reset()


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    return HostLedger()


@pytest.fixture
def admin():
    return Pubkey.new_unique()


@pytest.fixture
def vault(ledger, admin):
    custody = VaultCustody(ledger, PROGRAM_ID)
    custody.initialize(admin)
    return custody


@pytest.fixture
def controller(ledger, vault):
    return SwapController(ledger, PROGRAM_ID, vault.grant_release())
