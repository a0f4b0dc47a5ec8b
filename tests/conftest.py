import sys
from pathlib import Path

import pytest

# Ensure the project src directory is on sys.path for test imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from member_sync.config import get_config  # noqa: E402
from member_sync.core.context import SyncContext  # noqa: E402
from member_sync.logging import get_logger  # noqa: E402

from builders import FIXED_NOW  # noqa: E402


@pytest.fixture
def config():
    return get_config()


@pytest.fixture
def toasts():
    return []


@pytest.fixture
def context(config, toasts):
    return SyncContext(
        config=config,
        logger=get_logger("tests"),
        company_id="c1",
        user_id="advisor-1",
        add_toast=lambda message, severity: toasts.append((severity, message)),
        clock=lambda: FIXED_NOW,
    )
