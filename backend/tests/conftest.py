from pathlib import Path
import sys

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
REPO_ROOT = BACKEND_ROOT.parent
for path in (str(BACKEND_ROOT), str(REPO_ROOT)):
    if path not in sys.path:
        sys.path.insert(0, path)

from config import LinkedInSettings, Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        linkedin=LinkedInSettings(client_id="client-123", client_secret="secret-456"),
        session_secret="test-session-secret",
        cors_origins=["http://localhost:3000"],
        log_level="WARNING",
    )
