"""
Pytest configuration and fixtures for dm20-levelup tests.
"""

import os
import sys
import tempfile
from pathlib import Path
import pytest

# Add src directory to Python path to allow importing dm20_levelup
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# main.py creates its character store at import time; keep it out of the repo
os.environ.setdefault("DM20_LEVELUP_STORAGE_DIR", tempfile.mkdtemp(prefix="dm20-levelup-tests-"))


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store(tmp_path):
    """Empty JSON character store in a temporary directory."""
    from dm20_levelup.storage import JsonCharacterStore

    return JsonCharacterStore(tmp_path / "characters")
