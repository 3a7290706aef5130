"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local sonarferry package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of sonarferry modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("sonarferry"):
        del sys.modules[module_name]

from fakes import make_snapshot  # noqa: E402

from sonarferry.source.models import Branch, Snapshot  # noqa: E402


@pytest.fixture
def branches() -> list[Branch]:
    return [Branch("main", is_main=True), Branch("develop"), Branch("feature-x")]


@pytest.fixture
def snapshot_factory() -> Callable[..., Snapshot]:
    return make_snapshot
