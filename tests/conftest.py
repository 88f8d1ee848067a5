import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from warband.content import load_default_content  # noqa: E402
from warband.run import RunManager  # noqa: E402
from warband.settings import GameSettings  # noqa: E402


@pytest.fixture(scope="session")
def content():
    return load_default_content()


@pytest.fixture()
def settings():
    return GameSettings.load()


@pytest.fixture()
def run_manager(content, settings):
    return RunManager(content=content, settings=settings)


@pytest.fixture()
def started_run(run_manager):
    run_manager.new_run(seed=12345)
    return run_manager


@pytest.fixture()
def save_dir(tmp_path: Path) -> Path:
    d = tmp_path / "appdata"
    d.mkdir()
    return d
