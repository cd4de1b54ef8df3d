import os
import sys

import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from playdeck.tests.fakes import FakePlayer, FakeProvider  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_playdeck_env():
    """Keep PLAYDECK_* variables from the developer's shell out of the tests."""
    backup = {k: v for k, v in os.environ.items() if k.startswith("PLAYDECK_")}
    for k in backup:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith("PLAYDECK_")]:
            os.environ.pop(k, None)
        os.environ.update(backup)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def player():
    return FakePlayer()
