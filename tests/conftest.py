# tests/conftest.py
# Ensure the project root (the folder that contains 'stepscope' and 'tests') is on sys.path
# so that `import stepscope` works during pytest collection without an install.

import sys
import pathlib

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from stepscope.interpreter import run_source  # noqa: E402


@pytest.fixture
def run():
    """Run a snippet; returns its snapshot list."""
    def _run(source, **kwargs):
        return run_source(source, **kwargs)
    return _run
