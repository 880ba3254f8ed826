import sys
from pathlib import Path

# Ensure the project root is on sys.path so `symalg` is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from symalg import nodes
from symalg.common import options


@pytest.fixture(autouse=True)
def fresh_constants():
    with nodes.fresh_cache() as cache:
        yield cache


@pytest.fixture(autouse=True)
def default_options():
    saved = (options.simplification, options.eq_depth)
    yield options
    options.simplification, options.eq_depth = saved
