import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from springnet import Network  # noqa: E402


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def full_network(rng):
    """Intact 4x4 network on the rest lattice."""
    return Network.generate(4, 1.0, 1.0, rng=rng)
