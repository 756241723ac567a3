import numpy as np
import pytest

from springnet import TriangularLattice
from springnet.integrator import affine_velocity
from springnet.nonaffinity import nonaffinity, velocity_nonaffinity


def test_zero_at_zero_strain():
    lat = TriangularLattice(4)
    pos = lat.rest_positions() + 0.3
    assert nonaffinity(lat, pos, 0.0) == 0.0
    assert nonaffinity(lat, pos, 1e-16) == 0.0


def test_affine_configuration_has_zero_nonaffinity():
    lat = TriangularLattice(5)
    assert nonaffinity(lat, lat.affine_positions(0.04), 0.04) == pytest.approx(0.0, abs=1e-20)


def test_normalisation():
    lat = TriangularLattice(4)
    strain = 0.1
    pos = lat.affine_positions(strain)
    pos[0] += 0.02
    pos[7] -= 0.01
    raw = 0.02**2 + 0.01**2
    assert nonaffinity(lat, pos, strain, normalize=False) == pytest.approx(raw)
    assert nonaffinity(lat, pos, strain) == pytest.approx(raw / (16 * strain**2))


def test_rest_positions_under_strain_are_nonaffine():
    lat = TriangularLattice(4)
    assert nonaffinity(lat, lat.rest_positions(), 0.05) > 0.0


def test_velocity_nonaffinity():
    lat = TriangularLattice(3)
    dt = 0.01
    rate = 0.5
    delta = np.zeros((3, 3, 2))
    delta[:, :, 0] = dt * affine_velocity(lat, rate)[:, None]
    assert velocity_nonaffinity(lat, delta.reshape(-1), dt, rate) == pytest.approx(0.0, abs=1e-20)
    delta[1, 1, 1] = dt * 2.0
    assert velocity_nonaffinity(lat, delta.reshape(-1), dt, rate) == pytest.approx(4.0)


def test_shape_checked():
    with pytest.raises(ValueError):
        nonaffinity(TriangularLattice(3), np.zeros(4), 0.1)
