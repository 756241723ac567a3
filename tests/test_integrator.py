import math

import numpy as np
import pytest

from springnet import DivergenceError, IntegratorParams, Network, OverdampedIntegrator
from springnet.forces import net_forces
from springnet.integrator import (
    affine_velocity,
    box_muller,
    steps_per_oscillation,
    time_step_for,
)


def test_time_step_rules():
    assert time_step_for(1.0) == pytest.approx(2.0 * math.pi / 1000.0)
    # Slow drives are capped.
    assert time_step_for(0.01) == pytest.approx(0.1)
    assert time_step_for(0.0) == pytest.approx(0.1)
    assert steps_per_oscillation(0.0, 0.1) == 1000
    assert steps_per_oscillation(0.01, 0.1) == int(2.0 * math.pi / (0.01 * 0.1))


def test_drag_and_diffusion():
    params = IntegratorParams(viscosity=2.0, radius=0.5, temperature=3.0)
    assert params.drag == pytest.approx(4.0 * math.pi)
    assert params.diffusion == pytest.approx(3.0 / (4.0 * math.pi))


def test_affine_velocity_is_zero_at_mid_height(full_network):
    v = affine_velocity(full_network.lattice, 2.0)
    assert v.shape == (4,)
    assert v.sum() == pytest.approx(0.0, abs=1e-12)
    assert v[-1] == pytest.approx(2.0 * 1.5 * math.sqrt(3) / 2)


def test_zero_temperature_step(full_network):
    params = IntegratorParams(dt=0.01)
    integrator = OverdampedIntegrator(params)
    before = full_network.positions.copy()
    force = np.zeros_like(before)
    force[0] = 1.0
    force[3] = -2.0
    rate = 0.3

    delta = integrator.step(full_network, force, rate)

    expected = params.dt * force / params.drag
    v = affine_velocity(full_network.lattice, rate)
    expected.reshape(4, 4, 2)[:, :, 0] += params.dt * v[:, None]
    np.testing.assert_allclose(delta, expected)
    np.testing.assert_allclose(full_network.positions, before + expected)


def sheared_step(strain, rate=0.3):
    net = Network.generate(4, 1.0, 1.0, rng=np.random.default_rng(0))
    net.strain = strain
    integrator = OverdampedIntegrator(IntegratorParams(dt=0.01))
    delta = integrator.step(net, net_forces(net.bond_forces()), rate)
    # Remove the affine drift so only force-driven motion is left.
    drift = np.zeros((4, 4, 2))
    drift[:, :, 0] = integrator.params.dt * affine_velocity(net.lattice, rate)[:, None]
    return net, delta.reshape(4, 4, 2) - drift


def test_one_step_on_sheared_rest_lattice_moves_boundary_rows_only():
    net, moved = sheared_step(0.05)
    magnitude = np.linalg.norm(moved, axis=2)
    assert np.all(magnitude[0] > 1e-8)
    assert np.all(magnitude[3] > 1e-8)
    np.testing.assert_allclose(magnitude[1:3], 0.0, atol=1e-14)

    stress = net.stress(net.bond_forces())
    assert math.isfinite(stress)
    assert stress > 0.0
    half, _ = sheared_step(0.025)
    assert stress / half.stress(half.bond_forces()) == pytest.approx(2.0, rel=0.05)
    assert full_network.delta is delta


def test_nan_position_raises(full_network):
    integrator = OverdampedIntegrator(IntegratorParams())
    force = np.zeros_like(full_network.positions)
    force[5] = np.nan
    with pytest.raises(DivergenceError) as excinfo:
        integrator.step(full_network, force, 0.0)
    assert excinfo.value.parameters["node"] == 2
    assert "NaN" in str(excinfo.value)


def test_thermal_kicks_have_expected_variance():
    params = IntegratorParams(dt=0.01, temperature=2.0)
    integrator = OverdampedIntegrator(params, rng=np.random.default_rng(8))
    kx, ky = integrator.thermal_kicks(100_000)
    expected = 2.0 * params.diffusion * params.dt
    assert np.var(kx) == pytest.approx(expected, rel=0.03)
    assert np.var(ky) == pytest.approx(expected, rel=0.03)
    assert np.mean(kx) == pytest.approx(0.0, abs=5 * math.sqrt(expected / 100_000))


def test_box_muller_is_standard_normal():
    x, y = box_muller(np.random.default_rng(1), 1.0, 200_000)
    assert np.all(np.isfinite(x)) and np.all(np.isfinite(y))
    assert np.std(x) == pytest.approx(1.0, rel=0.02)
    assert np.corrcoef(x, y)[0, 1] == pytest.approx(0.0, abs=0.01)


def test_thermal_integrator_needs_rng():
    with pytest.raises(ValueError):
        OverdampedIntegrator(IntegratorParams(temperature=1.0))
    with pytest.raises(ValueError):
        OverdampedIntegrator(IntegratorParams(dt=0.0))
