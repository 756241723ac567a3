import numpy as np
import pytest

from springnet import MotorParams, Motors


def test_motors_start_unbound(rng):
    motors = Motors(np.ones((4, 4, 3)), 0.01, rng)
    assert motors.times.shape == (4, 4, 3)
    assert np.all(motors.times < 0.0)
    assert motors.bound_fraction() == 0.0
    np.testing.assert_array_equal(motors.forces(), 0.0)


def test_bound_motor_pulls_with_configured_force(rng):
    params = MotorParams(force=0.5)
    motors = Motors(np.ones((2, 2, 3)), 0.01, rng, params)
    motors.times[0, 0, 1] = 1.0
    forces = motors.forces()
    assert forces[0, 0, 1] == 0.5
    assert forces.sum() == pytest.approx(0.5)


def test_step_counts_down_and_switches_state(rng):
    dt = 0.01
    motors = Motors(np.ones((1, 1, 3)), dt, rng)
    motors.times[0, 0] = [1.0, 0.005, -1.0]
    motors.step()
    t = motors.times[0, 0]
    assert t[0] == pytest.approx(1.0 - dt)
    # Second motor had less than dt left and detaches.
    assert t[1] < 0.0
    assert t[2] == pytest.approx(-1.0 + dt)


def test_unbound_motor_attaches_when_time_runs_out(rng):
    motors = Motors(np.ones((1, 1, 3)), 0.01, rng)
    motors.times[0, 0] = [-0.005, -0.5, -0.01]
    motors.step()
    assert motors.times[0, 0, 0] > 0.0
    assert motors.times[0, 0, 1] < 0.0
    assert motors.times[0, 0, 2] > 0.0


def test_motors_never_bind_broken_bonds():
    stiffness = np.zeros((3, 3, 3))
    stiffness[1, 1, 0] = 1.0
    motors = Motors(stiffness, 0.01, np.random.default_rng(0),
                    MotorParams(bound_time_mean=0.05, unbound_time_mean=0.02))
    ever_bound = np.zeros(stiffness.shape, dtype=bool)
    for _ in range(500):
        motors.step()
        ever_bound |= motors.bound
    assert ever_bound[1, 1, 0]
    assert np.count_nonzero(ever_bound) == 1


def test_steady_state_bound_fraction():
    """Long-run bound fraction approaches t_on / (t_on + t_off)."""
    params = MotorParams(bound_time_mean=0.25, unbound_time_mean=0.05)
    motors = Motors(np.ones((10, 10, 3)), 0.01, np.random.default_rng(42), params)
    samples = []
    for step in range(3000):
        motors.step()
        if step >= 500 and step % 10 == 0:
            samples.append(motors.bound_fraction())
    expected = 0.25 / (0.25 + 0.05)
    assert np.mean(samples) == pytest.approx(expected, abs=0.05)


def test_invalid_dwell_time(rng):
    with pytest.raises(ValueError):
        Motors(np.ones((2, 2, 3)), 0.01, rng, MotorParams(bound_time_mean=0.0))
