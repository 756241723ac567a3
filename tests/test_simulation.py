import argparse
import importlib.util
import math
from pathlib import Path

import numpy as np
import pytest

from springnet import (
    ConfigError,
    DivergenceError,
    MotorParams,
    Network,
    ShearSimulator,
    SimulationConfig,
)

SCRIPTS = Path(__file__).resolve().parents[1] / "src" / "scripts"


def small_config(**overrides):
    params = dict(size=4, probability=1.0, frequency=1.0, strain_amplitude=0.01,
                  num_oscillations=1, outputs_per_oscillation=4, seed=17)
    params.update(overrides)
    return SimulationConfig.from_dict(params)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigError, match="netsize"):
        SimulationConfig.from_dict({"netsize": 10})


def test_from_dict_builds_motor_params():
    config = SimulationConfig.from_dict({"motors": True, "motor": {"force": 0.05}})
    assert isinstance(config.motor, MotorParams)
    assert config.motor.force == 0.05
    assert config.motor.bound_time_mean == 0.25
    again = SimulationConfig.from_dict(config.to_dict())
    assert again == config


@pytest.mark.parametrize(
    "overrides",
    [
        {"size": 1},
        {"rest_length": 0.0},
        {"temperature": -1.0},
        {"frequency": -0.5},
        {"num_oscillations": 0},
        {"viscosity": 0.0},
        {"max_iterations": 0},
        {"cutoff_radius": -0.1},
    ],
)
def test_validate_rejects_bad_values(overrides):
    with pytest.raises(ConfigError):
        small_config(**overrides).validate()


def test_output_files_need_output_path():
    config = small_config(stress_file="stress")
    with pytest.raises(ConfigError, match="output path"):
        ShearSimulator(config)


def test_network_size_must_match(rng):
    net = Network.generate(5, 1.0, rng=rng)
    with pytest.raises(ConfigError):
        ShearSimulator(small_config(), network=net)


def test_time_stepping_derived_from_frequency():
    sim = ShearSimulator(small_config(frequency=2.0, num_oscillations=3, outputs_per_oscillation=10))
    assert sim.dt == pytest.approx(2.0 * math.pi / 2000.0)
    assert sim.n_steps == 3 * sim.steps_per_oscillation
    assert sim.frame_sep == sim.steps_per_oscillation // 10
    assert sim.strain_rate_at(0) == pytest.approx(0.01 * 2.0)


# ---------------------------------------------------------------------------
# Dynamic runs
# ---------------------------------------------------------------------------


def test_dynamic_run_follows_the_drive():
    sim = ShearSimulator(small_config())
    result = sim.run()

    assert result.ok
    assert result.meta["mode"] == "dynamic"
    assert result.stress.shape == (sim.n_steps,)
    assert np.all(np.isfinite(result.stress))
    # strain(t) = amplitude * sin(w t)
    expected = 0.01 * np.sin(result.time)
    np.testing.assert_allclose(result.strain, expected, atol=1e-4)
    assert result.nonaffinity.shape == ((sim.n_steps - 1) // sim.frame_sep, 5)
    assert result.energy is not None and result.energy >= 0.0


def test_dynamic_run_writes_files(tmp_path):
    config = small_config(
        output_path=str(tmp_path),
        position_file="pos",
        stress_file="stress",
        energy_file="energy",
        nonaffinity_file="aff",
    )
    sim = ShearSimulator(config)
    result = sim.run()
    assert result.ok

    frames = len(range(0, sim.n_steps, sim.frame_sep))
    assert len(list(tmp_path.glob("pos_*.txt"))) == frames
    stress = np.loadtxt(tmp_path / "stress.txt", delimiter=",")
    assert stress.shape == (frames, 3)
    aff = (tmp_path / "aff.txt").read_text().splitlines()
    assert aff[0].startswith("1,4,")
    assert len(aff) == 1 + result.nonaffinity.shape[0]
    energy = np.loadtxt(tmp_path / "energy.txt", delimiter=",", ndmin=2)
    assert energy.shape == (1, 3)


def test_motors_and_temperature_run():
    config = small_config(probability=0.8, motors=True, temperature=1e-4, frequency=5.0,
                          viscous_stress=True)
    result = ShearSimulator(config).run()
    assert result.ok
    assert np.all(np.isfinite(result.stress))


def test_nan_position_ends_run_as_diverged(rng):
    net = Network.generate(4, 1.0, rng=rng)
    net.positions[3] = np.nan
    result = ShearSimulator(small_config(), network=net).run()
    assert result.status == "diverged"
    assert isinstance(result.error, DivergenceError)
    assert result.error.step == 0
    assert result.error.parameters["N"] == 4
    assert result.energy is None
    assert np.isnan(result.stress[0])


def test_same_seed_same_run():
    config = small_config(probability=0.7, temperature=1e-3, frequency=10.0)
    a = ShearSimulator(config).run()
    b = ShearSimulator(small_config(probability=0.7, temperature=1e-3, frequency=10.0)).run()
    np.testing.assert_array_equal(a.stress, b.stress)
    np.testing.assert_array_equal(a.positions, b.positions)


# ---------------------------------------------------------------------------
# Static relaxation
# ---------------------------------------------------------------------------


def test_static_relaxation_moduli_agree(tmp_path):
    config = small_config(output_path=str(tmp_path), energy_file="energy", position_file="relaxed")
    sim = ShearSimulator(config)
    result = sim.relax()

    assert result.ok
    assert result.meta["mode"] == "static"
    g = math.sqrt(3.0) / 4.0
    assert result.meta["modulus_stress"] == pytest.approx(g, rel=1e-2)
    assert result.meta["modulus_energy"] == pytest.approx(g, rel=1e-2)
    assert result.meta["nonaffinity"] == pytest.approx(0.0, abs=1e-6)
    assert (tmp_path / "relaxed.txt").exists()
    assert (tmp_path / "energy.txt").exists()


def test_static_relaxation_at_zero_strain():
    result = ShearSimulator(small_config()).relax(0.0)
    assert result.ok
    assert result.meta["iterations"] == 1
    assert "modulus_stress" not in result.meta
    assert result.energy == pytest.approx(0.0, abs=1e-20)


def test_static_relaxation_iteration_cap():
    result = ShearSimulator(small_config(max_iterations=1)).relax(0.05, affine=False)
    assert result.status == "not_converged"
    assert "frprmn" in str(result.error)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


def load_script(name):
    module_spec = importlib.util.spec_from_file_location(name, SCRIPTS / f"{name}.py")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def cli_args(**overrides):
    defaults = {dest: None for dest in load_script("run_single").FLAG_FIELDS}
    defaults.update(config=None, job="")
    defaults.update(overrides)
    return argparse.Namespace(**defaults)


def test_cli_flags_override_config_file(tmp_path):
    run_single = load_script("run_single")
    params = tmp_path / "params.toml"
    params.write_text("size = 8\nprobability = 0.6\nfrequency = 2.0\n")
    config = run_single.build_config(cli_args(config=str(params), probability=0.9, temp=0.1))
    assert config.size == 8
    assert config.probability == 0.9
    assert config.frequency == 2.0
    assert config.temperature == 0.1


def test_cli_reports_missing_config_and_output_path(tmp_path):
    run_single = load_script("run_single")
    with pytest.raises(ConfigError):
        run_single.build_config(cli_args(config=str(tmp_path / "missing.json")))
    with pytest.raises(ConfigError):
        run_single.build_config(cli_args(st_fn="stress"))
