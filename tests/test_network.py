import numpy as np
import pytest

from springnet import Network, TriangularLattice


def test_generate_on_rest_lattice(rng):
    net = Network.generate(5, 0.5, 2.0, rng=rng)
    assert net.size == 5
    assert net.rest_length == 1.0
    assert net.strain == 0.0
    np.testing.assert_array_equal(net.positions, net.lattice.rest_positions())
    np.testing.assert_array_equal(net.delta, 0.0)
    assert set(np.unique(net.stiffness)) <= {0.0, 2.0}


def test_generate_with_affine_seed(rng):
    net = Network.generate(4, 1.0, rng=rng, strain=0.03, affine=True)
    assert net.strain == 0.03
    np.testing.assert_allclose(net.positions, net.lattice.affine_positions(0.03))
    # Affine seed of an intact lattice is already balanced.
    np.testing.assert_allclose(net.gradient(), 0.0, atol=1e-12)


def test_copy_is_independent(full_network):
    clone = full_network.copy()
    clone.positions[0] += 1.0
    clone.stiffness[0, 0, 0] = 0.0
    clone.strain = 0.2
    assert full_network.positions[0] == 0.0
    assert full_network.stiffness[0, 0, 0] == 1.0
    assert full_network.strain == 0.0


def test_node_position(full_network):
    np.testing.assert_allclose(full_network.node_position(2, 1), [2.0, np.sqrt(3.0)])
    # Indices wrap periodically.
    np.testing.assert_allclose(full_network.node_position(6, 5), full_network.node_position(2, 1))


def test_shapes_are_validated():
    lat = TriangularLattice(3)
    with pytest.raises(ValueError):
        Network(lat, np.ones((3, 3, 2)), lat.rest_positions())
    with pytest.raises(ValueError):
        Network(lat, np.ones((3, 3, 3)), np.zeros(10))
