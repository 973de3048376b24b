"""Fluxes and partials of a five-reactant network against hand-written rate equations."""

import numpy as np
import pytest

from conftest import HE1, V1, dense_jacobian, fluxes_at, rate, regression_oracle

N_REACTANTS = 5


def grid_slice(concentrations, i):
    return concentrations[i * N_REACTANTS:(i + 1) * N_REACTANTS]


def test_fluxes_at_grid_point_7(regression_network, regression_concentrations):
    network = regression_network
    network.set_temperature(1000.0, 7)
    local = grid_slice(regression_concentrations, 7)
    expected, _ = regression_oracle(local, 1000.0)
    np.testing.assert_allclose(fluxes_at(network, local, 7), expected, rtol=1e-10)


def test_partials_at_grid_point_9_and_after_cooling(regression_network, regression_concentrations):
    network = regression_network
    local = grid_slice(regression_concentrations, 9)
    network.set_temperature(1000.0, 9)
    network.update_concentrations_from_array(local)
    _, expected = regression_oracle(local, 1000.0)
    np.testing.assert_allclose(dense_jacobian(network, 9), expected, rtol=1e-10, atol=0.0)

    network.set_temperature(500.0, 9)
    _, cooled = regression_oracle(local, 500.0)
    np.testing.assert_allclose(dense_jacobian(network, 9), cooled, rtol=1e-10, atol=0.0)
    assert not np.allclose(cooled, expected)


def test_isolated_reactant_has_no_flux(regression_network, regression_concentrations):
    network = regression_network
    network.set_temperature(1000.0, 7)
    fluxes = fluxes_at(network, grid_slice(regression_concentrations, 7), 7)
    network.get_diagonal_fill()
    assert fluxes[4] == 0.0
    v5 = network.get("V", {"V": 5})
    assert v5.get_connectivity() == [v5.id - 1]


def test_rates_in_reaction_table(regression_network):
    network = regression_network
    network.set_temperature(1000.0, 7)
    frame = network.get_reaction_dataframe(7)
    he_v = frame[(frame["reactant_1"] == "He1") & (frame["reactant_2"] == "V1")]
    assert len(he_v) == 1
    assert he_v["rate_constant"].iloc[0] == pytest.approx(rate(HE1, V1, 1000.0))
    # other grid points keep their (unset) rates
    assert frame.shape[0] == 4
    assert network.get_reaction_dataframe(8)["rate_constant"].eq(0.0).all()
