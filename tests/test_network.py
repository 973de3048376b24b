import logging

import numpy as np
import pytest

from clusterdyn.core.network import NetworkConfiguration, ReactionNetwork
from clusterdyn.core.reactants import Cluster
from clusterdyn.core.reactions import DissociationTemplate, ReactionTemplate
from clusterdyn.core.species import ReactantType, Species
from clusterdyn.core.super_cluster import SuperCluster

from conftest import (
    HE1,
    I1,
    V1,
    build_grouped_network,
    build_regression_network,
    dense_jacobian,
    fluxes_at,
)

T = ReactantType


def test_ids_are_contiguous_and_moments_follow(grouped_network):
    reactants = grouped_network.get_all()
    assert [r.id for r in reactants] == list(range(1, len(reactants) + 1))
    groups = grouped_network.get_all(T.SUPER)
    moment_ids = [i for g in groups for i in (g.he_moment_id, g.v_moment_id)]
    assert moment_ids == list(range(len(reactants) + 1, len(reactants) + 1 + 2 * len(groups)))
    assert grouped_network.get_dof() == len(reactants) + 2 * len(groups)


def test_duplicate_composition_raises():
    network = ReactionNetwork()
    network.add(Cluster(T.HE, {"He": 1}, **HE1))
    with pytest.raises(ValueError, match="already exists"):
        network.add(Cluster(T.HE, {"He": 1}, **HE1))


def test_overlapping_groups_raise():
    network = ReactionNetwork()
    network.add(SuperCluster((1, 2), (1, 2)))
    with pytest.raises(ValueError, match="overlaps"):
        network.add(SuperCluster((2, 3), (2, 3)))


def test_cluster_in_an_occupied_group_cell_raises():
    he2v2 = dict(formation_energy=11.01, reaction_radius=0.19)
    network = ReactionNetwork()
    network.add(SuperCluster((1, 2), (1, 2)))
    with pytest.raises(ValueError, match="occupied cell"):
        network.add(Cluster(T.HEV, {"He": 2, "V": 2}, **he2v2))

    network = ReactionNetwork()
    network.add(Cluster(T.HEV, {"He": 2, "V": 2}, **he2v2))
    with pytest.raises(ValueError, match="overlaps the clusters"):
        network.add(SuperCluster((1, 2), (1, 2)))
    assert len(network) == 1

    # unoccupied cells of a partial group stay free
    network = ReactionNetwork()
    network.add(SuperCluster((1, 2), (1, 2), cells=[(1, 1), (2, 2)]))
    network.add(Cluster(T.HEV, {"He": 1, "V": 2}, formation_energy=8.45, reaction_radius=0.18))
    assert len(network) == 2


def test_reactants_of_unknown_types_are_ignored():
    network = ReactionNetwork(NetworkConfiguration(reactant_types=(T.HE, T.V)))
    network.add(Cluster(T.I, {"I": 1}, **I1))
    network.add(None)
    assert len(network) == 0


def test_get_by_type_and_composition(grouped_network):
    he = grouped_network.get("He", {"He": 1})
    assert he is not None and he.label == "He1"
    assert grouped_network.get(T.V, {"V": 2}) is None
    group = grouped_network.get(T.SUPER, {"He": 2, "V": 1})
    assert group is grouped_network.get_super_cluster(2, 1)
    assert group.contains((2, 1))
    assert grouped_network.get_super_cluster(5, 5) is None


def test_composition_list_and_names(grouped_network):
    assert grouped_network.get_names()[:3] == ["He1", "V1", "I1"]
    assert grouped_network.get_composition_list()[:3] == [(1, 0, 0), (0, 1, 0), (0, 0, 1)]


def test_add_after_connectivity_raises(regression_network):
    with pytest.raises(ValueError):
        regression_network.add(Cluster(T.HE, {"He": 2}, **HE1))


def test_use_before_initialization_raises():
    network = ReactionNetwork()
    network.add(Cluster(T.HE, {"He": 1}, **HE1))
    with pytest.raises(ValueError):
        network.set_temperature(1000.0)
    with pytest.raises(ValueError):
        network.get_dof()
    with pytest.raises(ValueError):
        network.reinitialize_network()
    network.create_reaction_connectivity()
    network.reinitialize_network()
    with pytest.raises(ValueError):
        network.compute_all_fluxes(np.zeros(1), 0)


def test_partials_need_diagonal_fill(regression_network):
    regression_network.set_temperature(1000.0, 0)
    regression_network.update_concentrations_from_array(np.ones(5))
    with pytest.raises(ValueError, match="diagonal fill"):
        regression_network.compute_all_partials(np.zeros(6, dtype=int), np.zeros(0, dtype=int), np.zeros(0))


def test_temperature_change_recomputes_rates(regression_network):
    network = regression_network
    concentrations = np.linspace(1.0, 2.0, 5)
    network.set_temperature(1000.0, 3)
    hot = fluxes_at(network, concentrations, 3)
    network.set_temperature(600.0, 3)
    cold = fluxes_at(network, concentrations, 3)
    assert network.get_temperature(3) == 600.0
    assert not np.allclose(hot, cold)
    network.set_temperature(1000.0, 3)
    np.testing.assert_allclose(fluxes_at(network, concentrations, 3), hot)


def test_grid_points_are_independent(regression_network):
    network = regression_network
    concentrations = np.linspace(1.0, 2.0, 5)
    network.set_temperature(1000.0, 0)
    network.set_temperature(500.0, 1)
    before = fluxes_at(network, concentrations, 0)
    network.set_temperature(800.0, 1)
    np.testing.assert_allclose(fluxes_at(network, concentrations, 0), before)
    # never set at this grid point
    with pytest.raises(ValueError):
        fluxes_at(network, concentrations, 2)


def test_unchanged_temperature_is_a_no_op(regression_network, caplog):
    regression_network.set_temperature(1000.0, 0)
    with caplog.at_level(logging.DEBUG, logger="clusterdyn.core.network"):
        regression_network.set_temperature(1000.0, 0)
    assert "unchanged" in caplog.text


def test_unresolved_policy_raise():
    with pytest.raises(ValueError, match="No product found"):
        build_regression_network(unresolved_reaction_policy="raise")


def test_unresolved_policy_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="clusterdyn.core.network"):
        build_regression_network(unresolved_reaction_policy="warn")
    assert "reaction dropped" in caplog.text


def test_invalid_policy_raises():
    with pytest.raises(ValueError):
        NetworkConfiguration(unresolved_reaction_policy="ignore")


def test_regression_reaction_graph(regression_network):
    stats = regression_network.reactions.get_statistics()
    # He + V, V + I (annihilation), I + HeV and the dissociation of HeV
    assert stats == {
        "total_reactions": 4, "productions": 3, "annihilations": 1, "dissociations": 1, "reverse_only": 0
    }
    frame = regression_network.get_reaction_dataframe()
    assert set(frame["kind"]) == {"production", "dissociation"}


def test_atoms_are_conserved_without_sinks():
    network = ReactionNetwork(
        NetworkConfiguration(
            reactant_types=(T.HE, T.V, T.HEV),
            forward_templates=(ReactionTemplate(T.HE, T.V, (T.HEV,)),),
        )
    )
    network.add(Cluster(T.HE, {"He": 1}, **HE1))
    network.add(Cluster(T.V, {"V": 1}, **V1))
    network.add(Cluster(T.HEV, {"He": 1, "V": 1}, formation_energy=9.0, reaction_radius=0.14))
    network.create_reaction_connectivity()
    network.reinitialize_network()
    network.set_temperature(1200.0)
    fluxes = fluxes_at(network, np.array([0.3, 0.2, 0.1]))
    assert fluxes[0] + fluxes[2] == pytest.approx(0.0, abs=1e-9 * np.abs(fluxes).max())
    assert fluxes[1] + fluxes[2] == pytest.approx(0.0, abs=1e-9 * np.abs(fluxes).max())


def test_total_concentrations(grouped_network, grouped_concentrations):
    grouped_network.update_concentrations_from_array(grouped_concentrations)
    group = grouped_network.get_super_cluster(1, 1)
    cells = [group.get_cell_concentration(he, v) for he, v in group.occupied]
    assert group.get_total_concentration() == pytest.approx(sum(cells))
    helium = sum(he * group.get_cell_concentration(he, v) for he, v in group.occupied)
    assert group.get_total_atom_concentration(Species.HE) == pytest.approx(helium)
    assert grouped_network.get_total_concentration() > 0.0
    assert grouped_network.get_total_atom_concentration(Species.I) == pytest.approx(grouped_concentrations[2])


def test_jacobian_matches_finite_differences(grouped_network, grouped_concentrations):
    network = grouped_network
    jacobian = dense_jacobian_at(network, grouped_concentrations)
    step = 1e-2
    finite = np.zeros_like(jacobian)
    for column in range(network.get_dof()):
        up = grouped_concentrations.copy()
        down = grouped_concentrations.copy()
        up[column] += step
        down[column] -= step
        finite[:, column] = (fluxes_at(network, up) - fluxes_at(network, down)) / (2 * step)
    np.testing.assert_allclose(jacobian, finite, rtol=1e-6, atol=1e-9 * np.abs(finite).max())


def test_explicit_partials_context_gives_same_jacobian(grouped_network, grouped_concentrations):
    network = grouped_network
    default = dense_jacobian_at(network, grouped_concentrations)
    network.update_concentrations_from_array(grouped_concentrations)
    explicit = dense_jacobian(network, 0, network.create_partials_context())
    np.testing.assert_allclose(explicit, default)


def test_diagonal_fill_includes_moment_rows(grouped_network):
    fill = {}
    grouped_network.get_diagonal_fill(fill)
    group = grouped_network.get_super_cluster(1, 1)
    row = fill[group.id - 1]
    assert fill[group.he_moment_id - 1] == row
    assert fill[group.v_moment_id - 1] == row
    assert {group.id - 1, group.he_moment_id - 1, group.v_moment_id - 1} <= set(row)
    assert all(row == sorted(row) for row in fill.values())


def test_biggest_rate(grouped_network):
    group = grouped_network.get_super_cluster(1, 1)
    assert group.get_biggest_rate(0) > 0.0
    assert grouped_network.get_biggest_rate(0) >= group.get_biggest_rate(0)


def test_config_round_trip():
    network = build_grouped_network()
    network.create_reaction_connectivity()
    network.reinitialize_network()
    restored = ReactionNetwork.from_config(network.to_config())
    assert restored.get_names() == network.get_names()
    assert restored.get_dof() == network.get_dof()
    concentrations = np.linspace(0.1, 0.9, network.get_dof())
    network.set_temperature(900.0)
    restored.set_temperature(900.0)
    np.testing.assert_allclose(fluxes_at(restored, concentrations), fluxes_at(network, concentrations))


def dense_jacobian_at(network, concentrations, i=0):
    network.update_concentrations_from_array(concentrations)
    return dense_jacobian(network, i)


def test_same_temperature_keeps_dissociation_rates(regression_network):
    network = regression_network
    handles = [r.handle for r in network.reactions.dissociations()]
    network.set_temperature(1000.0, 0)
    before = network.reactions.rates[handles, 0].copy()
    network.set_temperature(1000.0, 0)
    np.testing.assert_array_equal(network.reactions.rates[handles, 0], before)
    network.set_temperature(500.0, 0)
    assert np.all(network.reactions.rates[handles, 0] != before)


def test_reverse_only_productions_are_not_counted():
    network = ReactionNetwork(
        NetworkConfiguration(
            reactant_types=(T.HE, T.V, T.HEV),
            forward_templates=(),
            backward_templates=(DissociationTemplate(T.HEV, T.HE, (T.V,)),),
        )
    )
    network.add(Cluster(T.HE, {"He": 1}, **HE1))
    network.add(Cluster(T.V, {"V": 1}, **V1))
    network.add(Cluster(T.HEV, {"He": 1, "V": 1}, formation_energy=5.14, reaction_radius=0.14))
    network.create_reaction_connectivity()
    network.reinitialize_network()
    network.set_temperature(1000.0)

    stats = network.reactions.get_statistics()
    assert stats["productions"] == 0
    assert stats["reverse_only"] == 1
    assert stats["dissociations"] == 1
    assert network.get_biggest_rate(0) == 0.0
    frame = network.get_reaction_dataframe(0)
    assert set(frame["kind"]) == {"reverse_production", "dissociation"}
    # the reverse reaction still supplies k+ for detailed balance
    assert (frame["rate_constant"] > 0.0).all()


def test_forward_production_is_not_reverse_only():
    network = ReactionNetwork(
        NetworkConfiguration(
            reactant_types=(T.HE, T.V, T.HEV),
            forward_templates=(ReactionTemplate(T.HE, T.V, (T.HEV,)),),
            backward_templates=(DissociationTemplate(T.HEV, T.HE, (T.V,)),),
        )
    )
    network.add(Cluster(T.HE, {"He": 1}, **HE1))
    network.add(Cluster(T.V, {"V": 1}, **V1))
    network.add(Cluster(T.HEV, {"He": 1, "V": 1}, formation_energy=5.14, reaction_radius=0.14))
    network.create_reaction_connectivity()
    stats = network.reactions.get_statistics()
    assert (stats["productions"], stats["reverse_only"]) == (1, 0)


def test_reused_context_with_stale_values_gives_same_jacobian(grouped_network, grouped_concentrations):
    network = grouped_network
    expected = dense_jacobian_at(network, grouped_concentrations)
    context = network.create_partials_context()
    # leftovers of an evaluation that stopped partway through a row
    context.values[:] = 7.0
    context.he_values[:] = -3.0
    context.v_values[:] = 1.5
    np.testing.assert_allclose(dense_jacobian(network, 0, context), expected)
    np.testing.assert_array_equal(context.values, 0.0)
