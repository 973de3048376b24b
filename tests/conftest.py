import math

import numpy as np
import pytest

from clusterdyn.core.network import NetworkConfiguration, ReactionNetwork
from clusterdyn.core.reactants import Cluster
from clusterdyn.core.reactions import DissociationTemplate, ReactionTemplate
from clusterdyn.core.species import ReactantType
from clusterdyn.core.super_cluster import SuperCluster
from clusterdyn.utils.constants import K_BOLTZMANN

T = ReactantType

# Monomer and mixed cluster properties of the regression network
HE1 = dict(diffusion_factor=2.95e10, migration_energy=0.13, formation_energy=6.15, reaction_radius=0.3)
V1 = dict(diffusion_factor=1.8e12, migration_energy=1.30, formation_energy=3.6, reaction_radius=0.137)
I1 = dict(diffusion_factor=8.8e10, migration_energy=0.01, formation_energy=10.0, reaction_radius=0.15)
HE1V1 = dict(formation_energy=5.14, reaction_radius=0.14)
V5 = dict(formation_energy=12.0, reaction_radius=0.2)

REGRESSION_FORWARD = (
    ReactionTemplate(T.HE, T.V, (T.HEV,)),
    ReactionTemplate(T.V, T.I, (T.V, T.I)),
    ReactionTemplate(T.I, T.HEV, (T.HE, T.HEV)),
    ReactionTemplate(T.HE, T.HE, (T.HE,)),
    ReactionTemplate(T.V, T.V, (T.V,)),
    ReactionTemplate(T.I, T.I, (T.I,)),
    ReactionTemplate(T.HE, T.HEV, (T.HEV,)),
    ReactionTemplate(T.V, T.HEV, (T.HEV,)),
)
REGRESSION_BACKWARD = (DissociationTemplate(T.HEV, T.HE, (T.V,)),)

ATOMIC_VOLUME = 0.317**3 / 2.0


def diffusion(properties, temperature):
    if properties.get("diffusion_factor", 0.0) == 0.0:
        return 0.0
    return properties["diffusion_factor"] * math.exp(-properties["migration_energy"] / (K_BOLTZMANN * temperature))


def rate(first, second, temperature):
    return (
        4.0
        * math.pi
        * (first["reaction_radius"] + second["reaction_radius"])
        * (diffusion(first, temperature) + diffusion(second, temperature))
    )


def build_regression_network(**options):
    configuration = NetworkConfiguration(
        reactant_types=(T.HE, T.V, T.I, T.HEV),
        forward_templates=REGRESSION_FORWARD,
        backward_templates=REGRESSION_BACKWARD,
        n_grid_points=13,
        **options,
    )
    network = ReactionNetwork(configuration)
    network.add(Cluster(T.HE, {"He": 1}, **HE1))
    network.add(Cluster(T.V, {"V": 1}, **V1))
    network.add(Cluster(T.I, {"I": 1}, **I1))
    network.add(Cluster(T.HEV, {"He": 1, "V": 1}, **HE1V1))
    network.add(Cluster(T.V, {"V": 5}, **V5))
    network.create_reaction_connectivity()
    network.reinitialize_network()
    return network


def regression_oracle(concentrations, temperature):
    """Fluxes and dense Jacobian of the regression network, written out by hand."""
    he, v, i, hev, _ = concentrations
    k1 = rate(HE1, V1, temperature)
    k2 = rate(V1, I1, temperature)
    k3 = rate(I1, HE1V1, temperature)
    binding = HE1["formation_energy"] + V1["formation_energy"] - HE1V1["formation_energy"]
    kd = k1 * math.exp(-binding / (K_BOLTZMANN * temperature)) / ATOMIC_VOLUME

    fluxes = np.array([
        -k1 * he * v + k3 * i * hev + kd * hev,
        -k1 * he * v - k2 * v * i + kd * hev,
        -k2 * v * i - k3 * i * hev,
        k1 * he * v - k3 * i * hev - kd * hev,
        0.0,
    ])
    jacobian = np.array([
        [-k1 * v, -k1 * he, k3 * hev, k3 * i + kd, 0.0],
        [-k1 * v, -k1 * he - k2 * i, -k2 * v, kd, 0.0],
        [0.0, -k2 * i, -k2 * v - k3 * hev, -k3 * i, 0.0],
        [k1 * v, k1 * he, -k3 * hev, -k3 * i - kd, 0.0],
        [0.0, 0.0, 0.0, 0.0, 0.0],
    ])
    return fluxes, jacobian


def dense_jacobian(network, i=0, context=None):
    network.get_diagonal_fill()
    pattern = network.get_sparsity_pattern()
    values = pattern.allocate_values()
    network.compute_all_partials(pattern.indptr, pattern.indices, values, i, context)
    return pattern.to_csr(values).toarray()


def fluxes_at(network, concentrations, i=0):
    network.update_concentrations_from_array(concentrations)
    output = np.zeros(network.get_dof())
    network.compute_all_fluxes(output, i)
    return output


def build_grouped_network():
    """He1, V1, I1 and two helium-vacancy groups with the default tungsten templates."""
    network = ReactionNetwork(NetworkConfiguration())
    network.add(Cluster(T.HE, {"He": 1}, **HE1))
    network.add(Cluster(T.V, {"V": 1}, **V1))
    network.add(Cluster(T.I, {"I": 1}, **I1))
    network.add(SuperCluster((1, 2), (1, 2), formation_energy=9.0, reaction_radius=0.2))
    network.add(SuperCluster((3, 4), (1, 3), formation_energy=15.0, reaction_radius=0.25))
    return network


@pytest.fixture
def regression_network():
    return build_regression_network()


@pytest.fixture
def regression_concentrations(regression_network):
    n = regression_network.get_dof()
    return np.arange(13 * n, dtype=float) ** 2


@pytest.fixture
def grouped_network():
    network = build_grouped_network()
    network.create_reaction_connectivity()
    network.reinitialize_network()
    network.set_temperature(1000.0)
    return network


@pytest.fixture
def grouped_concentrations(grouped_network):
    return np.linspace(0.1, 0.9, grouped_network.get_dof())
