from pathlib import Path

import numpy as np
import pytest

from clusterdyn.core.species import ReactantType
from clusterdyn.io import InputParser

from conftest import fluxes_at

EXAMPLE = Path(__file__).resolve().parents[1] / "examples" / "tungsten_network.yaml"

NETWORK_YAML = """
network:
  options:
    n_grid_points: 3
    unresolved_reaction_policy: warn
  rate_constants:
    lattice_constant: 0.317 nm
    disable_dissociations: true
  reactant_types: [He, V, HeV]
  templates:
    forward:
      - {first: He, second: V, products: [HeV]}
    backward:
      - {parent: HeV, monomer: He, products: [V]}
  reactants:
    - {type: He, composition: {He: 1}, diffusion_factor: 2.95e10 nm^2/s, migration_energy: 0.13 eV, formation_energy: 6.15 eV, reaction_radius: 0.3 nm}
    - {type: V, composition: {V: 1}, diffusion_factor: 1.8e12 nm^2/s, migration_energy: 1.30 eV, formation_energy: 3.6 eV}
    - {type: HeV, composition: {He: 1, V: 1}, formation_energy: 5.14 eV}
    - {type: I, composition: {I: 1}}
"""


def write(tmp_path, text):
    path = tmp_path / "network.yaml"
    path.write_text(text)
    return path


def test_network_from_yaml(tmp_path):
    network = InputParser().get_network_from_yaml(write(tmp_path, NETWORK_YAML))
    # interstitials are not a configured type
    assert network.get_names() == ["He1", "V1", "He1V1"]
    assert network.configuration.n_grid_points == 3
    assert network.configuration.rate_constants.disable_dissociations
    he = network.get(ReactantType.HE, {"He": 1})
    assert he.migration_energy == pytest.approx(0.13)
    assert he.diffusion_factor == pytest.approx(2.95e10)
    # radius from the lattice default when omitted
    assert network.get(ReactantType.V, {"V": 1}).reaction_radius > 0.0
    network.set_temperature(1000.0, 2)
    dissociations = network.get_reaction_dataframe(2).query("kind == 'dissociation'")
    assert (dissociations["rate_constant"] == 0.0).all()


def test_configuration_only(tmp_path):
    configuration = InputParser().get_configuration_from_yaml(write(tmp_path, NETWORK_YAML))
    assert configuration.unresolved_reaction_policy == "warn"
    assert [t.value for t in configuration.reactant_types] == ["He", "V", "HeV"]


def test_yaml_round_trip(tmp_path):
    parser = InputParser()
    network = parser.get_network_from_yaml(EXAMPLE)
    path = tmp_path / "written.yaml"
    parser.write_network_to_yaml(network, path)
    restored = parser.get_network_from_yaml(path)
    assert restored.get_names() == network.get_names()
    for net in (network, restored):
        net.set_temperature(1000.0)
    concentrations = np.linspace(1e-3, 2e-3, network.get_dof())
    np.testing.assert_allclose(fluxes_at(restored, concentrations), fluxes_at(network, concentrations))


def test_empty_file_raises(tmp_path):
    with pytest.raises(ValueError, match="empty"):
        InputParser().get_network_from_yaml(write(tmp_path, ""))


def test_unknown_type_in_file_raises(tmp_path):
    text = NETWORK_YAML.replace("- {type: I, composition: {I: 1}}", "- {type: Xe, composition: {He: 1}}")
    with pytest.raises(ValueError, match="Unknown reactant type"):
        InputParser().get_network_from_yaml(write(tmp_path, text))
