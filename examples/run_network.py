"""Build a small tungsten network and evaluate its fluxes and Jacobian."""
import logging
from pathlib import Path

import numpy as np

from clusterdyn.io import InputParser

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="[%(levelname)s]:%(name)s:%(message)s")

# Set DEBUG level for clusterdyn modules to see timings
logging.getLogger("clusterdyn").setLevel(logging.INFO)

# Paths relative to script location (run from project root: python examples/run_network.py)
examples_dir = Path(__file__).resolve().parent
config_path = examples_dir / "tungsten_network.yaml"

parser = InputParser()
network = parser.get_network_from_yaml(config_path)
network.print_summary()

# Rates at both grid points
for i, temperature in enumerate([1000.0, 1200.0]):
    network.set_temperature(temperature, i)
    logger.info(f"Biggest rate at grid point {i}: {network.get_biggest_rate(i):.4e} nm^3/s")

# Uniform concentrations, zero first moments
dof = network.get_dof()
concentrations = np.full(dof, 1e-6)
for group in network.get_all("Super"):
    concentrations[group.he_moment_id - 1] = 0.0
    concentrations[group.v_moment_id - 1] = 0.0
network.update_concentrations_from_array(concentrations)

fluxes = np.zeros(dof)
network.compute_all_fluxes(fluxes, 0)
print("Fluxes at grid point 0 (nm^-3 s^-1):")
for name, flux in zip(network.get_names(), fluxes):
    print(f"  {name}: {flux:.4e}")

network.get_diagonal_fill()
pattern = network.get_sparsity_pattern()
values = pattern.allocate_values()
network.compute_all_partials(pattern.indptr, pattern.indices, values, 0)
jacobian = pattern.to_csr(values)
print(f"Jacobian: {jacobian.shape[0]} x {jacobian.shape[1]}, {jacobian.nnz} stored entries")

print(network.get_reaction_dataframe(0).head(20).to_string())
