"""
Default physical properties of clusters in a bcc tungsten lattice.

These are used when a reactant definition does not provide its own reaction
radius, and as the default diffusion-coefficient model of a network.
"""

import math

from ..utils.constants import (
    BCC_ATOMS_PER_CELL,
    HELIUM_RADIUS,
    K_BOLTZMANN,
    PI,
    TUNGSTEN_LATTICE_CONSTANT,
)
from .species import Composition, ReactantType, Species


def _sphere_radius(volume: float) -> float:
    return (3.0 * volume / (4.0 * PI)) ** (1.0 / 3.0)


def helium_reaction_radius(size: int, lattice_constant: float = TUNGSTEN_LATTICE_CONSTANT) -> float:
    """Reaction radius of a He_n cluster in nm."""
    volume = lattice_constant**3 / 10.0
    return HELIUM_RADIUS + _sphere_radius(volume * size) - _sphere_radius(volume)


def vacancy_reaction_radius(size: int, lattice_constant: float = TUNGSTEN_LATTICE_CONSTANT) -> float:
    """Reaction radius of a V_n cluster in nm."""
    return _sphere_radius(lattice_constant**3 * size / BCC_ATOMS_PER_CELL)


def interstitial_reaction_radius(size: int, lattice_constant: float = TUNGSTEN_LATTICE_CONSTANT) -> float:
    """Reaction radius of an I_n cluster in nm."""
    volume = lattice_constant**3 / BCC_ATOMS_PER_CELL
    return (
        lattice_constant * math.sqrt(3.0) / 4.0
        + _sphere_radius(volume * size)
        - _sphere_radius(volume)
    )


def default_reaction_radius(
    reactant_type: ReactantType,
    composition: Composition,
    lattice_constant: float = TUNGSTEN_LATTICE_CONSTANT,
) -> float:
    """Reaction radius used when a reactant definition does not give one.

    Mixed helium-vacancy clusters and lumped groups use the interstitial-like
    formula on their vacancy count, as for dislocation loops punched out by helium.
    """
    n_he = composition.get(Species.HE, 0)
    n_v = composition.get(Species.V, 0)
    n_i = composition.get(Species.I, 0)
    if reactant_type == ReactantType.HE:
        return helium_reaction_radius(n_he, lattice_constant)
    if n_i > 0:
        return interstitial_reaction_radius(n_i, lattice_constant)
    if n_he > 0 and n_v > 0:
        return interstitial_reaction_radius(n_v, lattice_constant)
    return vacancy_reaction_radius(max(n_v, 1), lattice_constant)


def arrhenius_diffusion_coefficient(
    diffusion_factor: float, migration_energy: float, temperature: float
) -> float:
    """D(T) = D0 * exp(-Em / (kB T)) in nm^2/s; immobile reactants return 0."""
    if diffusion_factor == 0.0:
        return 0.0
    return diffusion_factor * math.exp(-migration_energy / (K_BOLTZMANN * temperature))
