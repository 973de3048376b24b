"""
Reactant definitions for cluster dynamics.

A reactant is either a simple cluster with one fixed composition or a lumped
super-cluster (see :mod:`clusterdyn.core.super_cluster`). Both share the state
held by :class:`Reactant` and expose the same capability interface; code that
needs to tell them apart dispatches on :attr:`Reactant.kind`.
"""

import logging
import math
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, List, Optional, Set, Tuple, Union

import numpy as np

from ..utils.constants import TUNGSTEN_LATTICE_CONSTANT, parse_quantity
from .cluster_properties import arrhenius_diffusion_coefficient, default_reaction_radius
from .species import (
    TYPE_SPECS,
    Cell,
    Composition,
    ReactantType,
    composition_label,
    composition_size,
    parse_composition,
    signed_composition,
)

if TYPE_CHECKING:
    from .super_cluster import SuperCluster

logger = logging.getLogger(__name__)


class ReactantKind(Enum):
    """Variants of reactants."""

    SIMPLE = "simple"
    LUMPED = "lumped"


AnyReactant = Union["Cluster", "SuperCluster"]
Distance = Tuple[float, float]
DiffusionModel = Callable[[float, float, float], float]

NO_DISTANCE: Distance = (0.0, 0.0)

# Types whose labels are their composition alone; loop labels carry the type, e.g. Void_V4
UNPREFIXED_TYPES = (ReactantType.HE, ReactantType.V, ReactantType.I, ReactantType.HEV)

# Participation records. `reaction` is a handle into the network's reaction arena,
# distances are the partners' signed (He, V) distances inside their own group.
ProductionTerm = namedtuple(
    "ProductionTerm", ["reaction", "first", "second", "first_distance", "second_distance"]
)
CombinationTerm = namedtuple("CombinationTerm", ["reaction", "partner", "partner_distance", "distance"])
DissociationTerm = namedtuple(
    "DissociationTerm", ["reaction", "dissociating", "other", "dissociating_distance"]
)
EmissionTerm = namedtuple("EmissionTerm", ["reaction", "first", "second", "distance"])


def add_partial(partials: np.ndarray, reactant: "AnyReactant", distance: Distance, value: float) -> None:
    """Add d(flux)/d(concentration of reactant at distance) to a dense partials array."""
    partials[reactant.id - 1] += value
    if reactant.kind is ReactantKind.LUMPED:
        partials[reactant.he_moment_id - 1] += value * distance[0]
        partials[reactant.v_moment_id - 1] += value * distance[1]


@dataclass(eq=False)
class Reactant:
    """State shared by every reactant.

    Args:
        type (ReactantType): reactant type
        composition (Composition): species -> count
        diffusion_factor (float): D0 in nm^2/s, 0 for immobile reactants
        migration_energy (float): Em in eV
        formation_energy (float): Ef in eV
        reaction_radius (float): capture radius in nm
    """

    kind: ClassVar[ReactantKind]

    type: ReactantType
    composition: Composition
    diffusion_factor: float = 0.0
    migration_energy: float = math.inf
    formation_energy: float = 0.0
    reaction_radius: float = 0.0

    def __post_init__(self):
        self.composition = parse_composition(self.composition)
        if self.diffusion_factor < 0:
            raise ValueError(f"Diffusion factor must be non-negative, got {self.diffusion_factor}")
        if self.reaction_radius < 0:
            raise ValueError(f"Reaction radius must be non-negative, got {self.reaction_radius}")
        self.id: Optional[int] = None
        self.concentration: float = 0.0
        self.n_grid_points = 1
        self.temperature: np.ndarray = np.full(1, np.nan)
        self.diffusion_coefficient: np.ndarray = np.zeros(1)
        self._rates_valid: np.ndarray = np.zeros(1, dtype=bool)
        self._connectivity: Set[int] = set()

    @property
    def label(self) -> str:
        if self.type in UNPREFIXED_TYPES:
            return composition_label(self.composition)
        return f"{self.type.value}_{composition_label(self.composition)}"

    @property
    def size(self) -> int:
        return composition_size(self.composition)

    @property
    def is_mobile(self) -> bool:
        return self.diffusion_factor > 0.0

    def __str__(self) -> str:
        return self.label

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label})"

    def allocate_grid(self, n_grid_points: int) -> None:
        """Size the per-grid-point state."""
        self.n_grid_points = n_grid_points
        self.temperature = np.full(n_grid_points, np.nan)
        self.diffusion_coefficient = np.zeros(n_grid_points)
        self._rates_valid = np.zeros(n_grid_points, dtype=bool)

    def set_temperature(
        self,
        temperature: float,
        i: int = 0,
        diffusion_model: DiffusionModel = arrhenius_diffusion_coefficient,
    ) -> None:
        """Set the temperature at grid index i and update the diffusion coefficient there."""
        self.temperature[i] = temperature
        self.diffusion_coefficient[i] = diffusion_model(
            self.diffusion_factor, self.migration_energy, temperature
        )

    def dof_columns(self) -> Set[int]:
        """Columns (0-based degrees of freedom) holding this reactant's state."""
        return {self.id - 1}

    def get_connectivity(self) -> List[int]:
        """Sorted columns with a structurally nonzero partial derivative."""
        return sorted(self._connectivity)

    def _check_rates(self, i: int) -> None:
        if not self._rates_valid[i]:
            raise ValueError(
                f"Rate constants of {self.label} have not been calculated for grid point {i}."
            )


@dataclass(eq=False, repr=False)
class Cluster(Reactant):
    """A reactant with one fixed composition."""

    kind: ClassVar[ReactantKind] = ReactantKind.SIMPLE

    def __post_init__(self):
        super().__post_init__()
        if TYPE_SPECS[self.type].lumped:
            raise ValueError(f"Reactant type {self.type.value} is lumped, use SuperCluster")
        if not self.composition:
            raise ValueError("Composition must not be empty")
        if not set(self.composition).issubset(TYPE_SPECS[self.type].species):
            raise ValueError(f"Composition {self.label} is not valid for type {self.type.value}")
        self.reacting_pairs: List[ProductionTerm] = []
        self.combining_reactants: List[CombinationTerm] = []
        self.dissociating_pairs: List[DissociationTerm] = []
        self.emission_pairs: List[EmissionTerm] = []
        self._handles = {}
        self._rates = {}

    @classmethod
    def from_config(cls, config: Dict[str, Any], lattice_constant: float = TUNGSTEN_LATTICE_CONSTANT) -> "Cluster":
        """Create a cluster from a configuration.

        Quantities may carry units, e.g. ``"0.13 eV"`` or ``"2.95e10 nm^2/s"``.
        A missing reaction radius falls back to the lattice default.
        """
        reactant_type = ReactantType.parse(config["type"])
        composition = parse_composition(config["composition"])
        if "reaction_radius" in config:
            reaction_radius = parse_quantity(config["reaction_radius"], "nm", "nm")
        else:
            reaction_radius = default_reaction_radius(reactant_type, composition, lattice_constant)
        return cls(
            type=reactant_type,
            composition=composition,
            diffusion_factor=parse_quantity(config.get("diffusion_factor", 0.0), "nm^2/s", "nm^2/s"),
            migration_energy=parse_quantity(config.get("migration_energy", math.inf), "eV", "eV"),
            formation_energy=parse_quantity(config.get("formation_energy", 0.0), "eV", "eV"),
            reaction_radius=reaction_radius,
        )

    def to_config(self) -> Dict[str, Any]:
        """Convert the cluster to a configuration."""
        return {
            "type": self.type.value,
            "composition": {species.value: count for species, count in self.composition.items()},
            "diffusion_factor": self.diffusion_factor,
            "migration_energy": self.migration_energy,
            "formation_energy": self.formation_energy,
            "reaction_radius": self.reaction_radius,
        }

    # Participation, the cell is always this cluster's own composition
    def add_production(self, cell: Cell, term: ProductionTerm) -> None:
        self.reacting_pairs.append(term)

    def add_combination(self, cell: Cell, term: CombinationTerm) -> None:
        self.combining_reactants.append(term)

    def add_dissociation(self, cell: Cell, term: DissociationTerm) -> None:
        self.dissociating_pairs.append(term)

    def add_emission(self, cell: Cell, term: EmissionTerm) -> None:
        self.emission_pairs.append(term)

    def cells(self) -> List[Tuple[Cell, Distance]]:
        """Occupied cells with their distances; a single one for a simple cluster."""
        return [(signed_composition(self.composition), NO_DISTANCE)]

    def concentration_at(self, distance: Distance) -> float:
        return self.concentration

    def moments(self) -> np.ndarray:
        return np.array([self.concentration, 0.0, 0.0])

    def moment_columns(self) -> np.ndarray:
        return np.array([self.id - 1, -1, -1])

    def update_concentration(self, array: np.ndarray) -> None:
        self.concentration = array[self.id - 1]

    def optimize_reactions(self) -> None:
        """Pack the reaction handles of every participation list."""
        self._handles = {
            "production": np.array([t.reaction for t in self.reacting_pairs], dtype=int),
            "combination": np.array([t.reaction for t in self.combining_reactants], dtype=int),
            "dissociation": np.array([t.reaction for t in self.dissociating_pairs], dtype=int),
            "emission": np.array([t.reaction for t in self.emission_pairs], dtype=int),
        }
        self._rates = {
            name: np.zeros((self.n_grid_points, len(handles)))
            for name, handles in self._handles.items()
        }
        self._rates_valid[:] = False

    def compute_rate_constants(self, rates: np.ndarray, i: int) -> None:
        """Cache the rate constants at grid index i from the arena's rate column."""
        for name, handles in self._handles.items():
            self._rates[name][i] = rates[handles]
        self._rates_valid[i] = True

    def reset_connectivity(self) -> None:
        self._connectivity = {self.id - 1}
        for term in self.reacting_pairs:
            self._connectivity |= term.first.dof_columns() | term.second.dof_columns()
        for term in self.combining_reactants:
            self._connectivity |= term.partner.dof_columns()
        for term in self.dissociating_pairs:
            self._connectivity |= term.dissociating.dof_columns()

    def get_production_flux(self, i: int) -> float:
        self._check_rates(i)
        flux = 0.0
        for k, term in zip(self._rates["production"][i], self.reacting_pairs):
            flux += (
                k
                * term.first.concentration_at(term.first_distance)
                * term.second.concentration_at(term.second_distance)
            )
        return flux

    def get_combination_flux(self, i: int) -> float:
        self._check_rates(i)
        flux = 0.0
        for k, term in zip(self._rates["combination"][i], self.combining_reactants):
            flux += k * term.partner.concentration_at(term.partner_distance)
        return flux * self.concentration

    def get_dissociation_flux(self, i: int) -> float:
        self._check_rates(i)
        flux = 0.0
        for k, term in zip(self._rates["dissociation"][i], self.dissociating_pairs):
            flux += k * term.dissociating.concentration_at(term.dissociating_distance)
        return flux

    def get_emission_flux(self, i: int) -> float:
        self._check_rates(i)
        return float(np.sum(self._rates["emission"][i])) * self.concentration

    def get_total_flux(self, i: int) -> float:
        """Net rate of change of the concentration at grid index i."""
        return (
            self.get_production_flux(i)
            - self.get_combination_flux(i)
            + self.get_dissociation_flux(i)
            - self.get_emission_flux(i)
        )

    def get_partial_derivatives(self, context, i: int) -> None:
        """Add the partial derivatives of the total flux to ``context.values``, indexed by column."""
        self._check_rates(i)
        partials = context.values
        for k, term in zip(self._rates["production"][i], self.reacting_pairs):
            first = term.first.concentration_at(term.first_distance)
            second = term.second.concentration_at(term.second_distance)
            add_partial(partials, term.first, term.first_distance, k * second)
            add_partial(partials, term.second, term.second_distance, k * first)
        for k, term in zip(self._rates["combination"][i], self.combining_reactants):
            partner = term.partner.concentration_at(term.partner_distance)
            add_partial(partials, term.partner, term.partner_distance, -k * self.concentration)
            partials[self.id - 1] -= k * partner
        for k, term in zip(self._rates["dissociation"][i], self.dissociating_pairs):
            add_partial(partials, term.dissociating, term.dissociating_distance, k)
        partials[self.id - 1] -= float(np.sum(self._rates["emission"][i]))
