"""
Lumped super-clusters with a first-order moment closure.

A super-cluster covers a rectangular range of helium and signed vacancy
counts; dislocation-loop groups use the vacancy axis only. Its concentration
in an occupied cell (he, v) is modelled as

    C(dHe, dV) = l0 + dHe * l1He + dV * l1V

where dHe and dV are the distances of the cell from the centroid of the
occupied cells, scaled by the half-width of the box. Three degrees of freedom
(l0, l1He, l1V) describe the whole group. The centroid is the mean of the
occupied cells, so averaging the model over the group gives back l0, and
weighting it with the first-moment factors gives back l1He and l1V as long as
the occupied helium and vacancy offsets are uncorrelated (always true for a
full box).

While the network builds its reaction graph, the micro reactions of every
occupied cell are recorded per cell. :meth:`SuperCluster.optimize_reactions`
then folds all micro reactions sharing the same reacting partner(s) into one
:class:`SuperPair`, whose coefficient array holds the sums over the folded
cells of

    (partner distance terms) x (own distance terms) x (1, heFactor, vFactor)

The last index selects the moment row (l0, l1He, l1V) the coefficient feeds.
Index 0 of every axis is the constant term, 1 the helium axis, 2 the vacancy axis.
"""

import logging
import math
import time
from collections import namedtuple
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..utils.constants import TUNGSTEN_LATTICE_CONSTANT, parse_quantity
from .cluster_properties import default_reaction_radius
from .reactants import (
    AnyReactant,
    CombinationTerm,
    DissociationTerm,
    Distance,
    EmissionTerm,
    ProductionTerm,
    Reactant,
    ReactantKind,
)
from .species import TYPE_SPECS, Cell, ReactantType, Species, composition_for_type

logger = logging.getLogger(__name__)

PAIR_KINDS = ("production", "combination", "dissociation", "emission")


@dataclass
class CellTerms:
    """Micro reactions recorded for one occupied cell of a group."""

    production: List[ProductionTerm] = field(default_factory=list)
    combination: List[CombinationTerm] = field(default_factory=list)
    dissociation: List[DissociationTerm] = field(default_factory=list)
    emission: List[EmissionTerm] = field(default_factory=list)


@dataclass(eq=False)
class SuperPair:
    """Aggregated record replacing every micro reaction with the same partner(s).

    ``coefficients`` has shape (3, 3, 3) for production and combination and
    (3, 3) for dissociation and emission. For combination ``first`` is the
    partner and ``second`` is None.
    """

    reaction: int
    first: AnyReactant
    second: Optional[AnyReactant]
    coefficients: np.ndarray
    n_folded: int = 0


# Pairs of one kind packed for vectorized evaluation
PackedPairs = namedtuple("PackedPairs", ["handles", "coefficients", "first", "second"])


def moment_vector(distance: Distance) -> np.ndarray:
    """(1, dHe, dV): the terms multiplying (l0, l1He, l1V) in the affine concentration."""
    return np.array([1.0, distance[0], distance[1]])


def stack_moments(reactants: Iterable[Optional[AnyReactant]]) -> np.ndarray:
    rows = [r.moments() for r in reactants if r is not None]
    if not rows:
        return np.zeros((0, 3))
    return np.array(rows)


def stack_columns(reactants: Iterable[Optional[AnyReactant]]) -> np.ndarray:
    rows = [r.moment_columns() for r in reactants if r is not None]
    if not rows:
        return np.zeros((0, 3), dtype=int)
    return np.array(rows, dtype=int)


def scatter_partials(buffers: Tuple[np.ndarray, ...], columns: np.ndarray, values: np.ndarray) -> None:
    """Add values[..., column, row] into buffers[row][columns] skipping missing (-1) columns."""
    valid = columns >= 0
    for row, buffer in enumerate(buffers):
        np.add.at(buffer, columns[valid], values[..., row][valid])


class SuperCluster(Reactant):
    """A rectangular group of cells lumped into one pseudo-reactant.

    Cells are signed (he, v - i) compositions. A ``Super`` group spans helium
    and vacancies; the loop groups (``VoidSuper``, ``FaultedSuper``,
    ``FrankSuper``, ``PerfectSuper``) span a single size axis with
    ``he_bounds == (0, 0)`` and negative ``v_bounds`` for interstitial loops.

    Parameters
    ----------
    he_bounds : Tuple[int, int]
        Inclusive helium range of the group.
    v_bounds : Tuple[int, int]
        Inclusive signed vacancy range of the group.
    cells : Iterable[Cell], optional
        Occupied (he, v) cells; the whole rectangle if omitted.
    formation_energy : float
        Formation energy of the group in eV.
    reaction_radius : float
        Capture radius of the group in nm.
    type : ReactantType
        Lumped reactant type of the group.
    """

    kind: ClassVar[ReactantKind] = ReactantKind.LUMPED

    def __init__(
        self,
        he_bounds: Tuple[int, int],
        v_bounds: Tuple[int, int],
        cells: Optional[Iterable[Cell]] = None,
        formation_energy: float = 0.0,
        reaction_radius: float = 0.0,
        type: ReactantType = ReactantType.SUPER,
    ):
        type = ReactantType.parse(type)
        if not TYPE_SPECS[type].lumped:
            raise ValueError(f"Reactant type {type.value} is not lumped, use Cluster")
        he_min, he_max = he_bounds
        v_min, v_max = v_bounds
        if he_min > he_max or v_min > v_max:
            raise ValueError(f"Invalid group bounds: He {he_bounds}, V {v_bounds}")
        box = [(he, v) for he in range(he_min, he_max + 1) for v in range(v_min, v_max + 1)]
        # every cell holds vacancies or interstitials
        invalid = [cell for cell in box if cell[1] == 0 or composition_for_type(type, cell) is None]
        if invalid:
            raise ValueError(f"Cells {invalid} of He {he_bounds}, V {v_bounds} are not valid for type {type.value}")
        if cells is None:
            occupied = box
        else:
            requested = set(cells)
            if not requested.issubset(box):
                raise ValueError(f"Occupied cells {sorted(requested - set(box))} are outside the group bounds")
            occupied = [cell for cell in box if cell in requested]
        if not occupied:
            raise ValueError("A group needs at least one occupied cell")

        self.he_bounds = (he_min, he_max)
        self.v_bounds = (v_min, v_max)
        self.occupied: List[Cell] = occupied
        self.n_tot = len(occupied)
        he_values = np.array([cell[0] for cell in occupied], dtype=float)
        v_values = np.array([cell[1] for cell in occupied], dtype=float)
        # centroid of the occupied cells
        self.num_he = float(he_values.mean())
        self.num_v = float(v_values.mean())
        self.he_width = he_max - he_min + 1
        self.v_width = v_max - v_min + 1

        super().__init__(
            type=type,
            composition=composition_for_type(type, (sum(c[0] for c in occupied), sum(c[1] for c in occupied))),
            diffusion_factor=0.0,
            migration_energy=math.inf,
            formation_energy=formation_energy,
            reaction_radius=reaction_radius,
        )
        self.l0 = 0.0
        self.l1_he = 0.0
        self.l1_v = 0.0
        self.he_moment_id: Optional[int] = None
        self.v_moment_id: Optional[int] = None

        self.dispersion_he = self._dispersion(he_values, self.num_he, self.he_width)
        self.dispersion_v = self._dispersion(v_values, self.num_v, self.v_width)

        self._occupied_set = set(occupied)
        self._cell_terms: Dict[Cell, CellTerms] = {cell: CellTerms() for cell in occupied}
        self._folded = False
        self.pairs: Dict[str, List[SuperPair]] = {kind: [] for kind in PAIR_KINDS}
        self._packed: Dict[str, PackedPairs] = {}
        self._rates: Dict[str, np.ndarray] = {}
        self._biggest_rate = np.zeros(1)

    @classmethod
    def from_config(cls, config: Dict[str, Any], lattice_constant: float = TUNGSTEN_LATTICE_CONSTANT) -> "SuperCluster":
        """Create a group from a configuration.

        ``he_bounds`` and ``v_bounds`` are inclusive ``[min, max]`` lists;
        ``cells`` optionally lists the occupied ``[he, v]`` cells. A missing
        reaction radius is taken at the group centroid.
        """
        group = cls(
            he_bounds=tuple(int(x) for x in config["he_bounds"]),
            v_bounds=tuple(int(x) for x in config["v_bounds"]),
            cells=[tuple(cell) for cell in config["cells"]] if config.get("cells") is not None else None,
            formation_energy=parse_quantity(config.get("formation_energy", 0.0), "eV", "eV"),
            type=config.get("type", ReactantType.SUPER),
        )
        if "reaction_radius" in config:
            group.reaction_radius = parse_quantity(config["reaction_radius"], "nm", "nm")
        else:
            centroid = composition_for_type(group.type, (round(group.num_he), round(group.num_v)))
            group.reaction_radius = default_reaction_radius(group.type, centroid or {}, lattice_constant)
        return group

    def to_config(self) -> Dict[str, Any]:
        """Convert the group to a configuration."""
        config = {
            "type": self.type.value,
            "he_bounds": list(self.he_bounds),
            "v_bounds": list(self.v_bounds),
            "formation_energy": self.formation_energy,
            "reaction_radius": self.reaction_radius,
        }
        if self.n_tot != self.he_width * self.v_width:
            config["cells"] = [list(cell) for cell in self.occupied]
        return config

    @staticmethod
    def _dispersion(values: np.ndarray, center: float, width: int) -> float:
        """2 (sum x^2 - n c^2) / (n (width - 1)) with c the mean of the occupied values."""
        if width == 1:
            return 1.0
        n = len(values)
        dispersion = 2.0 * (np.sum(values**2) - n * center**2) / (n * (width - 1))
        if np.isclose(dispersion, 0.0):
            # every occupied cell shares this coordinate, so all its factors are zero
            return 1.0
        return float(dispersion)

    @property
    def label(self) -> str:
        if self.type == ReactantType.SUPER:
            return f"Super_He{self.num_he:g}V{self.num_v:g}"
        species = "V" if self.num_v > 0 else "I"
        return f"{self.type.value}_{species}{abs(self.num_v):g}"

    @property
    def size(self) -> int:
        return int(round(self.num_he + abs(self.num_v)))

    def allocate_grid(self, n_grid_points: int) -> None:
        super().allocate_grid(n_grid_points)
        self._biggest_rate = np.zeros(n_grid_points)

    def contains(self, cell: Cell) -> bool:
        return cell in self._occupied_set

    def get_he_distance(self, he: int) -> float:
        if self.he_width == 1:
            return 0.0
        return 2.0 * (he - self.num_he) / (self.he_width - 1)

    def get_v_distance(self, v: int) -> float:
        if self.v_width == 1:
            return 0.0
        return 2.0 * (v - self.num_v) / (self.v_width - 1)

    def get_distance(self, cell: Cell) -> Distance:
        return (self.get_he_distance(cell[0]), self.get_v_distance(cell[1]))

    def get_factor(self, cell: Cell) -> Tuple[float, float]:
        """Centroid-relative factors weighting a cell's contribution to the first moments."""
        return (
            (cell[0] - self.num_he) / self.dispersion_he,
            (cell[1] - self.num_v) / self.dispersion_v,
        )

    def cells(self) -> List[Tuple[Cell, Distance]]:
        return [(cell, self.get_distance(cell)) for cell in self.occupied]

    # Concentration model
    def concentration_at(self, distance: Distance) -> float:
        return self.l0 + distance[0] * self.l1_he + distance[1] * self.l1_v

    def get_cell_concentration(self, he: int, v: int) -> float:
        if (he, v) not in self._occupied_set:
            return 0.0
        return self.concentration_at(self.get_distance((he, v)))

    def get_total_concentration(self) -> float:
        return sum(self.concentration_at(distance) for _, distance in self.cells())

    def get_total_atom_concentration(self, species: Species = Species.HE) -> float:
        total = 0.0
        for cell, distance in self.cells():
            count = composition_for_type(self.type, cell).get(species, 0)
            total += count * self.concentration_at(distance)
        return total

    def moments(self) -> np.ndarray:
        return np.array([self.l0, self.l1_he, self.l1_v])

    def moment_columns(self) -> np.ndarray:
        return np.array([self.id - 1, self.he_moment_id - 1, self.v_moment_id - 1])

    def dof_columns(self):
        return {self.id - 1, self.he_moment_id - 1, self.v_moment_id - 1}

    def update_concentration(self, array: np.ndarray) -> None:
        self.l0 = array[self.id - 1]
        self.l1_he = array[self.he_moment_id - 1]
        self.l1_v = array[self.v_moment_id - 1]
        self.concentration = self.l0

    # Participation, recorded per occupied cell until the group is folded
    def _terms(self, cell: Cell) -> Optional[CellTerms]:
        if self._folded:
            raise ValueError(f"Reactions of {self.label} have already been folded")
        return self._cell_terms.get(cell)

    def add_production(self, cell: Cell, term: ProductionTerm) -> None:
        if (terms := self._terms(cell)) is not None:
            terms.production.append(term)

    def add_combination(self, cell: Cell, term: CombinationTerm) -> None:
        if (terms := self._terms(cell)) is not None:
            terms.combination.append(term)

    def add_dissociation(self, cell: Cell, term: DissociationTerm) -> None:
        if (terms := self._terms(cell)) is not None:
            terms.dissociation.append(term)

    def add_emission(self, cell: Cell, term: EmissionTerm) -> None:
        if (terms := self._terms(cell)) is not None:
            terms.emission.append(term)

    def get_cell_terms(self, cell: Cell) -> CellTerms:
        """Micro reactions of one cell, only available before folding."""
        if self._folded:
            raise ValueError(f"Reactions of {self.label} have already been folded")
        return self._cell_terms[cell]

    def optimize_reactions(self) -> None:
        """Fold the per-cell micro reactions into SuperPairs.

        Micro reactions are grouped by the identity of their reacting partner(s)
        in a key -> list map, then each list is reduced once. The per-cell
        lists are discarded afterwards.
        """
        if self._folded:
            self._pack()
            return
        fold_time = time.time()
        groups: Dict[str, Dict[tuple, list]] = {kind: {} for kind in PAIR_KINDS}
        for cell in self.occupied:
            terms = self._cell_terms[cell]
            for term in terms.production:
                groups["production"].setdefault((term.first, term.second), []).append((cell, term))
            for term in terms.combination:
                groups["combination"].setdefault((term.partner,), []).append((cell, term))
            for term in terms.dissociation:
                groups["dissociation"].setdefault((term.dissociating, term.other), []).append((cell, term))
            for term in terms.emission:
                groups["emission"].setdefault((term.first, term.second), []).append((cell, term))

        n_micro = 0
        for kind, grouped in groups.items():
            for key, members in grouped.items():
                self.pairs[kind].append(self._reduce(kind, key, members))
                n_micro += len(members)

        self._cell_terms = {}
        self._folded = True
        self._pack()
        logger.debug(
            f"Folded {n_micro} micro reactions of {self.label} into "
            f"{sum(len(p) for p in self.pairs.values())} pairs in {time.time() - fold_time:.3f} seconds"
        )

    def _reduce(self, kind: str, key: tuple, members: list) -> SuperPair:
        """Sum the polynomial cross terms of every folded micro reaction."""
        if kind in ("production", "combination"):
            coefficients = np.zeros((3, 3, 3))
        else:
            coefficients = np.zeros((3, 3))
        for cell, term in members:
            factor = np.array([1.0, *self.get_factor(cell)])
            if kind == "production":
                first, second = moment_vector(term.first_distance), moment_vector(term.second_distance)
                coefficients += np.einsum("i,j,r->ijr", first, second, factor)
            elif kind == "combination":
                own, partner = moment_vector(term.distance), moment_vector(term.partner_distance)
                coefficients += np.einsum("i,j,r->ijr", own, partner, factor)
            elif kind == "dissociation":
                coefficients += np.outer(moment_vector(term.dissociating_distance), factor)
            else:
                coefficients += np.outer(moment_vector(term.distance), factor)
        first_term = members[0][1]
        second = key[1] if len(key) > 1 else None
        return SuperPair(first_term.reaction, key[0], second, coefficients, len(members))

    def _pack(self) -> None:
        for kind in PAIR_KINDS:
            pairs = self.pairs[kind]
            shape = (3, 3, 3) if kind in ("production", "combination") else (3, 3)
            coefficients = np.array([p.coefficients for p in pairs]) if pairs else np.zeros((0, *shape))
            self._packed[kind] = PackedPairs(
                handles=np.array([p.reaction for p in pairs], dtype=int),
                coefficients=coefficients,
                first=[p.first for p in pairs],
                second=[p.second for p in pairs],
            )
            self._rates[kind] = np.zeros((self.n_grid_points, len(pairs)))
        self._rates_valid[:] = False

    def compute_rate_constants(self, rates: np.ndarray, i: int) -> None:
        """Cache the group-normalized pair rates at grid index i."""
        if not self._folded:
            raise ValueError(f"Reactions of {self.label} have not been folded yet")
        for kind, packed in self._packed.items():
            normalized = rates[packed.handles] / self.n_tot
            normalized[np.abs(normalized) < np.finfo(float).tiny] = 0.0
            self._rates[kind][i] = normalized
        production = rates[self._packed["production"].handles]
        self._biggest_rate[i] = float(production.max()) if len(production) else 0.0
        self._rates_valid[i] = True

    def get_biggest_rate(self, i: int = 0) -> float:
        """Largest production rate constant into this group at grid index i."""
        return float(self._biggest_rate[i])

    def reset_connectivity(self) -> None:
        self._connectivity = set(self.dof_columns())
        for kind in ("production", "dissociation"):
            for pair in self.pairs[kind]:
                self._connectivity |= pair.first.dof_columns()
        for pair in self.pairs["production"]:
            self._connectivity |= pair.second.dof_columns()
        for pair in self.pairs["combination"]:
            self._connectivity |= pair.first.dof_columns()

    # Fluxes
    def get_production_flux(self, i: int) -> np.ndarray:
        self._check_rates(i)
        packed = self._packed["production"]
        return np.einsum(
            "p,pijr,pi,pj->r",
            self._rates["production"][i],
            packed.coefficients,
            stack_moments(packed.first),
            stack_moments(packed.second),
        )

    def get_combination_flux(self, i: int) -> np.ndarray:
        self._check_rates(i)
        packed = self._packed["combination"]
        return np.einsum(
            "p,pijr,i,pj->r",
            self._rates["combination"][i],
            packed.coefficients,
            self.moments(),
            stack_moments(packed.first),
        )

    def get_dissociation_flux(self, i: int) -> np.ndarray:
        self._check_rates(i)
        packed = self._packed["dissociation"]
        return np.einsum(
            "p,pir,pi->r",
            self._rates["dissociation"][i],
            packed.coefficients,
            stack_moments(packed.first),
        )

    def get_emission_flux(self, i: int) -> np.ndarray:
        self._check_rates(i)
        packed = self._packed["emission"]
        return np.einsum(
            "p,pir,i->r", self._rates["emission"][i], packed.coefficients, self.moments()
        )

    def compute_fluxes(self, i: int) -> np.ndarray:
        """Net rates of change of (l0, l1He, l1V) at grid index i."""
        return (
            self.get_production_flux(i)
            - self.get_combination_flux(i)
            + self.get_dissociation_flux(i)
            - self.get_emission_flux(i)
        )

    def get_total_flux(self, i: int) -> float:
        return float(self.compute_fluxes(i)[0])

    def get_he_moment_flux(self, i: int) -> float:
        return float(self.compute_fluxes(i)[1])

    def get_v_moment_flux(self, i: int) -> float:
        return float(self.compute_fluxes(i)[2])

    def get_partial_derivatives(self, context, i: int) -> None:
        """Add the partials of the three moment rows into the context's scratch buffers.

        ``context.values`` receives the l0 row, ``context.he_values`` and
        ``context.v_values`` the first-moment rows.
        """
        self._check_rates(i)
        buffers = (context.values, context.he_values, context.v_values)
        own = self.moments()
        own_columns = self.moment_columns()

        packed = self._packed["production"]
        k = self._rates["production"][i]
        first, second = stack_moments(packed.first), stack_moments(packed.second)
        scatter_partials(
            buffers, stack_columns(packed.first), np.einsum("p,pijr,pj->pir", k, packed.coefficients, second)
        )
        scatter_partials(
            buffers, stack_columns(packed.second), np.einsum("p,pijr,pi->pjr", k, packed.coefficients, first)
        )

        packed = self._packed["combination"]
        k = self._rates["combination"][i]
        partner = stack_moments(packed.first)
        scatter_partials(
            buffers, stack_columns(packed.first), -np.einsum("p,pijr,i->pjr", k, packed.coefficients, own)
        )
        scatter_partials(buffers, own_columns, -np.einsum("p,pijr,pj->ir", k, packed.coefficients, partner))

        packed = self._packed["dissociation"]
        k = self._rates["dissociation"][i]
        scatter_partials(buffers, stack_columns(packed.first), np.einsum("p,pir->pir", k, packed.coefficients))

        packed = self._packed["emission"]
        k = self._rates["emission"][i]
        scatter_partials(buffers, own_columns, -np.einsum("p,pir->ir", k, packed.coefficients))
