"""
Reaction network representation and evaluation.

The network owns every reactant and reaction. Its life cycle is

1. ``add`` reactants,
2. ``create_reaction_connectivity`` once,
3. ``reinitialize_network`` to assign ids and fold lumped reactions,
4. ``set_temperature`` whenever the temperature at a grid point changes,
5. ``update_concentrations_from_array`` / ``compute_all_fluxes`` /
   ``compute_all_partials`` repeatedly from the time integrator.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .cluster_properties import arrhenius_diffusion_coefficient
from .jacobian import PartialsContext, SparsityPattern
from .rate_constants import RateConstantCalculator, RateConstantsConfiguration
from .reactants import (
    NO_DISTANCE,
    AnyReactant,
    Cluster,
    CombinationTerm,
    DiffusionModel,
    DissociationTerm,
    Distance,
    EmissionTerm,
    ProductionTerm,
    ReactantKind,
)
from .reactions import (
    ALLOY_BACKWARD_TEMPLATES,
    ALLOY_FORWARD_TEMPLATES,
    DEFAULT_BACKWARD_TEMPLATES,
    DEFAULT_FORWARD_TEMPLATES,
    DissociationTemplate,
    ReactionArena,
    ReactionTemplate,
    monomer_composition,
    parse_dissociation_template,
    parse_reaction_template,
    template_to_config,
)
from .species import (
    TYPE_SPECS,
    Cell,
    Composition,
    CompositionKey,
    ReactantType,
    Species,
    composition_for_type,
    composition_key,
    lumping_types,
    parse_composition,
    signed_composition,
)
from .super_cluster import SuperCluster

logger = logging.getLogger(__name__)

UNRESOLVED_REACTION_POLICIES = ("drop", "warn", "raise")

DEFAULT_REACTANT_TYPES: Tuple[ReactantType, ...] = (
    ReactantType.HE,
    ReactantType.V,
    ReactantType.I,
    ReactantType.HEV,
    ReactantType.SUPER,
)

ALLOY_REACTANT_TYPES: Tuple[ReactantType, ...] = (
    ReactantType.V,
    ReactantType.I,
    ReactantType.VOID,
    ReactantType.FAULTED,
    ReactantType.FRANK,
    ReactantType.PERFECT,
    ReactantType.VOID_SUPER,
    ReactantType.FAULTED_SUPER,
    ReactantType.FRANK_SUPER,
    ReactantType.PERFECT_SUPER,
)

# Default reactant types and templates selected by ``options.defaults``
NETWORK_DEFAULTS = {
    "tungsten": (DEFAULT_REACTANT_TYPES, DEFAULT_FORWARD_TEMPLATES, DEFAULT_BACKWARD_TEMPLATES),
    "alloy": (ALLOY_REACTANT_TYPES, ALLOY_FORWARD_TEMPLATES, ALLOY_BACKWARD_TEMPLATES),
}


@dataclass
class NetworkConfiguration:
    """Configuration of a reaction network.

    Attributes:
        reactant_types: types the network accepts, others are ignored by ``add``
        forward_templates: allowed production reactions
        backward_templates: allowed dissociation reactions
        rate_constants: rate constant configuration
        n_grid_points: number of spatial grid points with their own temperature
        unresolved_reaction_policy: what to do when a template finds no product,
            one of "drop", "warn" or "raise"
    """

    reactant_types: Tuple[ReactantType, ...] = DEFAULT_REACTANT_TYPES
    forward_templates: Tuple[ReactionTemplate, ...] = DEFAULT_FORWARD_TEMPLATES
    backward_templates: Tuple[DissociationTemplate, ...] = DEFAULT_BACKWARD_TEMPLATES
    rate_constants: RateConstantsConfiguration = field(default_factory=RateConstantsConfiguration)
    n_grid_points: int = 1
    unresolved_reaction_policy: str = "drop"

    def __post_init__(self):
        """Validate the configuration."""
        self.reactant_types = tuple(ReactantType.parse(t) for t in self.reactant_types)
        self.unresolved_reaction_policy = self.unresolved_reaction_policy.lower()
        if self.unresolved_reaction_policy not in UNRESOLVED_REACTION_POLICIES:
            raise ValueError(
                f"Invalid unresolved reaction policy: {self.unresolved_reaction_policy}. "
                f"Must be one of {UNRESOLVED_REACTION_POLICIES}."
            )
        if not isinstance(self.n_grid_points, int) or self.n_grid_points < 1:
            raise ValueError(f"Number of grid points must be a positive integer, got {self.n_grid_points}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "NetworkConfiguration":
        """Create a configuration from a configuration.

        Reactant types and templates missing from the configuration are taken
        from the ``options.defaults`` set, "tungsten" or "alloy".
        """
        options = config.get("options", {})
        defaults = options.get("defaults", "tungsten")
        if defaults not in NETWORK_DEFAULTS:
            raise ValueError(f"Unknown network defaults: {defaults}. Must be one of {list(NETWORK_DEFAULTS)}.")
        default_types, default_forward, default_backward = NETWORK_DEFAULTS[defaults]
        templates = config.get("templates", {})
        forward = templates.get("forward")
        backward = templates.get("backward")
        return cls(
            reactant_types=tuple(config.get("reactant_types", default_types)),
            forward_templates=(
                tuple(parse_reaction_template(t) for t in forward) if forward is not None else default_forward
            ),
            backward_templates=(
                tuple(parse_dissociation_template(t) for t in backward)
                if backward is not None
                else default_backward
            ),
            rate_constants=RateConstantsConfiguration.from_config(config.get("rate_constants", {})),
            n_grid_points=options.get("n_grid_points", 1),
            unresolved_reaction_policy=options.get("unresolved_reaction_policy", "drop"),
        )

    def to_config(self) -> Dict[str, Any]:
        """Convert configuration to a configuration."""
        return {
            "reactant_types": [t.value for t in self.reactant_types],
            "templates": {
                "forward": [template_to_config(t) for t in self.forward_templates],
                "backward": [template_to_config(t) for t in self.backward_templates],
            },
            "rate_constants": self.rate_constants.to_config(),
            "options": {
                "n_grid_points": self.n_grid_points,
                "unresolved_reaction_policy": self.unresolved_reaction_policy,
            },
        }

    def print_summary(self):
        """Print the summary of the network configuration."""
        print("Network Configuration:")
        print("=" * 50)
        print(f"Reactant types: {', '.join(t.value for t in self.reactant_types)}")
        print("Forward templates:")
        for t in self.forward_templates:
            print(f"  {t.first.value} + {t.second.value} -> {' | '.join(p.value for p in t.products)}")
        print("Backward templates:")
        for t in self.backward_templates:
            print(f"  {t.parent.value} -> {t.monomer.value} + {' | '.join(p.value for p in t.products)}")
        print(f"Disable dissociations: {self.rate_constants.disable_dissociations}")
        print(f"Grid points: {self.n_grid_points}")
        print(f"Unresolved reaction policy: {self.unresolved_reaction_policy}")


class ReactionNetwork:
    """
    Cluster dynamics reaction network.

    Parameters
    ----------
    configuration : NetworkConfiguration, optional
        Network configuration, the tungsten defaults if omitted.
    diffusion_model : DiffusionModel, optional
        Callable ``(diffusion_factor, migration_energy, temperature) -> D``
        used by ``set_temperature``.
    """

    def __init__(
        self,
        configuration: Optional[NetworkConfiguration] = None,
        diffusion_model: DiffusionModel = arrhenius_diffusion_coefficient,
    ):
        self.configuration = configuration or NetworkConfiguration()
        self.diffusion_model = diffusion_model
        self.rate_calculator = RateConstantCalculator(self.configuration.rate_constants)
        self.reactions = ReactionArena()
        self._reactants: List[AnyReactant] = []
        self._by_type: Dict[ReactantType, List[AnyReactant]] = {
            t: [] for t in self.configuration.reactant_types
        }
        self._by_composition: Dict[Tuple[ReactantType, CompositionKey], Cluster] = {}
        self._lumped_cells: Dict[Tuple[ReactantType, Cell], SuperCluster] = {}
        self._temperatures = np.full(self.configuration.n_grid_points, np.nan)
        self._smallest_corrected_size: Optional[int] = None
        self._connectivity_built = False
        self._initialized = False
        self._dof = 0
        self._n_dropped = 0
        self._fill_map: Optional[Dict[int, List[int]]] = None
        self._default_context: Optional[PartialsContext] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ReactionNetwork":
        """Create a network, with its reactants, from a configuration.

        The reaction graph is built and the network initialized unless
        ``options.build`` is false.
        """
        network = cls(NetworkConfiguration.from_config(config))
        lattice_constant = network.configuration.rate_constants.lattice_constant
        for reactant_config in config.get("reactants", []):
            if TYPE_SPECS[ReactantType.parse(reactant_config["type"])].lumped:
                network.add(SuperCluster.from_config(reactant_config, lattice_constant))
            else:
                network.add(Cluster.from_config(reactant_config, lattice_constant))
        if config.get("options", {}).get("build", True):
            network.create_reaction_connectivity()
            network.reinitialize_network()
        return network

    def to_config(self) -> Dict[str, Any]:
        """Convert the network to a configuration."""
        config = self.configuration.to_config()
        config["reactants"] = [r.to_config() for r in self._reactants]
        return config

    def __len__(self) -> int:
        return len(self._reactants)

    def size(self) -> int:
        """Number of registered reactants."""
        return len(self._reactants)

    def __iter__(self):
        return iter(self._reactants)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def get_dof(self) -> int:
        """Degrees of freedom: one per reactant plus two per lumped reactant."""
        self._check_initialized()
        return self._dof

    # Registry
    def add(self, reactant: Optional[AnyReactant]) -> None:
        """Register a reactant. Reactants of types the network does not know are ignored."""
        if reactant is None or reactant.type not in self._by_type:
            logger.debug(f"Ignoring reactant {reactant} of a type not handled by the network")
            return
        if self._connectivity_built:
            raise ValueError("Cannot add reactants after the reaction connectivity has been created")
        if reactant.kind is ReactantKind.LUMPED:
            overlap = [cell for cell in reactant.occupied if (reactant.type, cell) in self._lumped_cells]
            if overlap:
                raise ValueError(f"Group {reactant.label} overlaps other groups in cells {overlap}")
            duplicates = [
                self._by_composition[key].label
                for cell in reactant.occupied
                for key in self._member_keys(reactant.type, cell)
                if key in self._by_composition
            ]
            if duplicates:
                raise ValueError(f"Group {reactant.label} overlaps the clusters {duplicates}")
            for cell in reactant.occupied:
                self._lumped_cells[(reactant.type, cell)] = reactant
        else:
            key = (reactant.type, composition_key(reactant.composition))
            if key in self._by_composition:
                raise ValueError(f"A {reactant.type.value} reactant with composition {reactant.label} already exists")
            cell = signed_composition(reactant.composition)
            for lumped_type in lumping_types(reactant.type):
                group = self._lumped_cells.get((lumped_type, cell))
                if group is not None:
                    raise ValueError(
                        f"Cluster {reactant.label} lies in the occupied cell {cell} of group {group.label}"
                    )
            self._by_composition[key] = reactant
        reactant.allocate_grid(self.configuration.n_grid_points)
        self._reactants.append(reactant)
        self._by_type[reactant.type].append(reactant)

    def get(self, reactant_type: "ReactantType | str", composition: Composition) -> Optional[AnyReactant]:
        """Get the reactant of a type with an exact composition, or None.

        For lumped types the group containing the composition's cell is returned.
        """
        reactant_type = ReactantType.parse(reactant_type)
        if reactant_type not in self._by_type:
            return None
        composition = parse_composition(composition)
        if TYPE_SPECS[reactant_type].lumped:
            return self._lumped_cells.get((reactant_type, signed_composition(composition)))
        return self._by_composition.get((reactant_type, composition_key(composition)))

    def get_all(self, reactant_type: "Optional[ReactantType | str]" = None) -> List[AnyReactant]:
        """Get all reactants, or all reactants of a type."""
        if reactant_type is None:
            return list(self._reactants)
        return list(self._by_type.get(ReactantType.parse(reactant_type), []))

    def get_super_cluster(
        self, he: int, v: int, reactant_type: "ReactantType | str" = ReactantType.SUPER
    ) -> Optional[SuperCluster]:
        """Get the group of a lumped type containing the signed (he, v) cell, or None."""
        return self._lumped_cells.get((ReactantType.parse(reactant_type), (he, v)))

    @staticmethod
    def _member_keys(lumped_type: ReactantType, cell: Cell) -> List[Tuple[ReactantType, CompositionKey]]:
        """Identity keys of the simple reactants a group of this type stands in for at a cell."""
        keys = []
        for member in TYPE_SPECS[lumped_type].members:
            composition = composition_for_type(member, cell)
            if composition is not None:
                keys.append((member, composition_key(composition)))
        return keys

    def get_names(self) -> List[str]:
        return [r.label for r in self._reactants]

    def get_composition_list(self) -> List[CompositionKey]:
        """Complete (He, V, I) compositions of all reactants in registration order."""
        return [composition_key(r.composition) for r in self._reactants]

    # Reaction graph
    def _resolve_product(
        self, product_types: Tuple[ReactantType, ...], signed: Cell
    ) -> Optional[Tuple[AnyReactant, Cell, Distance]]:
        """Find the first product type holding a reactant with the signed composition."""
        for product_type in product_types:
            if product_type not in self._by_type:
                continue
            composition = composition_for_type(product_type, signed)
            if composition is None:
                continue
            if TYPE_SPECS[product_type].lumped:
                group = self._lumped_cells.get((product_type, signed))
                if group is not None:
                    return group, signed, group.get_distance(signed)
                continue
            product = self._by_composition.get((product_type, composition_key(composition)))
            if product is not None:
                return product, signed, NO_DISTANCE
        return None

    def _unresolved(self, description: str) -> None:
        policy = self.configuration.unresolved_reaction_policy
        if policy == "raise":
            raise ValueError(f"No product found for {description}")
        if policy == "warn":
            logger.warning(f"No product found for {description}, reaction dropped")
        self._n_dropped += 1

    def create_reaction_connectivity(self) -> None:
        """Build every production and dissociation reaction allowed by the templates."""
        if self._connectivity_built:
            logger.debug("Reaction connectivity already created, skipping.")
            return
        connectivity_time = time.time()
        self._n_dropped = 0
        self._create_production_reactions()
        self._create_dissociation_reactions()
        self.reactions.allocate_rates(self.configuration.n_grid_points)
        self._smallest_corrected_size = self._find_smallest_corrected_size()
        self._connectivity_built = True
        stats = self.reactions.get_statistics()
        logger.info(
            f"Created {stats['productions']} production ({stats['annihilations']} annihilation) and "
            f"{stats['dissociations']} dissociation reactions for {len(self)} reactants, "
            f"dropped {self._n_dropped} unresolved candidates"
        )
        logger.debug(f"Reaction connectivity created in {time.time() - connectivity_time:.3f} seconds")

    def _create_production_reactions(self) -> None:
        seen = set()
        for template in self.configuration.forward_templates:
            same_type = template.first == template.second
            for first in self._by_type.get(template.first, []):
                for second in self._by_type.get(template.second, []):
                    # avoid enumerating pairs of the same type twice
                    if same_type and second.size > first.size:
                        continue
                    if not first.is_mobile and not second.is_mobile:
                        continue
                    for first_cell, first_distance in first.cells():
                        for second_cell, second_distance in second.cells():
                            micro_key = frozenset({(first, first_cell), (second, second_cell)})
                            if micro_key in seen:
                                continue
                            seen.add(micro_key)
                            signed = (first_cell[0] + second_cell[0], first_cell[1] + second_cell[1])
                            self._add_production(
                                template, first, first_cell, first_distance, second, second_cell, second_distance, signed
                            )

    def _add_production(
        self,
        template: ReactionTemplate,
        first: AnyReactant,
        first_cell: Cell,
        first_distance: Distance,
        second: AnyReactant,
        second_cell: Cell,
        second_distance: Distance,
        signed: Cell,
    ) -> None:
        if signed == (0, 0):
            # pure annihilation
            handle = self.reactions.add_production(first, second, None)
        else:
            resolved = self._resolve_product(template.products, signed)
            if resolved is None:
                self._unresolved(f"{first.label} + {second.label}")
                return
            product, product_cell, _ = resolved
            handle = self.reactions.add_production(first, second, product)
            product.add_production(
                product_cell, ProductionTerm(handle, first, second, first_distance, second_distance)
            )
        first.add_combination(first_cell, CombinationTerm(handle, second, second_distance, first_distance))
        second.add_combination(second_cell, CombinationTerm(handle, first, first_distance, second_distance))

    def _create_dissociation_reactions(self) -> None:
        seen = set()
        for template in self.configuration.backward_templates:
            monomer = self.get(template.monomer, monomer_composition(template.monomer))
            if monomer is None:
                continue
            monomer_cell = signed_composition(monomer.composition)
            for parent in self._by_type.get(template.parent, []):
                for parent_cell, parent_distance in parent.cells():
                    signed = (parent_cell[0] - monomer_cell[0], parent_cell[1] - monomer_cell[1])
                    if signed == (0, 0) or signed[0] < 0:
                        continue
                    resolved = self._resolve_product(template.products, signed)
                    if resolved is None:
                        self._unresolved(f"{parent.label} -> {monomer.label} + ?")
                        continue
                    product, product_cell, _ = resolved
                    micro_key = (parent, parent_cell, frozenset({(monomer, monomer_cell), (product, product_cell)}))
                    if micro_key in seen:
                        continue
                    seen.add(micro_key)
                    handle = self.reactions.add_dissociation(parent, monomer, product)
                    monomer.add_dissociation(
                        monomer_cell, DissociationTerm(handle, parent, product, parent_distance)
                    )
                    product.add_dissociation(
                        product_cell, DissociationTerm(handle, parent, monomer, parent_distance)
                    )
                    parent.add_emission(parent_cell, EmissionTerm(handle, monomer, product, parent_distance))

    def _find_smallest_corrected_size(self) -> Optional[int]:
        corrected_type = self.configuration.rate_constants.corrected_binding_type
        if corrected_type is None or not self._by_type.get(corrected_type):
            return None
        return min(r.size for r in self._by_type[corrected_type])

    def reinitialize_network(self) -> None:
        """Assign contiguous ids and moment ids, then fold every reactant's reactions."""
        if not self._connectivity_built:
            raise ValueError("Reaction connectivity must be created before initializing the network")
        next_id = 0
        for reactant in self._reactants:
            next_id += 1
            reactant.id = next_id
        for reactant in self._reactants:
            if reactant.kind is ReactantKind.LUMPED:
                next_id += 1
                reactant.he_moment_id = next_id
                next_id += 1
                reactant.v_moment_id = next_id
        self._dof = next_id
        for reactant in self._reactants:
            reactant.optimize_reactions()
        self._temperatures[:] = np.nan
        self._fill_map = None
        self._default_context = None
        self._initialized = True
        logger.info(f"Network initialized with {len(self)} reactants and {self._dof} degrees of freedom")

    def reinitialize_connectivities(self) -> None:
        self._check_initialized()
        for reactant in self._reactants:
            reactant.reset_connectivity()

    def _check_initialized(self) -> None:
        if not self._initialized:
            raise ValueError("The reaction network has not been initialized.")

    # Temperature and rates
    def set_temperature(self, temperature: float, i: int = 0) -> None:
        """Set the temperature at grid index i and recompute the rate constants there."""
        self._check_initialized()
        if temperature <= 0:
            raise ValueError(f"Temperature must be positive, got {temperature}")
        if self._temperatures[i] == temperature:
            logger.debug(f"Temperature at grid point {i} unchanged ({temperature} K), skipping.")
            return
        self._temperatures[i] = temperature
        for reactant in self._reactants:
            reactant.set_temperature(temperature, i, self.diffusion_model)
        self.compute_rate_constants(i)

    def get_temperature(self, i: int = 0) -> float:
        return float(self._temperatures[i])

    def compute_rate_constants(self, i: int = 0) -> None:
        """Recompute all rate constants at grid index i and refresh the reactant caches."""
        self._check_initialized()
        if math.isnan(self._temperatures[i]):
            raise ValueError(f"Temperature at grid point {i} has not been set.")
        self.rate_calculator.compute_rates(
            self.reactions, i, self._temperatures[i], self._smallest_corrected_size
        )
        rates = self.reactions.rates[:, i]
        for reactant in self._reactants:
            reactant.compute_rate_constants(rates, i)

    def get_biggest_rate(self, i: int = 0) -> float:
        """Largest production rate constant at grid index i."""
        handles = [r.handle for r in self.reactions.productions()]
        if not handles:
            return 0.0
        return float(np.max(self.reactions.rates[handles, i]))

    # Evaluation
    def update_concentrations_from_array(self, concentrations: np.ndarray) -> None:
        """Set every reactant's concentration (and lumped moments) from a flat array."""
        self._check_initialized()
        if len(concentrations) < self._dof:
            raise ValueError(f"Expected {self._dof} concentrations, got {len(concentrations)}")
        for reactant in self._reactants:
            reactant.update_concentration(concentrations)

    def get_diagonal_fill(self, fill_map: Optional[Dict[int, List[int]]] = None) -> Dict[int, List[int]]:
        """Columns with a structurally nonzero partial derivative for every row.

        Rows and columns are 0-based degrees of freedom (id - 1). The caller's
        map, if given, is updated in place.
        """
        self.reinitialize_connectivities()
        fill: Dict[int, List[int]] = {}
        for reactant in self._reactants:
            columns = reactant.get_connectivity()
            fill[reactant.id - 1] = columns
            if reactant.kind is ReactantKind.LUMPED:
                fill[reactant.he_moment_id - 1] = list(columns)
                fill[reactant.v_moment_id - 1] = list(columns)
        self._fill_map = fill
        if fill_map is not None:
            fill_map.update(fill)
        return fill

    def get_sparsity_pattern(self) -> SparsityPattern:
        """CSR sparsity pattern matching ``compute_all_partials``."""
        if self._fill_map is None:
            self.get_diagonal_fill()
        return SparsityPattern.from_fill_map(self._fill_map, self._dof)

    def create_partials_context(self) -> PartialsContext:
        """Scratch buffers for one concurrent Jacobian evaluation."""
        return PartialsContext(self.get_dof())

    def compute_all_fluxes(self, output: np.ndarray, i: int = 0) -> None:
        """Accumulate the flux of every degree of freedom at grid index i into output."""
        self._check_initialized()
        for reactant in self._reactants:
            if reactant.kind is ReactantKind.LUMPED:
                fluxes = reactant.compute_fluxes(i)
                output[reactant.id - 1] += fluxes[0]
                output[reactant.he_moment_id - 1] += fluxes[1]
                output[reactant.v_moment_id - 1] += fluxes[2]
            else:
                output[reactant.id - 1] += reactant.get_total_flux(i)

    def compute_all_partials(
        self,
        starting_offsets: np.ndarray,
        column_ids: np.ndarray,
        values_out: np.ndarray,
        i: int = 0,
        context: Optional[PartialsContext] = None,
    ) -> None:
        """Write the Jacobian values at grid index i in sparsity-pattern order.

        Args:
            starting_offsets (np.ndarray): CSR row offsets, length dof + 1
            column_ids (np.ndarray): CSR column indices of the diagonal fill
            values_out (np.ndarray): output values, same length as column_ids
            i (int): grid index
            context (PartialsContext, optional): scratch buffers; the network's
                own context is used if omitted
        """
        self._check_initialized()
        if self._fill_map is None:
            raise ValueError("The diagonal fill must be queried before computing partials.")
        if len(starting_offsets) != self._dof + 1:
            raise ValueError(f"Expected {self._dof + 1} row offsets, got {len(starting_offsets)}")
        if context is None:
            if self._default_context is None:
                self._default_context = self.create_partials_context()
            context = self._default_context
        elif context.dof != self._dof:
            raise ValueError(f"Partials context has {context.dof} degrees of freedom, expected {self._dof}")

        # a previous evaluation may have stopped halfway through a row
        context.reset()
        for reactant in self._reactants:
            row = reactant.id - 1
            columns = self._fill_map[row]
            reactant.get_partial_derivatives(context, i)
            self._write_row(row, context.values, starting_offsets, column_ids, values_out)
            if reactant.kind is ReactantKind.LUMPED:
                self._write_row(reactant.he_moment_id - 1, context.he_values, starting_offsets, column_ids, values_out)
                self._write_row(reactant.v_moment_id - 1, context.v_values, starting_offsets, column_ids, values_out)
            context.zero(columns)

    @staticmethod
    def _write_row(
        row: int,
        buffer: np.ndarray,
        starting_offsets: np.ndarray,
        column_ids: np.ndarray,
        values_out: np.ndarray,
    ) -> None:
        start, end = starting_offsets[row], starting_offsets[row + 1]
        values_out[start:end] = buffer[column_ids[start:end]]

    # Totals and reporting
    def get_total_concentration(self) -> float:
        total = 0.0
        for reactant in self._reactants:
            if reactant.kind is ReactantKind.LUMPED:
                total += reactant.get_total_concentration()
            else:
                total += reactant.concentration
        return total

    def get_total_atom_concentration(self, species: Species = Species.HE) -> float:
        """Concentration of one species summed over every reactant."""
        total = 0.0
        for reactant in self._reactants:
            if reactant.kind is ReactantKind.LUMPED:
                total += reactant.get_total_atom_concentration(species)
            else:
                total += reactant.composition.get(species, 0) * reactant.concentration
        return total

    def get_reaction_dataframe(self, i: Optional[int] = None) -> pd.DataFrame:
        """All reactions, with rate constants at grid index i if given."""
        return self.reactions.to_dataframe(i)

    def get_reactant_dataframe(self) -> pd.DataFrame:
        """Reactants with their ids and properties."""
        rows = []
        for reactant in self._reactants:
            rows.append({
                "id": reactant.id,
                "label": reactant.label,
                "type": reactant.type.value,
                "kind": reactant.kind.value,
                "size": reactant.size,
                "diffusion_factor": reactant.diffusion_factor,
                "formation_energy": reactant.formation_energy,
                "reaction_radius": reactant.reaction_radius,
            })
        return pd.DataFrame(rows)

    def print_summary(self):
        """Print a summary of the network."""
        print("Reaction Network:")
        print("=" * 50)
        print(f"Reactants: {len(self)}")
        for reactant_type, reactants in self._by_type.items():
            if reactants:
                print(f"  {reactant_type.value}: {len(reactants)}")
        for name, count in self.reactions.get_statistics().items():
            print(f"{name.replace('_', ' ').capitalize()}: {count}")
        if self._initialized:
            print(f"Degrees of freedom: {self._dof}")
        print(f"Dropped candidate reactions: {self._n_dropped}")
