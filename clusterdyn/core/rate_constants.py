"""
Rate constant definitions and calculations for cluster dynamics.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..utils.constants import (
    BCC_ATOMS_PER_CELL,
    BINDING_CORRECTION_OFFSET,
    BINDING_CORRECTION_SLOPE,
    DEFAULT_CORE_RADIUS,
    K_BOLTZMANN,
    PI,
    TUNGSTEN_LATTICE_CONSTANT,
    parse_quantity,
)
from .reactants import AnyReactant
from .reactions import DissociationReaction, ProductionReaction, ReactionArena
from .species import ReactantType

logger = logging.getLogger(__name__)


@dataclass
class RateConstantsConfiguration:
    """Configuration for rate constants."""

    disable_dissociations: bool = False
    lattice_constant: float = TUNGSTEN_LATTICE_CONSTANT  # nm
    atoms_per_cell: float = BCC_ATOMS_PER_CELL
    core_radius: float = DEFAULT_CORE_RADIUS  # nm
    corrected_binding_type: Optional[ReactantType] = None

    def __post_init__(self):
        """Post-initialization logic."""
        if self.lattice_constant <= 0:
            raise ValueError(f"Lattice constant must be positive, got {self.lattice_constant}")
        if self.atoms_per_cell <= 0:
            raise ValueError(f"Atoms per cell must be positive, got {self.atoms_per_cell}")
        if self.core_radius < 0:
            raise ValueError(f"Core radius must be non-negative, got {self.core_radius}")
        if self.corrected_binding_type is not None:
            self.corrected_binding_type = ReactantType.parse(self.corrected_binding_type)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RateConstantsConfiguration":
        """Create a configuration from a configuration."""
        return cls(
            disable_dissociations=config.get("disable_dissociations", False),
            lattice_constant=parse_quantity(
                config.get("lattice_constant", TUNGSTEN_LATTICE_CONSTANT), "nm", "nm"
            ),
            atoms_per_cell=config.get("atoms_per_cell", BCC_ATOMS_PER_CELL),
            core_radius=parse_quantity(config.get("core_radius", DEFAULT_CORE_RADIUS), "nm", "nm"),
            corrected_binding_type=config.get("corrected_binding_type"),
        )

    def to_config(self) -> Dict[str, Any]:
        """Convert configuration to a configuration."""
        return {
            "disable_dissociations": self.disable_dissociations,
            "lattice_constant": f"{self.lattice_constant} nm",
            "atoms_per_cell": self.atoms_per_cell,
            "core_radius": f"{self.core_radius} nm",
            "corrected_binding_type": (
                self.corrected_binding_type.value if self.corrected_binding_type else None
            ),
        }


class RateConstantCalculator:
    """Calculates diffusion-limited production and detailed-balance dissociation rates."""

    def __init__(self, configuration: Optional[RateConstantsConfiguration] = None):
        self.configuration = configuration or RateConstantsConfiguration()

    @property
    def atomic_volume(self) -> float:
        """Volume per lattice atom in nm^3."""
        return self.configuration.lattice_constant**3 / self.configuration.atoms_per_cell

    def reaction_rate_constant(self, first: AnyReactant, second: AnyReactant, i: int = 0) -> float:
        """k+ = 4 pi (r1 + r2 + r_core) (D1 + D2) in nm^3/s at grid index i."""
        return (
            4.0
            * PI
            * (first.reaction_radius + second.reaction_radius + self.configuration.core_radius)
            * (first.diffusion_coefficient[i] + second.diffusion_coefficient[i])
        )

    def binding_energy(
        self,
        parent: AnyReactant,
        monomer: AnyReactant,
        product: AnyReactant,
        smallest_size: Optional[int] = None,
    ) -> float:
        """Energy released when the monomer leaves the parent, in eV.

        Args:
            parent (AnyReactant): dissociating reactant
            monomer (AnyReactant): emitted monomer
            product (AnyReactant): remaining reactant
            smallest_size (Optional[int]): size of the smallest cluster of the corrected type

        Returns:
            float: binding energy
        """
        corrected_type = self.configuration.corrected_binding_type
        if (
            corrected_type is not None
            and parent.type == corrected_type
            and smallest_size is not None
            and parent.size == smallest_size
        ):
            size = float(smallest_size)
            return BINDING_CORRECTION_OFFSET - BINDING_CORRECTION_SLOPE * (
                size ** (2.0 / 3.0) - (size - 1.0) ** (2.0 / 3.0)
            )
        return monomer.formation_energy + product.formation_energy - parent.formation_energy

    def dissociation_rate_constant(
        self,
        reaction: DissociationReaction,
        reverse_rate: float,
        temperature: float,
        smallest_size: Optional[int] = None,
    ) -> float:
        """k- = k+(reverse) exp(-Eb / (kB T)) / V_atomic, or 0 when dissociations are disabled."""
        if self.configuration.disable_dissociations:
            return 0.0
        binding_energy = self.binding_energy(
            reaction.parent, reaction.monomer, reaction.product, smallest_size
        )
        return reverse_rate * math.exp(-binding_energy / (K_BOLTZMANN * temperature)) / self.atomic_volume

    def compute_rates(
        self,
        arena: ReactionArena,
        i: int,
        temperature: float,
        smallest_size: Optional[int] = None,
    ) -> None:
        """Fill the arena's rate column at grid index i."""
        rate_time = time.time()
        for reaction in arena:
            if isinstance(reaction, ProductionReaction):
                arena.rates[reaction.handle, i] = self.reaction_rate_constant(
                    reaction.first, reaction.second, i
                )
        if self.configuration.disable_dissociations:
            logger.debug("Dissociations disabled, skipping calculation.")
        for reaction in arena.dissociations():
            arena.rates[reaction.handle, i] = self.dissociation_rate_constant(
                reaction, arena.rates[reaction.reverse, i], temperature, smallest_size
            )
        logger.debug(
            f"Rate constants at grid point {i} ({temperature} K) calculated in {time.time() - rate_time:.3f} seconds"
        )
