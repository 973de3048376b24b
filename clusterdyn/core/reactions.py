"""
Reactions, reaction templates and the central reaction arena.

Every reaction of a network lives in a :class:`ReactionArena` and is referred to
by its handle (the index in the arena). Participation records held by the
reactants and the reverse link of a dissociation are handles, not references.
"""

import logging
from collections import namedtuple
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .species import TYPE_SPECS, Composition, ReactantType

if TYPE_CHECKING:
    from .reactants import AnyReactant

logger = logging.getLogger(__name__)

# Forward template: first + second -> one of products
ReactionTemplate = namedtuple("ReactionTemplate", ["first", "second", "products"])
# Backward template: parent -> monomer + one of products
DissociationTemplate = namedtuple("DissociationTemplate", ["parent", "monomer", "products"])


@dataclass(eq=False)
class ProductionReaction:
    """first + second -> product. An annihilation has no product.

    A reverse-only reaction exists to supply k+ to a dissociation and takes no
    part in the fluxes.
    """

    first: "AnyReactant"
    second: "AnyReactant"
    product: Optional["AnyReactant"]
    handle: int = -1
    reverse_only: bool = False

    @property
    def is_annihilation(self) -> bool:
        return self.product is None

    def __str__(self) -> str:
        product = "0" if self.product is None else self.product.label
        return f"{self.first.label} + {self.second.label} -> {product}"


@dataclass(eq=False)
class DissociationReaction:
    """parent -> monomer + product; ``reverse`` is the handle of monomer + product -> parent."""

    parent: "AnyReactant"
    monomer: "AnyReactant"
    product: "AnyReactant"
    reverse: int
    handle: int = -1

    def __str__(self) -> str:
        return f"{self.parent.label} -> {self.monomer.label} + {self.product.label}"


Reaction = Union[ProductionReaction, DissociationReaction]


class ReactionArena:
    """Owns every reaction of a network and their per-grid-point rate constants."""

    def __init__(self):
        self.reactions: List[Reaction] = []
        self._production_handles: Dict[Tuple[Any, Any, Any], int] = {}
        self._dissociation_handles: Dict[Tuple[Any, Any, Any], int] = {}
        # rates[handle, grid_index]
        self.rates: np.ndarray = np.zeros((0, 0))

    def __len__(self) -> int:
        return len(self.reactions)

    def __getitem__(self, handle: int) -> Reaction:
        return self.reactions[handle]

    def __iter__(self) -> Iterator[Reaction]:
        return iter(self.reactions)

    def add_production(
        self,
        first: "AnyReactant",
        second: "AnyReactant",
        product: Optional["AnyReactant"],
        reverse_only: bool = False,
    ) -> int:
        """Get the handle of first + second -> product, creating the reaction if needed."""
        key = (first, second, product)
        if key in self._production_handles:
            handle = self._production_handles[key]
            if not reverse_only:
                self.reactions[handle].reverse_only = False
            return handle
        handle = len(self.reactions)
        self.reactions.append(ProductionReaction(first, second, product, handle, reverse_only))
        self._production_handles[key] = handle
        return handle

    def find_production(
        self, first: "AnyReactant", second: "AnyReactant", product: Optional["AnyReactant"]
    ) -> Optional[int]:
        """Find a production reaction in either reactant order."""
        handle = self._production_handles.get((first, second, product))
        if handle is None:
            handle = self._production_handles.get((second, first, product))
        return handle

    def add_dissociation(
        self, parent: "AnyReactant", monomer: "AnyReactant", product: "AnyReactant"
    ) -> int:
        """Get the handle of parent -> monomer + product, creating it and its reverse if needed."""
        key = (parent, monomer, product)
        if key in self._dissociation_handles:
            return self._dissociation_handles[key]
        reverse = self.find_production(monomer, product, parent)
        if reverse is None:
            reverse = self.add_production(monomer, product, parent, reverse_only=True)
        handle = len(self.reactions)
        self.reactions.append(DissociationReaction(parent, monomer, product, reverse, handle))
        self._dissociation_handles[key] = handle
        return handle

    def productions(self, include_reverse_only: bool = False) -> Iterator[ProductionReaction]:
        return (
            r
            for r in self.reactions
            if isinstance(r, ProductionReaction) and (include_reverse_only or not r.reverse_only)
        )

    def dissociations(self) -> Iterator[DissociationReaction]:
        return (r for r in self.reactions if isinstance(r, DissociationReaction))

    def allocate_rates(self, n_grid_points: int) -> None:
        """Allocate the rate-constant table for all reactions."""
        self.rates = np.zeros((len(self.reactions), n_grid_points))

    def get_statistics(self) -> Dict[str, int]:
        """Get statistics about the reactions."""
        productions = list(self.productions())
        return {
            "total_reactions": len(self.reactions),
            "productions": len(productions),
            "annihilations": sum(1 for r in productions if r.is_annihilation),
            "dissociations": sum(1 for _ in self.dissociations()),
            "reverse_only": sum(1 for r in self.productions(include_reverse_only=True) if r.reverse_only),
        }

    def to_dataframe(self, i: Optional[int] = None) -> pd.DataFrame:
        """Get a dataframe of all reactions, with rate constants at grid index i if given."""
        rows = []
        for reaction in self.reactions:
            if isinstance(reaction, ProductionReaction):
                row = {
                    "kind": "reverse_production" if reaction.reverse_only else "production",
                    "reactant_1": reaction.first.label,
                    "reactant_2": reaction.second.label,
                    "product_1": reaction.product.label if reaction.product is not None else None,
                    "product_2": None,
                }
            else:
                row = {
                    "kind": "dissociation",
                    "reactant_1": reaction.parent.label,
                    "reactant_2": None,
                    "product_1": reaction.monomer.label,
                    "product_2": reaction.product.label,
                }
            if i is not None:
                row["rate_constant"] = self.rates[reaction.handle, i]
            rows.append(row)
        return pd.DataFrame(rows)


def monomer_composition(reactant_type: ReactantType) -> Composition:
    """Composition of the size-1 cluster of a single-species type."""
    species = TYPE_SPECS[reactant_type].species
    if len(species) != 1 or TYPE_SPECS[reactant_type].lumped:
        raise ValueError(f"Reactant type {reactant_type.value} has no monomer")
    return {next(iter(species)): 1}


def parse_reaction_template(data: Dict[str, Any]) -> ReactionTemplate:
    """Create a forward template from ``{"first": "He", "second": "V", "products": [...]}``."""
    return ReactionTemplate(
        first=ReactantType.parse(data["first"]),
        second=ReactantType.parse(data["second"]),
        products=tuple(ReactantType.parse(p) for p in data["products"]),
    )


def parse_dissociation_template(data: Dict[str, Any]) -> DissociationTemplate:
    """Create a backward template from ``{"parent": "HeV", "monomer": "He", "products": [...]}``."""
    template = DissociationTemplate(
        parent=ReactantType.parse(data["parent"]),
        monomer=ReactantType.parse(data["monomer"]),
        products=tuple(ReactantType.parse(p) for p in data["products"]),
    )
    monomer_composition(template.monomer)
    return template


def template_to_config(template: Union[ReactionTemplate, DissociationTemplate]) -> Dict[str, Any]:
    config = {}
    for name, value in template._asdict().items():
        config[name] = [t.value for t in value] if isinstance(value, tuple) else value.value
    return config


_T = ReactantType

# Helium, vacancies and interstitials in tungsten with mixed and lumped clusters
DEFAULT_FORWARD_TEMPLATES: Tuple[ReactionTemplate, ...] = (
    ReactionTemplate(_T.HE, _T.HE, (_T.HE,)),
    ReactionTemplate(_T.HE, _T.V, (_T.HEV, _T.SUPER)),
    ReactionTemplate(_T.HE, _T.HEV, (_T.HEV, _T.SUPER)),
    ReactionTemplate(_T.HE, _T.SUPER, (_T.HEV, _T.SUPER)),
    ReactionTemplate(_T.V, _T.V, (_T.V,)),
    ReactionTemplate(_T.V, _T.I, (_T.V, _T.I)),
    ReactionTemplate(_T.V, _T.HEV, (_T.HEV, _T.SUPER)),
    ReactionTemplate(_T.V, _T.SUPER, (_T.HEV, _T.SUPER)),
    ReactionTemplate(_T.I, _T.I, (_T.I,)),
    ReactionTemplate(_T.I, _T.HEV, (_T.HEV, _T.SUPER, _T.HE)),
    ReactionTemplate(_T.I, _T.SUPER, (_T.HEV, _T.SUPER, _T.HE)),
)

DEFAULT_BACKWARD_TEMPLATES: Tuple[DissociationTemplate, ...] = (
    DissociationTemplate(_T.HE, _T.HE, (_T.HE,)),
    DissociationTemplate(_T.V, _T.V, (_T.V,)),
    DissociationTemplate(_T.I, _T.I, (_T.I,)),
    DissociationTemplate(_T.HEV, _T.HE, (_T.HEV, _T.SUPER, _T.V)),
    DissociationTemplate(_T.HEV, _T.V, (_T.HEV, _T.SUPER, _T.HE)),
    DissociationTemplate(_T.SUPER, _T.HE, (_T.HEV, _T.SUPER, _T.V)),
    DissociationTemplate(_T.SUPER, _T.V, (_T.HEV, _T.SUPER, _T.HE)),
)

# Vacancy and interstitial loops in alloys, grown by monomer absorption and lumped by size
ALLOY_FORWARD_TEMPLATES: Tuple[ReactionTemplate, ...] = (
    ReactionTemplate(_T.V, _T.V, (_T.V, _T.VOID)),
    ReactionTemplate(_T.V, _T.I, (_T.V, _T.I)),
    ReactionTemplate(_T.I, _T.I, (_T.I, _T.FRANK)),
    ReactionTemplate(_T.V, _T.VOID, (_T.VOID, _T.VOID_SUPER)),
    ReactionTemplate(_T.V, _T.VOID_SUPER, (_T.VOID, _T.VOID_SUPER)),
    ReactionTemplate(_T.V, _T.FAULTED, (_T.FAULTED, _T.FAULTED_SUPER)),
    ReactionTemplate(_T.V, _T.FAULTED_SUPER, (_T.FAULTED, _T.FAULTED_SUPER)),
    ReactionTemplate(_T.V, _T.FRANK, (_T.FRANK, _T.FRANK_SUPER, _T.I)),
    ReactionTemplate(_T.V, _T.FRANK_SUPER, (_T.FRANK, _T.FRANK_SUPER, _T.I)),
    ReactionTemplate(_T.V, _T.PERFECT, (_T.PERFECT, _T.PERFECT_SUPER, _T.I)),
    ReactionTemplate(_T.V, _T.PERFECT_SUPER, (_T.PERFECT, _T.PERFECT_SUPER, _T.I)),
    ReactionTemplate(_T.I, _T.VOID, (_T.VOID, _T.VOID_SUPER, _T.V)),
    ReactionTemplate(_T.I, _T.VOID_SUPER, (_T.VOID, _T.VOID_SUPER, _T.V)),
    ReactionTemplate(_T.I, _T.FAULTED, (_T.FAULTED, _T.FAULTED_SUPER, _T.V)),
    ReactionTemplate(_T.I, _T.FAULTED_SUPER, (_T.FAULTED, _T.FAULTED_SUPER, _T.V)),
    ReactionTemplate(_T.I, _T.FRANK, (_T.FRANK, _T.FRANK_SUPER)),
    ReactionTemplate(_T.I, _T.FRANK_SUPER, (_T.FRANK, _T.FRANK_SUPER)),
    ReactionTemplate(_T.I, _T.PERFECT, (_T.PERFECT, _T.PERFECT_SUPER)),
    ReactionTemplate(_T.I, _T.PERFECT_SUPER, (_T.PERFECT, _T.PERFECT_SUPER)),
)

ALLOY_BACKWARD_TEMPLATES: Tuple[DissociationTemplate, ...] = (
    DissociationTemplate(_T.V, _T.V, (_T.V,)),
    DissociationTemplate(_T.I, _T.I, (_T.I,)),
    DissociationTemplate(_T.VOID, _T.V, (_T.VOID, _T.VOID_SUPER, _T.V)),
    DissociationTemplate(_T.VOID_SUPER, _T.V, (_T.VOID, _T.VOID_SUPER, _T.V)),
    DissociationTemplate(_T.FAULTED, _T.V, (_T.FAULTED, _T.FAULTED_SUPER, _T.V)),
    DissociationTemplate(_T.FAULTED_SUPER, _T.V, (_T.FAULTED, _T.FAULTED_SUPER, _T.V)),
    DissociationTemplate(_T.FRANK, _T.I, (_T.FRANK, _T.FRANK_SUPER, _T.I)),
    DissociationTemplate(_T.FRANK_SUPER, _T.I, (_T.FRANK, _T.FRANK_SUPER, _T.I)),
    DissociationTemplate(_T.PERFECT, _T.I, (_T.PERFECT, _T.PERFECT_SUPER, _T.I)),
    DissociationTemplate(_T.PERFECT_SUPER, _T.I, (_T.PERFECT, _T.PERFECT_SUPER, _T.I)),
)
