"""
Defect species, reactant types and composition helpers.
"""

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class Species(Enum):
    """Point defects and impurities that make up a cluster."""

    HE = "He"
    V = "V"
    I = "I"  # noqa: E741


class ReactantType(Enum):
    """Types of reactants known to a network."""

    HE = "He"
    V = "V"
    I = "I"  # noqa: E741
    HEV = "HeV"
    SUPER = "Super"
    VOID = "Void"
    FAULTED = "Faulted"
    FRANK = "Frank"
    PERFECT = "Perfect"
    VOID_SUPER = "VoidSuper"
    FAULTED_SUPER = "FaultedSuper"
    FRANK_SUPER = "FrankSuper"
    PERFECT_SUPER = "PerfectSuper"

    @classmethod
    def parse(cls, name: "str | ReactantType") -> "ReactantType":
        """Get a reactant type from its name, case-insensitive."""
        if isinstance(name, ReactantType):
            return name
        for reactant_type in cls:
            if reactant_type.value.lower() == str(name).lower():
                return reactant_type
        raise ValueError(
            f"Unknown reactant type: {name}. Must be one of {[t.value for t in cls]}"
        )


Composition = Dict[Species, int]
CompositionKey = Tuple[int, int, int]
Cell = Tuple[int, int]


@dataclass(frozen=True)
class TypeSpec:
    """Which species a reactant type may hold and whether it is lumped.

    A lumped type also names the simple types whose compositions it stands in for.
    """

    species: FrozenSet[Species]
    lumped: bool = False
    members: FrozenSet[ReactantType] = frozenset()


_T = ReactantType

TYPE_SPECS: Dict[ReactantType, TypeSpec] = {
    _T.HE: TypeSpec(frozenset({Species.HE})),
    _T.V: TypeSpec(frozenset({Species.V})),
    _T.I: TypeSpec(frozenset({Species.I})),
    _T.HEV: TypeSpec(frozenset({Species.HE, Species.V})),
    _T.SUPER: TypeSpec(frozenset({Species.HE, Species.V}), True, frozenset({_T.HE, _T.V, _T.HEV})),
    _T.VOID: TypeSpec(frozenset({Species.V})),
    _T.FAULTED: TypeSpec(frozenset({Species.V})),
    _T.FRANK: TypeSpec(frozenset({Species.I})),
    _T.PERFECT: TypeSpec(frozenset({Species.I})),
    _T.VOID_SUPER: TypeSpec(frozenset({Species.V}), True, frozenset({_T.VOID})),
    _T.FAULTED_SUPER: TypeSpec(frozenset({Species.V}), True, frozenset({_T.FAULTED})),
    _T.FRANK_SUPER: TypeSpec(frozenset({Species.I}), True, frozenset({_T.FRANK})),
    _T.PERFECT_SUPER: TypeSpec(frozenset({Species.I}), True, frozenset({_T.PERFECT})),
}


def lumping_types(reactant_type: ReactantType) -> List[ReactantType]:
    """Lumped types whose groups stand in for compositions of a simple type."""
    return [t for t, spec in TYPE_SPECS.items() if reactant_type in spec.members]


SPECIES_ORDER = (Species.HE, Species.V, Species.I)


def parse_composition(data: Dict[Any, int]) -> Composition:
    """Create a composition from a mapping of species (or species symbols) to counts.

    Args:
        data (Dict[Any, int]): e.g. ``{"He": 2, "V": 1}`` or ``{Species.HE: 2}``

    Returns:
        Composition: ordered composition holding only nonzero counts
    """
    composition: Composition = OrderedDict()
    for key, count in data.items():
        species = key if isinstance(key, Species) else Species(key)
        if not isinstance(count, int) or count < 0:
            raise ValueError(f"Invalid count {count} for species {species.value}")
        if count > 0:
            composition[species] = count
    return OrderedDict((s, composition[s]) for s in SPECIES_ORDER if s in composition)


def composition_key(composition: Composition) -> CompositionKey:
    """Get the complete composition as a hashable key."""
    return tuple(composition.get(species, 0) for species in SPECIES_ORDER)


def composition_size(composition: Composition) -> int:
    """Total number of defects and impurities."""
    return sum(composition.values())


def composition_label(composition: Composition) -> str:
    """Create a label such as He2V1."""
    return "".join(f"{species.value}{count}" for species, count in composition.items() if count > 0)


def signed_composition(composition: Composition) -> Cell:
    """Signed form (helium, vacancies - interstitials) used to combine compositions."""
    return (
        composition.get(Species.HE, 0),
        composition.get(Species.V, 0) - composition.get(Species.I, 0),
    )


def composition_for_type(reactant_type: ReactantType, signed: Cell) -> Optional[Composition]:
    """Convert a signed composition into a composition valid for a reactant type.

    Returns None if the type cannot hold that composition.
    """
    helium, net = signed
    if helium < 0:
        return None
    composition: Composition = OrderedDict()
    if helium > 0:
        composition[Species.HE] = helium
    if net > 0:
        composition[Species.V] = net
    elif net < 0:
        composition[Species.I] = -net
    if not composition:
        return None
    if not set(composition).issubset(TYPE_SPECS[reactant_type].species):
        return None
    return composition
