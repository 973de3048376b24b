"""
Utility modules for clusterdyn.
"""

from .constants import (
    BOLTZMANN_CONSTANT,
    K_BOLTZMANN,
    PI,
    TUNGSTEN_LATTICE_CONSTANT,
    format_quantity,
    parse_quantity,
    pint,
    ureg,
)

__all__ = [
    "BOLTZMANN_CONSTANT",
    "K_BOLTZMANN",
    "PI",
    "TUNGSTEN_LATTICE_CONSTANT",
    "format_quantity",
    "parse_quantity",
    "ureg",
    "pint",
]
