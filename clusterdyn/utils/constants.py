"""
Physical constants used in cluster dynamics calculations.

Units used throughout the package: lengths in nm, energies in eV,
temperatures in K, diffusion coefficients in nm^2/s and concentrations in nm^-3.
"""

import pint
from scipy.constants import Boltzmann, electron_volt, pi

# Create a centralized unit registry
ureg = pint.UnitRegistry()

# Fundamental constants
BOLTZMANN_CONSTANT = Boltzmann  # J/K
K_BOLTZMANN = Boltzmann / electron_volt  # eV/K
PI = pi

# Lattice
TUNGSTEN_LATTICE_CONSTANT = 0.31700  # nm
BCC_ATOMS_PER_CELL = 2.0
FCC_ATOMS_PER_CELL = 4.0
DEFAULT_CORE_RADIUS = 0.0  # nm

# Helium reaction radius offset in tungsten
HELIUM_RADIUS = 0.3  # nm

# Empirical binding energy correction for the smallest cluster of a type
BINDING_CORRECTION_OFFSET = 1.5  # eV
BINDING_CORRECTION_SLOPE = 2.05211  # eV


# Unit parsing and conversion utilities
def parse_quantity(value, default_unit=None, target_unit=None) -> float:
    """
    Parse a quantity that can be a number or a string with units.

    Parameters
    ----------
    value : Union[float, int, str]
        The value to parse. If string, should include units (e.g., "1000 K").
        If number, it is taken in ``default_unit``.
    default_unit : str, optional
        Default unit to assume if value is a number. If None, no conversion.
    target_unit : str, optional
        Target unit to convert to. If None, converts to SI base units.

    Returns
    -------
    float
        The value in the target unit (or SI base units if target_unit is None).

    Examples
    --------
    >>> parse_quantity("1000 K", target_unit="K")
    1000.0
    >>> parse_quantity(0.13, "eV", "eV")
    0.13
    >>> parse_quantity("1 um", target_unit="nm")
    1000.0
    """
    if isinstance(value, str):
        try:
            # plain numbers given as strings, e.g. "2.95e10" read from YAML
            value = float(value)
        except ValueError:
            pass
    if isinstance(value, str):
        quantity = ureg(value)
        if target_unit:
            return quantity.to(target_unit).magnitude
        return quantity.to_base_units().magnitude
    elif isinstance(value, (int, float)):
        if default_unit:
            quantity = value * ureg(default_unit)
            if target_unit:
                return quantity.to(target_unit).magnitude
            return quantity.to_base_units().magnitude
        return float(value)
    else:
        raise ValueError(f"Cannot parse quantity: {value}")


def format_quantity(value, unit, precision=3) -> str:
    """
    Format a quantity with units for display.

    Parameters
    ----------
    value : float
        The value expressed in ``unit``
    unit : str
        The unit to display
    precision : int, optional
        Number of decimal places

    Returns
    -------
    str
        Formatted string with value and unit
    """
    quantity = value * ureg(unit)
    return f"{quantity:~P.{precision}f}"
