"""
Closed-form sums over rectangular helium-vacancy groups.

A fully occupied group's SuperPair coefficients are sums of low-order
polynomials of the cell coordinates over all micro reactions whose product
lands inside a target box. Because boxes are rectangles, every sum factorizes
into one sum per axis. The per-axis sums

    sum over a in A, b in B with a + b in C of (a - sA)^pa (b - sB)^pb (a + b - sC)^pc

are split into the four regions where the bounds on b are set by B or by C,
each summed symbolically once with sympy and compiled with ``lambdify``.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Tuple

import numpy as np
import sympy as sym

from .species import Cell

logger = logging.getLogger(__name__)

MAX_EXPONENT = 2

_a, _b = sym.symbols("a b", integer=True)
_L, _U = sym.symbols("L U", integer=True)
_sA, _sB, _sC = sym.symbols("sA sB sC", real=True)
_bmin, _bmax, _cmin, _cmax, _b0 = sym.symbols("bmin bmax cmin cmax b0", integer=True)

# Bounds on b for each region of a: lower from C when a < cmin - bmin,
# upper from C when a > cmax - bmax.
_REGION_LIMITS = {
    1: (_cmin - _a, _bmax),
    2: (_bmin, _bmax),
    3: (_cmin - _a, _cmax - _a),
    4: (_bmin, _cmax - _a),
}


@dataclass(frozen=True)
class AxisBounds:
    """Inclusive integer range of one composition axis."""

    lo: int
    hi: int

    def __post_init__(self):
        if self.lo > self.hi:
            raise ValueError(f"Invalid axis bounds [{self.lo}, {self.hi}]")

    @property
    def center(self) -> float:
        return 0.5 * (self.lo + self.hi)

    @property
    def half_width(self) -> float:
        return 0.5 * (self.hi - self.lo)

    @property
    def width(self) -> int:
        return self.hi - self.lo + 1

    @property
    def dispersion(self) -> float:
        """Dispersion of a fully occupied axis, 1 for a single value."""
        if self.width == 1:
            return 1.0
        return (self.width + 1) / 6.0


@dataclass(frozen=True)
class GroupGeometry:
    """Helium and vacancy ranges of a fully occupied group or a single cell."""

    he: AxisBounds
    v: AxisBounds

    @classmethod
    def from_bounds(cls, he_bounds: Tuple[int, int], v_bounds: Tuple[int, int]) -> "GroupGeometry":
        return cls(AxisBounds(*he_bounds), AxisBounds(*v_bounds))

    @classmethod
    def from_cell(cls, cell: Cell) -> "GroupGeometry":
        """Point geometry of a simple cluster at its signed (he, v - i) composition."""
        return cls(AxisBounds(cell[0], cell[0]), AxisBounds(cell[1], cell[1]))

    @classmethod
    def from_super_cluster(cls, group) -> "GroupGeometry":
        if group.n_tot != group.he_width * group.v_width:
            raise ValueError(f"Group {group.label} is not fully occupied")
        return cls.from_bounds(group.he_bounds, group.v_bounds)

    @property
    def n_cells(self) -> int:
        return self.he.width * self.v.width

    def axes(self) -> Tuple[AxisBounds, AxisBounds]:
        return (self.he, self.v)


def _check_exponents(*exponents: int) -> None:
    for p in exponents:
        if not 0 <= p <= MAX_EXPONENT:
            raise ValueError(f"Exponents must be between 0 and {MAX_EXPONENT}, got {exponents}")


@lru_cache(maxsize=None)
def _reaction_region_sum(region: int, pa: int, pb: int, pc: int) -> Callable[..., float]:
    derive_time = time.time()
    lower, upper = _REGION_LIMITS[region]
    summand = sym.expand((_a - _sA) ** pa * (_b - _sB) ** pb * (_a + _b - _sC) ** pc)
    inner = sym.expand(sym.summation(summand, (_b, lower, upper)))
    outer = sym.expand(sym.summation(inner, (_a, _L, _U)))
    logger.debug(
        f"Derived region {region} sum for exponents ({pa}, {pb}, {pc}) in {time.time() - derive_time:.3f} seconds"
    )
    return sym.lambdify((_L, _U, _sA, _sB, _sC, _bmin, _bmax, _cmin, _cmax), outer, modules="math")


@lru_cache(maxsize=None)
def _emission_sum(pa: int, pc: int) -> Callable[..., float]:
    summand = sym.expand((_a - _sA) ** pa * (_a - _b0 - _sC) ** pc)
    total = sym.expand(sym.summation(summand, (_a, _L, _U)))
    return sym.lambdify((_L, _U, _sA, _sC, _b0), total, modules="math")


def reaction_axis_sum(a: AxisBounds, b: AxisBounds, c: AxisBounds, pa: int, pb: int, pc: int) -> float:
    """Sum of (x - sA)^pa (y - sB)^pb (x + y - sC)^pc over x in A, y in B with x + y in C.

    sA, sB and sC are the centers of the three ranges.
    """
    _check_exponents(pa, pb, pc)
    lower_a = max(a.lo, c.lo - b.hi)
    upper_a = min(a.hi, c.hi - b.lo)
    x_a = c.lo - b.lo
    x_d = c.hi - b.hi
    regions = {
        1: (lower_a, min(upper_a, x_a - 1, x_d)),
        2: (max(lower_a, x_a), min(upper_a, x_d)),
        3: (max(lower_a, x_d + 1), min(upper_a, x_a - 1)),
        4: (max(lower_a, x_a, x_d + 1), upper_a),
    }
    total = 0.0
    for region, (lo, hi) in regions.items():
        if lo > hi:
            continue
        total += _reaction_region_sum(region, pa, pb, pc)(
            lo, hi, a.center, b.center, c.center, b.lo, b.hi, c.lo, c.hi
        )
    return float(total)


def emission_axis_sum(a: AxisBounds, c: AxisBounds, b0: int, pa: int, pc: int) -> float:
    """Sum of (x - sA)^pa (x - b0 - sC)^pc over x in A with x - b0 in C."""
    _check_exponents(pa, pc)
    lo = max(a.lo, c.lo + b0)
    hi = min(a.hi, c.hi + b0)
    if lo > hi:
        return 0.0
    return float(_emission_sum(pa, pc)(lo, hi, a.center, c.center, b0))


def _distance_scale(axis: AxisBounds, power: int) -> float:
    """Normalization turning (x - center)^power into a distance power."""
    if power == 0:
        return 1.0
    if axis.half_width == 0:
        return 0.0
    return axis.half_width ** -power


def production_coefficients(
    first: GroupGeometry, second: GroupGeometry, product: GroupGeometry
) -> np.ndarray:
    """(3, 3, 3) coefficients of first + second -> product, seen from the product."""
    coefficients = np.zeros((3, 3, 3))
    for i, j, r in itertools.product(range(3), repeat=3):
        value = 1.0
        for axis, (fa, fb, fc) in enumerate(zip(first.axes(), second.axes(), product.axes()), start=1):
            pa, pb, pc = int(i == axis), int(j == axis), int(r == axis)
            scale = _distance_scale(fa, pa) * _distance_scale(fb, pb) / fc.dispersion**pc
            if scale == 0.0:
                value = 0.0
                break
            value *= scale * reaction_axis_sum(fa, fb, fc, pa, pb, pc)
        coefficients[i, j, r] = value
    return coefficients


def combination_coefficients(
    this: GroupGeometry, partner: GroupGeometry, product: GroupGeometry
) -> np.ndarray:
    """(3, 3, 3) coefficients of this + partner -> product, seen from this group."""
    coefficients = np.zeros((3, 3, 3))
    for i, j, r in itertools.product(range(3), repeat=3):
        value = 1.0
        for axis, (fa, fb, fc) in enumerate(zip(this.axes(), partner.axes(), product.axes()), start=1):
            pi, pj, pr = int(i == axis), int(j == axis), int(r == axis)
            scale = _distance_scale(fa, pi) * _distance_scale(fb, pj) / fa.dispersion**pr
            if scale == 0.0:
                value = 0.0
                break
            value *= scale * reaction_axis_sum(fa, fb, fc, pi + pr, pj, 0)
        coefficients[i, j, r] = value
    return coefficients


def dissociation_coefficients(parent: GroupGeometry, monomer: Cell, this: GroupGeometry) -> np.ndarray:
    """(3, 3) coefficients of parent -> monomer + this, seen from this group."""
    coefficients = np.zeros((3, 3))
    for i, r in itertools.product(range(3), repeat=2):
        value = 1.0
        for axis, (fa, fc, b0) in enumerate(zip(parent.axes(), this.axes(), monomer), start=1):
            pi, pr = int(i == axis), int(r == axis)
            scale = _distance_scale(fa, pi) / fc.dispersion**pr
            if scale == 0.0:
                value = 0.0
                break
            value *= scale * emission_axis_sum(fa, fc, b0, pi, pr)
        coefficients[i, r] = value
    return coefficients


def emission_coefficients(this: GroupGeometry, monomer: Cell, product: GroupGeometry) -> np.ndarray:
    """(3, 3) coefficients of this -> monomer + product, seen from this group."""
    coefficients = np.zeros((3, 3))
    for i, r in itertools.product(range(3), repeat=2):
        value = 1.0
        for axis, (fa, fc, b0) in enumerate(zip(this.axes(), product.axes(), monomer), start=1):
            pi, pr = int(i == axis), int(r == axis)
            scale = _distance_scale(fa, pi) / fa.dispersion**pr
            if scale == 0.0:
                value = 0.0
                break
            value *= scale * emission_axis_sum(fa, fc, b0, pi + pr, 0)
        coefficients[i, r] = value
    return coefficients
