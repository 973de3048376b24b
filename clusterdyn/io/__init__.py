"""
Input and output for clusterdyn.
"""

from .parser import InputParser

__all__ = ["InputParser"]
