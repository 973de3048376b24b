"""
clusterdyn - Cluster dynamics reaction networks

Reaction network, rate constants and super-cluster moment closure for
helium, vacancy and interstitial clusters in metals.
"""

from .core.network import NetworkConfiguration, ReactionNetwork
from .core.rate_constants import RateConstantsConfiguration
from .core.reactants import Cluster, ReactantKind
from .core.species import ReactantType, Species
from .core.super_cluster import SuperCluster
from .io.parser import InputParser

__version__ = "0.1.0"

__all__ = [
    "Species",
    "ReactantType",
    "ReactantKind",
    "Cluster",
    "SuperCluster",
    "RateConstantsConfiguration",
    "NetworkConfiguration",
    "ReactionNetwork",
    "InputParser",
]
