"""
Core clusterdyn functionality.
"""

from .cluster_properties import arrhenius_diffusion_coefficient, default_reaction_radius
from .jacobian import PartialsContext, SparsityPattern
from .network import ALLOY_REACTANT_TYPES, NETWORK_DEFAULTS, NetworkConfiguration, ReactionNetwork
from .quadrature import (
    AxisBounds,
    GroupGeometry,
    combination_coefficients,
    dissociation_coefficients,
    emission_axis_sum,
    emission_coefficients,
    production_coefficients,
    reaction_axis_sum,
)
from .rate_constants import RateConstantCalculator, RateConstantsConfiguration
from .reactants import Cluster, Reactant, ReactantKind
from .reactions import (
    ALLOY_BACKWARD_TEMPLATES,
    ALLOY_FORWARD_TEMPLATES,
    DissociationReaction,
    DissociationTemplate,
    ProductionReaction,
    ReactionArena,
    ReactionTemplate,
)
from .species import ReactantType, Species, lumping_types
from .super_cluster import SuperCluster, SuperPair

__all__ = [
    'Species', 'ReactantType', 'lumping_types',
    'Reactant', 'ReactantKind', 'Cluster', 'SuperCluster', 'SuperPair',
    'ProductionReaction', 'DissociationReaction', 'ReactionArena',
    'ReactionTemplate', 'DissociationTemplate',
    'RateConstantsConfiguration', 'RateConstantCalculator',
    'NetworkConfiguration', 'ReactionNetwork', 'NETWORK_DEFAULTS',
    'ALLOY_REACTANT_TYPES', 'ALLOY_FORWARD_TEMPLATES', 'ALLOY_BACKWARD_TEMPLATES',
    'PartialsContext', 'SparsityPattern',
    'AxisBounds', 'GroupGeometry', 'reaction_axis_sum', 'emission_axis_sum',
    'production_coefficients', 'combination_coefficients',
    'dissociation_coefficients', 'emission_coefficients',
    'arrhenius_diffusion_coefficient', 'default_reaction_radius',
]
