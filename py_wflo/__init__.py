"""PyWFLO

Wind farm layout optimization: seed layouts from layout archetypes, wake, economic and
environmental evaluation of layouts, and genetic, particle swarm, gradient, hybrid and
NSGA-II searches for the turbine positions.
"""

from py_wflo.site import Site, WindResource, WindSector, TerrainGrid, EnvironmentalConstraint  # nopep8
from py_wflo.wind_turbines import TurbineSpecification, GenericTurbineSpecification  # nopep8
from py_wflo.layout import Layout  # nopep8
from py_wflo.wake_effect_modeler import WakeEffectModeler  # nopep8
from py_wflo.economic_optimizer import EconomicOptimizer, EconomicParameters  # nopep8
from py_wflo.environmental_models import EnvironmentalImpactModel, Species  # nopep8
from py_wflo.optimization import OptimizationSettings, OptimizationParameters, Objectives  # nopep8
from py_wflo.wind_farm_optimizer import WindFarmOptimizer  # nopep8

__version__ = '0.1.0'
__release__ = __version__
