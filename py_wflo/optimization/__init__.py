from ._optimizer import Algorithm, RunState, OptimizationSettings, OptimizationEvent, OptimizationRun, \
    PlacementOptimizer, evaluate_population, has_converged
from .parameters import ParameterBounds, OptimizationParameters, Objectives
from .fitness import Individual, LayoutFitness
from .genetic import GeneticOptimizer
from .particle_swarm import ParticleSwarmOptimizer
from .gradient import GradientOptimizer
from .hybrid import HybridOptimizer
from .multi_objective import NSGA2Optimizer, ParetoResult


def get_placement_optimizer(algorithm):
    """Placement optimizer instance of algorithm ('genetic', 'particle_swarm', 'gradient' or 'hybrid')"""
    return {Algorithm.GENETIC: GeneticOptimizer,
            Algorithm.PARTICLE_SWARM: ParticleSwarmOptimizer,
            Algorithm.GRADIENT: GradientOptimizer,
            Algorithm.HYBRID: HybridOptimizer}[Algorithm.parse(algorithm)]()
