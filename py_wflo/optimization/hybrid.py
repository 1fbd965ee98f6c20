import numpy as np
from py_wflo.optimization._optimizer import Algorithm, PlacementOptimizer, sort_population
from py_wflo.optimization.genetic import GeneticOptimizer
from py_wflo.optimization.gradient import GradientOptimizer


class HybridOptimizer(PlacementOptimizer):
    """Genetic algorithm for floor(0.6 * generations) generations followed by gradient
    ascent for floor(0.4 * generations) iterations starting from the best layout found"""
    algorithm = Algorithm.HYBRID

    def __init__(self, genetic_fraction=.6, genetic=None, gradient=None):
        self.genetic_fraction = genetic_fraction
        self.genetic = genetic or GeneticOptimizer()
        self.gradient = gradient or GradientOptimizer()

    def search(self, seeds, state, generations):
        ga_generations = int(np.floor(generations * self.genetic_fraction + 1e-9))
        gd_iterations = int(np.floor(generations * (1 - self.genetic_fraction) + 1e-9))
        population, converged = self.genetic.search(seeds, state, ga_generations)
        if gd_iterations < 1 or state.cancelled:
            return population, converged
        refined, converged = self.gradient.search([state.best.layout], state, gd_iterations)
        return sort_population(refined + list(population)), converged
