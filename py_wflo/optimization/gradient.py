import numpy as np
from py_wflo.optimization._optimizer import Algorithm, PlacementOptimizer, RunState, clip_vector
from py_wflo.utils.gradients import fd


class PositionFitness():
    """Fitness as a function of the interleaved position vector of a template layout"""

    def __init__(self, layout, site, fitness):
        self.layout = layout
        self.site = site
        self.fitness = fitness

    def __call__(self, xy):
        return self.fitness(self.layout.from_vector(clip_vector(self.site, xy), self.site))


class GradientOptimizer(PlacementOptimizer):
    """Steepest ascent with forward finite difference gradients

    Coordinates are normalized by the largest extent, L, of the site, so a step in
    metres is learning_rate * L^2 * gradient. A step that does not improve the
    fitness is rejected and the learning rate is halved. The search has converged when
    an accepted step changes the fitness less than the convergence threshold or the
    learning rate has been halved below min_learning_rate_factor * learning_rate.
    """
    algorithm = Algorithm.GRADIENT

    def __init__(self, step=10., learning_rate=.01, min_learning_rate_factor=1e-3):
        """
        Parameters
        ----------
        step : float
            Finite difference step [m]
        learning_rate : float
            Learning rate in coordinates normalized by the largest site extent, L. The
            default, 0.01, gives a step of 0.01 * L^2 * gradient [m], i.e. it is not a
            learning rate applied to positions in metres
        min_learning_rate_factor : float
            Stop when the learning rate is reduced below this fraction of the initial value
        """
        self.step = step
        self.learning_rate = learning_rate
        self.min_learning_rate_factor = min_learning_rate_factor

    def search(self, seeds, state, generations):
        site = state.site
        population = state.evaluate(seeds, len(state.history))
        current = max(population, key=lambda ind: ind.fitness)
        xmin, ymin, xmax, ymax = site.bounds
        scale = max(xmax - xmin, ymax - ymin)
        lr = self.learning_rate
        generation0 = len(state.history)
        converged = False
        for g in range(1, generations + 1):
            if state.stop_requested():
                break
            state.set_state(RunState.EVALUATING)
            xy = current.layout.to_vector()
            gradient, _ = fd(PositionFitness(current.layout, site, state.fitness), self.step, state.map_func)(xy)
            state.n_evaluations += len(xy) + 1

            state.set_state(RunState.VARYING)
            xy_new = clip_vector(site, xy + lr * scale**2 * gradient)
            candidate = state.evaluate([current.layout.from_vector(xy_new, site)], generation0 + g)[0]
            state.set_state(RunState.SELECTING)
            if candidate.fitness > current.fitness:
                change = candidate.fitness - current.fitness
                current = candidate
                state.record(generation0 + g, [current])
                if change < state.settings.convergence_threshold:
                    converged = True
                    break
            else:
                lr /= 2
                state.record(generation0 + g, [current])
                if lr < self.learning_rate * self.min_learning_rate_factor:
                    converged = True
                    break
        return [current], converged
