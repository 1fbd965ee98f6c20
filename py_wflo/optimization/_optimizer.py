import time
from enum import Enum
import numpy as np
from tqdm import tqdm
from py_wflo.utils.check_input import check_input, check_not_empty
from py_wflo.optimization.fitness import LayoutFitness
from py_wflo.utils.parallelization import get_map_func


class Algorithm(Enum):
    GENETIC = 'genetic'
    PARTICLE_SWARM = 'particle_swarm'
    GRADIENT = 'gradient'
    HYBRID = 'hybrid'

    @classmethod
    def parse(cls, algorithm):
        if isinstance(algorithm, cls):
            return algorithm
        name = str(algorithm).lower()
        name = {'gradient_based': 'gradient', 'ga': 'genetic', 'pso': 'particle_swarm'}.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown optimization algorithm '{algorithm}'. Valid algorithms are "
                             f"{[a.value for a in cls]}") from None


class RunState(Enum):
    INITIALIZING = 'initializing'
    EVALUATING = 'evaluating'
    SELECTING = 'selecting'
    VARYING = 'varying'
    CONVERGENCE_CHECK = 'convergence_check'
    TERMINATED = 'terminated'


_CAMEL_CASE_KEYS = {'populationSize': 'population_size', 'maxGenerations': 'max_generations',
                    'crossoverRate': 'crossover_rate', 'mutationRate': 'mutation_rate',
                    'elitismRate': 'elitism_rate', 'convergenceThreshold': 'convergence_threshold',
                    'timeLimit': 'time_limit', 'nCpu': 'n_cpu'}


class OptimizationSettings():
    def __init__(self, algorithm='genetic', population_size=50, max_generations=100, crossover_rate=.8,
                 mutation_rate=.1, elitism_rate=.1, convergence_threshold=1e-6, seed=None, n_cpu=1,
                 verbose=False, time_limit=None, should_stop=None, callback=None):
        """
        Parameters
        ----------
        algorithm : Algorithm or str
            'genetic', 'particle_swarm', 'gradient' ('gradient_based') or 'hybrid'
        population_size : int
            Individuals (particles) per generation
        max_generations : int
            Maximum number of generations (iterations)
        crossover_rate, mutation_rate, elitism_rate : float
            Genetic algorithm rates
        convergence_threshold : float
            The search has converged when the best fitness changes less than this over
            the last 10 generations
        seed : int, optional
            Seed of the random number generator
        n_cpu : int or None
            Number of processes evaluating a population. None means all cpus
        verbose : bool
            Show a progress bar
        time_limit : float, optional
            Wall clock limit [s], checked between generations
        should_stop : callable, optional
            Function without arguments, checked between generations. The search stops when it returns True
        callback : callable, optional
            Called with an OptimizationEvent after each generation
        """
        self.algorithm = Algorithm.parse(algorithm)
        self.population_size = int(population_size)
        self.max_generations = int(max_generations)
        if self.population_size < 2:
            raise ValueError(f"population_size must be at least 2, got {population_size}")
        if self.max_generations < 1:
            raise ValueError(f"max_generations must be at least 1, got {max_generations}")
        check_input([(0, 1)] * 3, [crossover_rate, mutation_rate, elitism_rate],
                    ['crossover_rate', 'mutation_rate', 'elitism_rate'])
        self.crossover_rate = crossover_rate
        self.mutation_rate = mutation_rate
        self.elitism_rate = elitism_rate
        self.convergence_threshold = convergence_threshold
        self.seed = seed
        self.n_cpu = n_cpu
        self.verbose = verbose
        self.time_limit = time_limit
        self.should_stop = should_stop
        self.callback = callback

    def rng(self):
        return np.random.default_rng(self.seed)

    @classmethod
    def from_dict(cls, d):
        return cls(**{_CAMEL_CASE_KEYS.get(k, k): v for k, v in d.items()})


class OptimizationEvent():
    def __init__(self, method, state, generation, best_fitness, mean_fitness, n_evaluations, elapsed):
        self.method = method
        self.state = state
        self.generation = generation
        self.best_fitness = best_fitness
        self.mean_fitness = mean_fitness
        self.n_evaluations = n_evaluations
        self.elapsed = elapsed

    def __repr__(self):
        return "OptimizationEvent(%s, generation=%d, best=%.5f)" % (self.method.value, self.generation,
                                                                    self.best_fitness)


class OptimizationRun():
    def __init__(self, best, history, iterations, converged, cancelled, max_generations_reached, method,
                 n_evaluations, computation_time, population):
        """
        Parameters
        ----------
        best : Individual
            Best individual ever observed
        history : list of float
            Best-ever fitness after each generation (non-decreasing)
        iterations : int
            Generations (iterations) performed
        converged, cancelled, max_generations_reached : bool
        method : Algorithm
        n_evaluations : int
            Number of fitness evaluations
        computation_time : float
            [s]
        population : list of Individual
            Final population sorted by decreasing fitness
        """
        self.best = best
        self.history = history
        self.iterations = iterations
        self.converged = converged
        self.cancelled = cancelled
        self.max_generations_reached = max_generations_reached
        self.method = method
        self.n_evaluations = n_evaluations
        self.computation_time = computation_time
        self.population = population

    @property
    def layout(self):
        return self.best.layout

    @property
    def fitness(self):
        return self.best.fitness


def has_converged(history, threshold, window=10):
    """True when the last value differs less than threshold from the value window-1 generations earlier"""
    return len(history) >= window and abs(history[-1] - history[-window]) < threshold


def sort_population(population):
    """Sort by decreasing fitness. The sort is stable, so ties keep their population order"""
    return sorted(population, key=lambda ind: -ind.fitness)


def evaluate_population(fitness, layouts, map_func=None, generation=0):
    """Evaluate layouts with map_func (serial if None) and return Individuals in input order"""
    map_func = map_func or get_map_func(1)
    individuals = map_func(fitness.evaluate, layouts)
    for ind in individuals:
        ind.generation = generation
    return individuals


def on_terrain(layouts, site):
    """Copies of layouts with elevations read from the site terrain"""
    return [layout.from_vector(layout.to_vector(), site) for layout in layouts]


def clip_vector(site, xy):
    """Clamp an interleaved position vector (or array of vectors) to the site bounding box"""
    xy = np.array(xy, dtype=float)
    xy[..., 0::2], xy[..., 1::2] = site.clip(xy[..., 0::2], xy[..., 1::2])
    return xy


class SearchState():
    """Bookkeeping of a running search: evaluations, best-ever individual, history,
    progress bar, events and stop conditions"""

    def __init__(self, method, settings, fitness, site):
        self.method = method
        self.settings = settings
        self.fitness = fitness
        self.site = site
        self.rng = settings.rng()
        self.map_func = get_map_func(settings.n_cpu)
        self.start_time = time.time()
        self.n_evaluations = 0
        self.best = None
        self.history = []
        self.cancelled = False
        self.state = RunState.INITIALIZING
        self.pbar = tqdm(total=settings.max_generations, disable=not settings.verbose, desc=method.value,
                         unit='gen')

    def set_state(self, state):
        self.state = state

    def evaluate(self, layouts, generation):
        self.set_state(RunState.EVALUATING)
        population = evaluate_population(self.fitness, layouts, self.map_func, generation)
        self.n_evaluations += len(population)
        for ind in population:
            if self.best is None or ind.fitness > self.best.fitness:
                self.best = ind
        return population

    def record(self, generation, population):
        """Store best-ever fitness of generation and notify"""
        self.history.append(self.best.fitness)
        self.pbar.update(1)
        self.pbar.set_postfix(best=self.best.fitness)
        if self.settings.callback is not None:
            self.settings.callback(OptimizationEvent(self.method, self.state, generation, self.best.fitness,
                                                     float(np.mean([ind.fitness for ind in population])),
                                                     self.n_evaluations, time.time() - self.start_time))

    def converged(self):
        self.set_state(RunState.CONVERGENCE_CHECK)
        return has_converged(self.history, self.settings.convergence_threshold)

    def stop_requested(self):
        s = self.settings
        if s.time_limit is not None and time.time() - self.start_time >= s.time_limit:
            self.cancelled = True
        elif s.should_stop is not None and s.should_stop():
            self.cancelled = True
        return self.cancelled

    def result(self, converged, population=()):
        self.set_state(RunState.TERMINATED)
        self.pbar.close()
        iterations = len(self.history)
        return OptimizationRun(best=self.best, history=list(self.history), iterations=iterations,
                               converged=converged, cancelled=self.cancelled,
                               max_generations_reached=not (converged or self.cancelled),
                               method=self.method, n_evaluations=self.n_evaluations,
                               computation_time=time.time() - self.start_time,
                               population=sort_population(population))


class PlacementOptimizer():
    """Base class of the turbine placement searches

    Subclasses implement `search(seeds, state, generations)` returning the final
    population and whether the search converged. Every search move clamps positions to the site bounding box.
    """
    algorithm = None

    def optimize(self, seeds, site, parameters=None, objectives=None, settings=None, fitness=None):
        """Search for the layout with the highest fitness

        Parameters
        ----------
        seeds : list of Layout
            Initial layouts. All layouts must have the same number of turbines
        site : Site
        parameters : OptimizationParameters, optional
            Economic parameters (electricity price, discount rate) used by the fitness
        objectives : Objectives, optional
        settings : OptimizationSettings, optional
        fitness : LayoutFitness, optional
            Defaults to LayoutFitness built from site, parameters and objectives

        Returns
        -------
        OptimizationRun
        """
        check_not_empty('Seed layouts', seeds)
        if len({len(s) for s in seeds}) != 1:
            raise ValueError("All seed layouts must have the same number of turbines")
        settings = settings or OptimizationSettings(algorithm=self.algorithm)
        fitness = fitness or LayoutFitness.from_parameters(site, parameters, objectives)
        state = SearchState(self.algorithm, settings, fitness, site)
        population, converged = self.search(on_terrain(seeds, site), state, settings.max_generations)
        return state.result(converged, population)

    def search(self, seeds, state, generations):  # pragma: no cover
        raise NotImplementedError

