import numpy as np
from numpy import newaxis as na
from py_wflo.optimization._optimizer import RunState, SearchState, OptimizationSettings, on_terrain
from py_wflo.optimization.fitness import LayoutFitness
from py_wflo.optimization.genetic import GeneticOptimizer
from py_wflo.utils.check_input import check_not_empty

"""
All objectives are maximized:
- energy: net AEP [MWh]
- economic: economic value (simple_economic_value)
- environmental: -overall environmental impact score
"""
OBJECTIVE_AXES = ('energy', 'economic', 'environmental')


def objective_vector(individual):
    o = individual.objectives
    return np.array([o['aep'], o['economic_value'], -o['environmental_score']])


def dominates(a, b):
    return np.all(a >= b) and np.any(a > b)


def fast_non_dominated_sort(F):
    """Fronts of indices of F (n_points x n_objectives), first front non-dominated (Deb et al. 2002)"""
    F = np.asarray(F, dtype=float)
    n = len(F)
    ge = np.all(F[:, na] >= F[na], 2)
    gt = np.any(F[:, na] > F[na], 2)
    dom_ij = ge & gt  # i dominates j
    n_dominating = dom_ij.sum(0)
    fronts = []
    current = list(np.where(n_dominating == 0)[0])
    while current:
        fronts.append(current)
        nxt = []
        for i in current:
            for j in np.where(dom_ij[i])[0]:
                n_dominating[j] -= 1
                if n_dominating[j] == 0:
                    nxt.append(j)
        current = sorted(nxt)
    assert sum(len(f) for f in fronts) == n
    return fronts


def crowding_distance(F):
    """Crowding distance of each point of a front. Boundary points get inf"""
    F = np.asarray(F, dtype=float)
    n = len(F)
    d = np.zeros(n)
    if n <= 2:
        return np.full(n, np.inf)
    for m in range(F.shape[1]):
        order = np.argsort(F[:, m], kind='stable')
        f = F[order, m]
        d[order[0]] = d[order[-1]] = np.inf
        if f[-1] > f[0]:
            d[order[1:-1]] += (f[2:] - f[:-2]) / (f[-1] - f[0])
    return d


def normalize(F, reference=None):
    """Scale each objective to [0, 1] using min and max of reference (default F)"""
    F = np.asarray(F, dtype=float)
    reference = F if reference is None else np.asarray(reference, dtype=float)
    lo, hi = reference.min(0), reference.max(0)
    span = np.where(hi > lo, hi - lo, 1)
    return (F - lo) / span


def hypervolume(F):
    """Hypervolume dominated by the (normalized, maximized) points F w.r.t. the origin.
    Exact for 1, 2 and 3 objectives by slicing along the last objective"""
    F = np.maximum(np.asarray(F, dtype=float), 0)
    if len(F) == 0:
        return 0.
    if F.shape[1] == 1:
        return F.max()
    if F.shape[1] == 2:
        area, y_max = 0., 0.
        for x, y in F[np.argsort(-F[:, 0], kind='stable')]:
            if y > y_max:
                area += x * (y - y_max)
                y_max = y
        return area
    order = np.argsort(-F[:, -1], kind='stable')
    F = F[order]
    z = np.r_[F[:, -1], 0]
    return sum(hypervolume(F[:k + 1, :-1]) * (z[k] - z[k + 1]) for k in range(len(F)))


def _nearest_neighbour_distance(F, metric):
    d = metric(F[:, na] - F[na])
    np.fill_diagonal(d, np.inf)
    return d.min(1)


def spacing(F):
    """Schott's spacing metric of normalized front F (0 for evenly spread points)"""
    F = np.asarray(F, dtype=float)
    if len(F) < 2:
        return 0.
    d = _nearest_neighbour_distance(F, lambda diff: np.abs(diff).sum(-1))
    return np.sqrt(np.sum((d.mean() - d)**2) / (len(F) - 1))


def convergence(F):
    """Mean Euclidean distance of the normalized front points to the ideal point (1, ..., 1)"""
    F = np.asarray(F, dtype=float)
    if len(F) == 0:
        return 0.
    return np.mean(np.sqrt(np.sum((1 - F)**2, 1)))


def diversity(F):
    """Spread: mean absolute deviation of the nearest neighbour distances relative to their mean.
    0 for a single point or uniformly spread points"""
    F = np.asarray(F, dtype=float)
    if len(F) < 2:
        return 0.
    d = _nearest_neighbour_distance(F, lambda diff: np.sqrt(np.sum(diff**2, -1)))
    if d.mean() == 0:
        return 0.
    return np.mean(np.abs(d - d.mean())) / d.mean()


class ParetoResult():
    def __init__(self, pareto_front, objective_values, hypervolume, spacing, convergence, diversity, run):
        """
        Parameters
        ----------
        pareto_front : list of Individual
            Non-dominated individuals of the final population
        objective_values : array_like
            (n, 3) energy, economic and environmental objective values of the front
        hypervolume, spacing, convergence, diversity : float
            Front quality metrics computed on objectives normalized over the final population
        run : OptimizationRun
        """
        self.pareto_front = pareto_front
        self.objective_values = objective_values
        self.hypervolume = hypervolume
        self.spacing = spacing
        self.convergence = convergence
        self.diversity = diversity
        self.run = run

    @property
    def layouts(self):
        return [ind.layout for ind in self.pareto_front]


class NSGA2Optimizer():
    """NSGA-II: fast non-dominated sorting, crowding distance, binary tournament on
    (rank, crowding distance), the variation operators of GeneticOptimizer and
    (mu + lambda) survival"""

    def __init__(self, genetic=None):
        self.genetic = genetic or GeneticOptimizer()

    def rank_and_crowding(self, population):
        F = np.array([objective_vector(ind) for ind in population])
        rank = np.zeros(len(population), dtype=int)
        crowd = np.zeros(len(population))
        fronts = fast_non_dominated_sort(F)
        for r, front in enumerate(fronts):
            rank[front] = r
            crowd[front] = crowding_distance(F[front])
        return fronts, rank, crowd

    def survivors(self, population, size):
        fronts, _, crowd = self.rank_and_crowding(population)
        selected = []
        for front in fronts:
            if len(selected) + len(front) <= size:
                selected.extend(front)
            else:
                order = sorted(front, key=lambda i: -crowd[i])
                selected.extend(order[:size - len(selected)])
                break
        return [population[i] for i in selected]

    def binary_tournament(self, population, rank, crowd, rng):
        i, j = rng.integers(len(population), size=2)
        if (rank[i], -crowd[i]) <= (rank[j], -crowd[j]):
            return population[i]
        return population[j]

    def optimize(self, seeds, site, parameters=None, objectives=None, settings=None, fitness=None):
        """
        Returns
        -------
        ParetoResult
        """
        check_not_empty('Seed layouts', seeds)
        if len({len(s) for s in seeds}) != 1:
            raise ValueError("All seed layouts must have the same number of turbines")
        settings = settings or OptimizationSettings()
        fitness = fitness or LayoutFitness.from_parameters(site, parameters, objectives)
        state = SearchState(settings.algorithm, settings, fitness, site)
        rng = state.rng
        size = settings.population_size
        population = state.evaluate(self.genetic.initial_population(on_terrain(seeds, site), size, site, rng), 0)
        for g in range(1, settings.max_generations + 1):
            if state.stop_requested():
                break
            state.set_state(RunState.SELECTING)
            _, rank, crowd = self.rank_and_crowding(population)
            parents = [self.binary_tournament(population, rank, crowd, rng) for _ in range(size)]
            state.set_state(RunState.VARYING)
            template = population[0].layout
            children = [template.from_vector(xy, site) for xy in self.genetic.offspring(parents, settings, site, rng)]
            offspring = state.evaluate(children, g)
            population = self.survivors(population + offspring, size)
            state.record(g, population)

        run = state.result(False, population)
        F_all = np.array([objective_vector(ind) for ind in population])
        front = fast_non_dominated_sort(F_all)[0]
        F = F_all[front]
        F_norm = normalize(F, F_all)
        return ParetoResult(pareto_front=[population[i] for i in front], objective_values=F,
                            hypervolume=hypervolume(F_norm), spacing=spacing(F_norm),
                            convergence=convergence(F_norm), diversity=diversity(F_norm), run=run)
