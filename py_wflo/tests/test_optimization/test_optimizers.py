import numpy as np
import pytest
from py_wflo.examples.data.reference_farm import V80
from py_wflo.layout import Layout
from py_wflo.optimization import OptimizationSettings, LayoutFitness, GeneticOptimizer, ParticleSwarmOptimizer, \
    GradientOptimizer, HybridOptimizer, get_placement_optimizer, has_converged, Individual, RunState
from py_wflo.optimization._optimizer import evaluate_population, sort_population
from py_wflo.site import Site, WindResource, WindSector, TerrainGrid
from py_wflo.tests import npt


@pytest.fixture
def site():
    return Site.rectangle(2000, 2000, WindResource([WindSector(270, 1, 8)]))


def seeds():
    return [Layout([500, 850, 1200], [1000] * 3, V80()),
            Layout([500, 850, 1200], [800, 1000, 1200], V80())]


@pytest.mark.parametrize('optimizer', [GeneticOptimizer(), ParticleSwarmOptimizer(), GradientOptimizer(),
                                       HybridOptimizer()])
def test_optimizer(site, optimizer):
    fitness = LayoutFitness(site)
    settings = OptimizationSettings(optimizer.algorithm, population_size=6, max_generations=5, seed=0)
    run = optimizer.optimize(seeds(), site, settings=settings, fitness=fitness)
    assert run.method == optimizer.algorithm
    assert 1 <= run.iterations <= 5
    assert len(run.history) == run.iterations
    assert np.all(np.diff(run.history) >= 0)
    assert run.history[-1] == run.fitness
    assert run.fitness >= max(fitness(s) for s in seeds())
    assert np.all(site.contains(run.layout.x, run.layout.y))
    assert run.layout.n_turbines == 3
    assert run.n_evaluations > 0


def test_genetic_is_reproducible(site):
    runs = [GeneticOptimizer().optimize(seeds(), site, settings=OptimizationSettings(
        population_size=6, max_generations=3, seed=1)) for _ in range(2)]
    npt.assert_array_equal(runs[0].layout.to_vector(), runs[1].layout.to_vector())
    assert runs[0].history == runs[1].history


def test_convergence(site):
    settings = OptimizationSettings(population_size=4, max_generations=30, convergence_threshold=1e9, seed=0)
    run = GeneticOptimizer().optimize(seeds(), site, settings=settings)
    assert run.converged
    assert run.iterations == 10
    assert not run.max_generations_reached


def test_max_generations_reached(site):
    run = GeneticOptimizer().optimize(seeds(), site, settings=OptimizationSettings(
        population_size=4, max_generations=2, convergence_threshold=0, seed=0))
    assert run.iterations == 2
    assert run.max_generations_reached


def test_cancel(site):
    settings = OptimizationSettings(population_size=4, max_generations=10, should_stop=lambda: True)
    run = GeneticOptimizer().optimize(seeds(), site, settings=settings)
    assert run.cancelled
    assert run.iterations == 0
    assert not run.max_generations_reached
    # the best seed is still returned
    assert run.best is not None


def test_callback(site):
    events = []
    settings = OptimizationSettings(population_size=4, max_generations=3, convergence_threshold=0,
                                    callback=events.append, seed=0)
    GeneticOptimizer().optimize(seeds(), site, settings=settings)
    assert [e.generation for e in events] == [1, 2, 3]
    assert all(e.state == RunState.EVALUATING for e in events)
    assert events[-1].n_evaluations == 4 * 4
    assert events[0].best_fitness <= events[-1].best_fitness


def test_invalid_seeds(site):
    with pytest.raises(ValueError, match="Seed layouts must contain at least one element"):
        GeneticOptimizer().optimize([], site)
    with pytest.raises(ValueError, match="same number of turbines"):
        GeneticOptimizer().optimize([Layout([0], [0], V80()), Layout([0, 500], [0, 0], V80())], site)


def test_get_placement_optimizer():
    assert isinstance(get_placement_optimizer('pso'), ParticleSwarmOptimizer)
    assert isinstance(get_placement_optimizer('gradient_based'), GradientOptimizer)
    assert isinstance(get_placement_optimizer('hybrid'), HybridOptimizer)
    with pytest.raises(ValueError, match="Unknown optimization algorithm"):
        get_placement_optimizer('simplex')


def test_has_converged():
    assert has_converged([1.] * 10, 1e-6)
    assert not has_converged([1.] * 9, 1e-6)
    assert not has_converged([0.] + [1.] * 9, 1e-6)
    assert has_converged([0.] + [1.] * 10, 1e-6)


def test_initial_population(site):
    rng = np.random.default_rng(0)
    s = seeds()
    population = GeneticOptimizer().initial_population(s, 5, site, rng)
    assert len(population) == 5
    assert population[0] is s[0] and population[1] is s[1]
    assert np.all(np.abs(population[2].to_vector() - seeds()[0].to_vector()) <= 50)
    assert np.all(np.abs(population[3].to_vector() - seeds()[1].to_vector()) <= 50)


def individual(fitness, layout=None):
    return Individual(layout, fitness, fitness, {}, {}, True)


def test_crossover_and_mutation(site):
    ga = GeneticOptimizer()
    rng = np.random.default_rng(0)
    p1, p2 = [individual(0, s) for s in seeds()]
    xy1, xy2 = p1.layout.to_vector(), p2.layout.to_vector()
    c1, c2 = ga.crossover(p1, p2, 0, rng)
    npt.assert_array_equal(c1, xy1)
    npt.assert_array_equal(c2, xy2)
    c1, c2 = ga.crossover(p1, p2, 1, rng)
    npt.assert_array_equal(c1 + c2, xy1 + xy2)
    # x and y of a turbine come from the same parent
    for c, a, b in zip(c1.reshape(-1, 2), xy1.reshape(-1, 2), xy2.reshape(-1, 2)):
        assert np.all(c == a) or np.all(c == b)
    npt.assert_array_equal(ga.mutate(xy1, 0, site, rng), xy1)
    mutated = GeneticOptimizer(turbine_mutation_probability=1).mutate(xy1, 1, site, rng)
    assert np.all(mutated != xy1)


def test_replace():
    population = [individual(f) for f in [1, 5, 3]]
    offspring = [individual(f) for f in [4, 2, 0]]
    survivors = GeneticOptimizer().replace(population, offspring, 1)
    assert [ind.fitness for ind in survivors] == [5, 4, 2]


def test_evaluate_population_keeps_input_order(site):
    fitness = LayoutFitness(site)
    calls = []

    def map_func(f, layouts):
        calls.append(len(layouts))
        return [f(layout) for layout in layouts]
    population = evaluate_population(fitness, seeds(), map_func, generation=3)
    assert calls == [2]
    assert [ind.fitness for ind in population] == [fitness(s) for s in seeds()]
    assert all(ind.generation == 3 for ind in population)


def test_sort_population_is_stable():
    population = [individual(f, layout=i) for i, f in enumerate([1, 3, 1, 3])]
    assert [ind.layout for ind in sort_population(population)] == [1, 3, 0, 2]


def test_time_limit(site):
    settings = OptimizationSettings(population_size=4, max_generations=10, time_limit=0)
    run = GeneticOptimizer().optimize(seeds(), site, settings=settings)
    assert run.cancelled
    assert run.iterations == 0


@pytest.mark.parametrize('optimizer', [GeneticOptimizer(), ParticleSwarmOptimizer(), GradientOptimizer()])
def test_candidates_take_terrain_elevation(optimizer):
    # elevation = x / 10
    sloped = Site.rectangle(2000, 2000, WindResource([WindSector(270, 1, 8)]),
                            terrain=TerrainGrid([[0, 200], [0, 200]], resolution=2000))
    settings = OptimizationSettings(optimizer.algorithm, population_size=4, max_generations=2, seed=0)
    run = optimizer.optimize(seeds(), sloped, settings=settings)
    for ind in run.population + [run.best]:
        npt.assert_array_almost_equal(ind.layout.elevation, ind.layout.x / 10)
    moved = seeds()[0].from_vector(seeds()[0].to_vector() + 100, sloped)
    npt.assert_array_almost_equal(moved.elevation, [60, 95, 130])
    npt.assert_array_equal(seeds()[0].from_vector(seeds()[0].to_vector() + 100).elevation, [0, 0, 0])


class EastwardFitness():
    """Fitness rising 0.001 per metre the first turbine moves east"""

    def evaluate(self, layout):
        f = layout.x[0] / 1000
        return Individual(layout, f, f, {}, {}, True)

    def __call__(self, layout):
        return self.evaluate(layout).fitness


def test_gradient_step_in_normalized_coordinates(site):
    # step [m] = learning_rate * L^2 * gradient = .01 * 2000^2 * .001
    settings = OptimizationSettings('gradient', max_generations=1)
    run = GradientOptimizer().optimize(seeds()[:1], site, settings=settings, fitness=EastwardFitness())
    npt.assert_array_almost_equal(run.layout.x, [540, 850, 1200])
    npt.assert_array_almost_equal(run.layout.y, [1000] * 3)
