import numpy as np
import pytest
from py_wflo.examples.data.reference_farm import V80
from py_wflo.layout import Layout
from py_wflo.optimization import NSGA2Optimizer, OptimizationSettings
from py_wflo.optimization.multi_objective import dominates, fast_non_dominated_sort, crowding_distance, \
    hypervolume, normalize, spacing, convergence, diversity, objective_vector
from py_wflo.site import Site, WindResource, WindSector
from py_wflo.tests import npt


def test_dominates():
    assert dominates(np.array([2, 2]), np.array([1, 2]))
    assert not dominates(np.array([1, 2]), np.array([1, 2]))
    assert not dominates(np.array([3, 0]), np.array([1, 2]))


def test_fast_non_dominated_sort():
    fronts = fast_non_dominated_sort([[1, 1], [2, 2], [0, 3], [0, 0]])
    assert fronts == [[1, 2], [0], [3]]


def test_crowding_distance():
    npt.assert_array_equal(crowding_distance([[0, 2], [1, 1], [2, 0]]), [np.inf, 2, np.inf])
    npt.assert_array_equal(crowding_distance([[0, 2], [1, 1]]), [np.inf, np.inf])


def test_hypervolume():
    npt.assert_almost_equal(hypervolume([[1, .5], [.5, 1]]), .75)
    npt.assert_almost_equal(hypervolume([[1, .5], [.5, 1], [.4, .4]]), .75)
    npt.assert_almost_equal(hypervolume([[1, 1, .5], [.5, .5, 1]]), .625)
    npt.assert_almost_equal(hypervolume([[.3], [.7]]), .7)
    assert hypervolume(np.zeros((0, 3))) == 0


def test_normalize():
    npt.assert_array_almost_equal(normalize([[0, 10, 1], [5, 20, 1], [10, 10, 1]]),
                                  [[0, 0, 0], [.5, 1, 0], [1, 0, 0]])


def test_front_metrics():
    line = [[0, 1], [.5, .5], [1, 0]]
    assert spacing(line) == 0
    npt.assert_almost_equal(diversity(line), 0)
    npt.assert_almost_equal(convergence([[1, 1], [0, 0]]), np.sqrt(2) / 2)
    assert spacing([[0, 0]]) == diversity([[0, 0]]) == 0
    assert diversity([[0, 0], [0, .1], [1, 1]]) > 0


def test_nsga2():
    site = Site.rectangle(2000, 2000, WindResource([WindSector(270, 1, 8)]))
    seeds = [Layout([500, 850, 1200], [1000] * 3, V80())]
    result = NSGA2Optimizer().optimize(seeds, site, settings=OptimizationSettings(population_size=6,
                                                                                  max_generations=3, seed=0))
    assert result.run.iterations == 3
    assert len(result.pareto_front) >= 1
    assert result.objective_values.shape == (len(result.pareto_front), 3)
    assert 0 <= result.hypervolume <= 1
    assert result.convergence >= 0
    assert len(result.layouts) == len(result.pareto_front)
    F = np.array([objective_vector(ind) for ind in result.run.population])
    for f in result.objective_values:
        assert not any(dominates(g, f) for g in F)


def test_nsga2_invalid_seeds():
    site = Site.rectangle(2000, 2000, WindResource([WindSector(270, 1, 8)]))
    with pytest.raises(ValueError, match="Seed layouts must contain at least one element"):
        NSGA2Optimizer().optimize([], site)
