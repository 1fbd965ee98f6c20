import numpy as np
from scipy.special import gamma
from py_wflo.utils import weibull
from py_wflo.tests import npt


def test_mean():
    npt.assert_almost_equal(weibull.mean(10, 2), 10 * gamma(1.5))
    npt.assert_almost_equal(weibull.mean(8, 1), 8)


def test_cdf():
    npt.assert_array_almost_equal(weibull.cdf(np.array([0, 10]), 10, 2), [0, 1 - np.exp(-1)])


def test_bin_probabilities():
    P = weibull.bin_probabilities(np.arange(0, 61), np.array([[8, 10]]), np.array([[2, 2.5]]))
    assert P.shape == (1, 2, 60)
    npt.assert_array_almost_equal(P.sum(-1), [[1, 1]])
    assert np.all(P >= 0)
