import numpy as np
import pytest
from py_wflo.utils.statistics import box_muller, empirical_percentiles, risk_metrics, sensitivity
from py_wflo.tests import npt


def test_box_muller():
    z = box_muller(np.random.default_rng(0), 100000)
    assert abs(z.mean()) < .02
    npt.assert_almost_equal(z.std(), 1, 2)
    assert np.all(np.isfinite(z))
    assert box_muller(np.random.default_rng(0), (10, 3)).shape == (10, 3)


def test_empirical_percentiles():
    p = empirical_percentiles(np.arange(100)[::-1], (5, 50, 95, 100))
    assert p == {5: 5, 50: 50, 95: 95, 100: 99}


def test_risk_metrics():
    values = np.arange(-10, 90)
    risk = risk_metrics(values)
    assert risk.value_at_risk == -5
    npt.assert_almost_equal(risk.expected_shortfall, -8)
    npt.assert_almost_equal(risk.probability_of_loss, .1)
    assert (risk.worst_case, risk.best_case, risk.n_samples) == (-10, 89, 100)
    assert risk.confidence_interval == (-5, 85)
    npt.assert_almost_equal(risk.mean, 39.5)


def test_risk_metrics_constant():
    risk = risk_metrics([3., 3., 3.])
    assert risk.expected_shortfall == risk.value_at_risk == 3
    assert risk.std == 0


def test_risk_metrics_empty():
    with pytest.raises(ValueError, match="at least one sample"):
        risk_metrics([])


def test_sensitivity():
    slope, elasticity = sensitivity([1, 2, 3], [2, 4, 6], 2, 4)
    npt.assert_almost_equal(slope, 2)
    npt.assert_almost_equal(elasticity, 1)
    assert sensitivity([1, 2, 3], [1, 2, 3], 2, 0)[1] == 0
    assert sensitivity([2, 2], [1, 5], 2, 3) == (0., 0.)
