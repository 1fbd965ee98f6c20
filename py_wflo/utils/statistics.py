import numpy as np
from scipy import stats

PERCENTILES = (5, 10, 25, 50, 75, 90, 95)


def box_muller(rng, size):
    """Standard normal samples from pairs of uniform samples (Box-Muller transform)

    Parameters
    ----------
    rng : numpy.random.Generator
        Source of the uniform samples
    size : int or tuple
        Output shape

    Returns
    -------
    z : array_like
        Standard normal samples
    """
    u1 = 1 - rng.random(size)  # (0, 1], log(0) impossible
    u2 = rng.random(size)
    return np.sqrt(-2 * np.log(u1)) * np.cos(2 * np.pi * u2)


def empirical_percentiles(values, percentiles=PERCENTILES):
    """Percentiles taken as the sorted sample at index floor(p/100*n)"""
    values = np.sort(np.asarray(values, dtype=float))
    n = len(values)
    idx = np.minimum((np.asarray(percentiles) / 100 * n).astype(int), n - 1)
    return {p: values[i] for p, i in zip(percentiles, idx)}


class RiskMetrics():
    def __init__(self, mean, std, percentiles, value_at_risk, probability_of_loss, expected_shortfall,
                 worst_case, best_case, n_samples):
        self.mean = mean
        self.std = std
        self.percentiles = percentiles
        self.value_at_risk = value_at_risk
        self.probability_of_loss = probability_of_loss
        self.expected_shortfall = expected_shortfall
        self.worst_case = worst_case
        self.best_case = best_case
        self.n_samples = n_samples

    @property
    def confidence_interval(self):
        """95% interval of the sample"""
        return self.percentiles[5], self.percentiles[95]

    def __repr__(self):
        return "RiskMetrics(mean=%.4g, std=%.4g, VaR95=%.4g, P(loss)=%.3f)" % (
            self.mean, self.std, self.value_at_risk, self.probability_of_loss)


def risk_metrics(values, loss_threshold=0):
    """Empirical distribution summary of a Monte Carlo sample

    The 95% value at risk is the 5th percentile. The expected shortfall is the
    mean of the samples below the value at risk, or the value at risk itself when
    no sample lies below it.

    Parameters
    ----------
    values : array_like
        Monte Carlo samples, e.g. NPV
    loss_threshold : float, optional
        Samples below this value count as a loss
    """
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        raise ValueError("Risk metrics require at least one sample")
    percentiles = empirical_percentiles(values)
    var = percentiles[5]
    tail = values[values < var]
    expected_shortfall = tail.mean() if len(tail) else var
    return RiskMetrics(mean=values.mean(), std=values.std(),
                       percentiles=percentiles,
                       value_at_risk=var,
                       probability_of_loss=np.mean(values < loss_threshold),
                       expected_shortfall=expected_shortfall,
                       worst_case=values.min(), best_case=values.max(),
                       n_samples=len(values))


def sensitivity(parameter_values, responses, base_value, base_response):
    """Linear regression slope of response vs parameter and the corresponding elasticity

    Returns
    -------
    slope : float
        d(response)/d(parameter) from a least squares fit
    elasticity : float
        slope * base_value / base_response, 0 if base_response is 0
    """
    parameter_values = np.asarray(parameter_values, dtype=float)
    if np.ptp(parameter_values) == 0:
        return 0., 0.
    slope = stats.linregress(parameter_values, responses).slope
    elasticity = slope * base_value / base_response if base_response != 0 else 0.
    return slope, elasticity
