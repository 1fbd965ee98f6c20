import numpy as np
from scipy.special import gamma


def mean(A, k):
    return A * gamma(1 + 1 / k)


def cdf(ws, A, k):
    return 1 - np.exp(-(1 / A * ws) ** k)


def bin_probabilities(ws_edges, A, k):
    """Probability of each wind speed bin

    Parameters
    ----------
    ws_edges : array_like
        Bin edges [m/s], shape (n+1,)
    A : array_like
        Weibull scale parameter(s), broadcast against a trailing bin axis
    k : array_like
        Weibull shape parameter(s), broadcast against a trailing bin axis

    Returns
    -------
    P : array_like
        Probability of each of the n bins. Rows sum to the probability of the
        covered range, i.e. slightly below one if the last edge is finite
    """
    A = np.asarray(A, dtype=float)[..., np.newaxis]
    k = np.asarray(k, dtype=float)[..., np.newaxis]
    c = cdf(np.asarray(ws_edges, dtype=float), A, k)
    return np.diff(c, axis=-1)
