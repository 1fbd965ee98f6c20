import numpy as np


def ct2a_mom1d(ct):
    """
    1D momentum, CT = 4a(1-a), with CT clamped to [0, 1] so the radicand is never negative.
    """
    return 0.5 * (1. - np.sqrt(1. - np.clip(ct, 0, 1)))


def ct2c0(ct):
    """Centre line deficit coefficient, 1 - sqrt(1 - CT), of the Gaussian deficit model (CT clamped to [0, 1])"""
    return 1. - np.sqrt(1. - np.clip(ct, 0, 1))
