import numpy as np


def fd(f, step=1e-6, map_func=None):
    """Forward finite difference gradient of a scalar function of a vector

    Parameters
    ----------
    f : callable
        f(x) -> float
    step : float
        Finite difference step
    map_func : callable, optional
        map_func(f, list_of_x) used to evaluate the reference and the perturbed points,
        e.g. a process pool map. Defaults to the builtin map

    Returns
    -------
    fd_gradient : callable
        fd_gradient(x) -> (gradient, f(x))
    """
    map_func = map_func or (lambda func, it: list(map(func, it)))

    def fd_gradient(x):
        x = np.atleast_1d(x).flatten().astype(float)
        res = np.asarray(map_func(f, [x] + list(x + np.diag(np.ones_like(x) * step))), dtype=float)
        return (res[1:] - res[0]) / step, res[0]
    fname = getattr(f, '__name__', f'{f.__class__.__name__}.{f.__call__.__name__}')
    fd_gradient.__name__ = "fd_of_%s" % fname
    return fd_gradient
