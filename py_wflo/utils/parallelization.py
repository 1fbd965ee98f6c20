import multiprocessing
import atexit
import platform
import gc

pool_dict = {}


def get_pool(processes):
    """Return a cached process pool with the given number of processes.
    Pools with another size are closed first"""
    if processes not in pool_dict:
        close_pools()
        if platform.system() == 'Darwin':  # pragma: no cover
            pool_dict[processes] = multiprocessing.get_context('fork').Pool(processes)
        else:
            pool_dict[processes] = multiprocessing.Pool(processes)
    return pool_dict[processes]


class gc_func():
    """Wrap a fitness function so each worker frees the flow arrays of a candidate before the next one"""

    def __init__(self, func):
        self.func = func

    def __call__(self, *args, **kwargs):
        r = self.func(*args, **kwargs)
        gc.collect()
        return r


def get_map_func(n_cpu=1):
    """Return a map function evaluating on n_cpu processes

    Parameters
    ----------
    n_cpu : int or None
        Number of processes. 1 means serial evaluation in the calling process,
        None means one process per cpu

    Returns
    -------
    map_func : callable
        map_func(func, iterable) returning a list in input order
    """
    if n_cpu == 1:
        def serial_map(func, iterable):
            return list(map(func, iterable))
        return serial_map

    pool = get_pool(n_cpu or multiprocessing.cpu_count())

    def pool_map(func, iterable):
        return pool.map(gc_func(func), list(iterable))
    return pool_map


def close_pools():
    for pool in pool_dict.values():
        pool.close()
    pool_dict.clear()


atexit.register(close_pools)
