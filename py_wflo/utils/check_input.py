import inspect
import numpy as np


def check_input(input_space_lst, input_lst, input_keys=None):
    """Raise ValueError if any input lies outside its input space

    Parameters
    ----------
    input_space_lst : list of array_like
        Allowed range of each input, given by its min and max values
    input_lst : list of array_like
        Inputs to check
    input_keys : list of str, optional
        Names used in the error message
    """
    if input_keys is None:
        input_keys = ["index_%d" % i for i in range(len(input_space_lst))]

    for input, input_space, key in zip(input_lst, input_space_lst, input_keys):
        if np.min(input) < np.min(input_space):
            v = np.min(input)
        elif np.max(input) > np.max(input_space):
            v = np.max(input)
        else:
            continue
        mi, ma = np.min(input_space), np.max(input_space)
        raise ValueError(f"Input, {key}, with value, {v} outside range {mi}-{ma}")


def check_not_empty(name, values):
    if values is None or len(values) == 0:
        raise ValueError(f"{name} must contain at least one element")


def check_bounds(name, lower, upper):
    if lower > upper:
        raise ValueError(f"Invalid bounds for {name}: min ({lower}) is greater than max ({upper})")


def check_model(model, cls, arg_name=None, accept_None=True):
    """Raise ValueError if model is not an instance of cls"""
    if isinstance(model, cls) or (model is None and accept_None):
        return
    s = f'Argument, {arg_name}, ' if arg_name is not None else f'{model} '
    s += f'must be a {cls.__name__} instance'
    if inspect.isclass(model) and issubclass(model, cls):
        raise ValueError(s + f'. Did you forget the brackets: {model.__name__}()')
    raise ValueError(s + f', but is a {model.__class__.__name__} instance')
