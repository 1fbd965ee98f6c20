import copy
import re
import warnings
import numpy as np
from py_wflo.economic_optimizer import EconomicParameters
from py_wflo.utils.check_input import check_bounds

# name: (lower, upper, current). Spacings in rotor diameters, discount rate in percent
DEFAULT_BOUNDS = {'site.turbine_spacing': (3., 10., 5.),
                  'site.row_spacing': (3., 12., 7.),
                  'turbine.turbine_count': (1, 100, 10),
                  'layout.grid_angle': (0., 90., 0.),
                  'layout.cluster_size': (2, 10, 5),
                  'environmental.noise_limit': (35., 55., 45.),
                  'environmental.setback_distance': (300., 1500., 500.),
                  'economic.discount_rate': (3., 12., 8.),
                  'economic.electricity_price': (20., 150., 50.)}


def snake_case(name):
    return re.sub('([A-Z])', r'_\1', name).lower()


class ParameterBounds():
    def __init__(self, lower, upper, current=None):
        """
        Parameters
        ----------
        lower, upper : float
            Bounds of the parameter
        current : float, optional
            Current (base) value. Defaults to the midpoint. Values outside the bounds are clipped
        """
        check_bounds('parameter', lower, upper)
        self.lower = lower
        self.upper = upper
        if current is None:
            current = (lower + upper) / 2
        elif not lower <= current <= upper:
            warnings.warn(f"Current value {current} outside [{lower}, {upper}] is clipped")
            current = min(max(current, lower), upper)
        self.current = current

    def clip(self, value):
        return np.clip(value, self.lower, self.upper)

    @classmethod
    def from_dict(cls, d):
        if isinstance(d, ParameterBounds):
            return d
        if isinstance(d, (tuple, list)):
            return cls(*d)
        return cls(d.get('min', d.get('lower')), d.get('max', d.get('upper')), d.get('current'))

    def __repr__(self):
        return f"ParameterBounds({self.lower}, {self.upper}, current={self.current})"


class OptimizationParameters():
    """Bounded design parameters addressed by dotted names, e.g. 'site.turbine_spacing'

    Missing parameters take the values of DEFAULT_BOUNDS. `explicit` holds the names given
    by the caller or set with `with_value`.
    """

    def __init__(self, bounds={}):
        self.bounds = {k: ParameterBounds(*v) for k, v in DEFAULT_BOUNDS.items()}
        self.bounds.update({k: ParameterBounds.from_dict(v) for k, v in bounds.items()})
        self.explicit = frozenset(bounds)

    def __getitem__(self, name):
        return self.bounds[name]

    def __contains__(self, name):
        return name in self.bounds

    @property
    def names(self):
        return list(self.bounds)

    def value(self, name, default=None):
        if name not in self.bounds:
            return default
        return self.bounds[name].current

    def with_value(self, name, value):
        """Copy with the current value of name set to value (clipped to the bounds)"""
        params = copy.copy(self)
        params.bounds = dict(self.bounds)
        b = self.bounds[name]
        params.bounds[name] = ParameterBounds(b.lower, b.upper, float(b.clip(value)))
        params.explicit = self.explicit | {name}
        return params

    def economic_parameters(self, base=None):
        """EconomicParameters with electricity price and discount rate [%] of this parameter set"""
        return (base or EconomicParameters()).replace(
            electricity_price=self.value('economic.electricity_price'),
            discount_rate=self.value('economic.discount_rate') / 100)

    @classmethod
    def from_dict(cls, d):
        """Parameters from a flat {'site.turbine_spacing': {...}} or nested
        {'site': {'turbineSpacing': {'min':.., 'max':.., 'current':..}}} dict"""
        bounds = {}
        for group, v in d.items():
            if '.' in group or not isinstance(v, dict) or {'min', 'max', 'lower', 'upper'} & set(v):
                bounds[group] = v
            else:
                bounds.update({f"{group}.{snake_case(k)}": b for k, b in v.items()})
        return cls(bounds)


def noise_limit(parameters, objectives):
    """Noise limit at receptors [dB(A)]

    The current value of 'environmental.noise_limit' when the caller gave that parameter,
    otherwise objectives.max_noise_level
    """
    if parameters is not None and 'environmental.noise_limit' in parameters.explicit:
        return parameters.value('environmental.noise_limit')
    return objectives.max_noise_level


_OBJECTIVE_ALIASES = {'maximizeEnergyProduction': 'energy_production',
                      'maximizeCapacityFactor': 'energy_production',
                      'minimizeWakeLoss': 'wake_loss',
                      'maximizeNPV': 'npv',
                      'minimizeLCOE': 'npv',
                      'maximizeROI': 'npv',
                      'minimizeNoiseImpact': 'noise',
                      'minimizeVisualImpact': 'visual',
                      'minimizeWildlifeImpact': 'wildlife'}


class Objectives():
    ENVIRONMENTAL = ('noise', 'visual', 'wildlife')
    NAMES = ('energy_production', 'wake_loss', 'npv') + ENVIRONMENTAL

    def __init__(self, energy_production=.4, wake_loss=.2, npv=.3, noise=.05, visual=.05, wildlife=0.,
                 max_noise_level=45., min_spacing=300., targets={}):
        """Weighted objectives and constraint limits of the layout fitness

        Parameters
        ----------
        energy_production, wake_loss, npv : float
            Weights of normalized energy production, 1 - wake loss and economic value
        noise, visual, wildlife : float
            Weights of the environmental impact scores (penalties)
        max_noise_level : float
            Noise limit at receptors [dB(A)]
        min_spacing : float
            Minimum turbine spacing [m]
        targets : dict
            Optional target values per objective (reported, not optimized)
        """
        self.weights = {'energy_production': energy_production, 'wake_loss': wake_loss, 'npv': npv,
                        'noise': noise, 'visual': visual, 'wildlife': wildlife}
        self.max_noise_level = max_noise_level
        self.min_spacing = min_spacing
        self.targets = dict(targets)

    @property
    def environmental_weights(self):
        return {k: self.weights[k] for k in self.ENVIRONMENTAL}

    @classmethod
    def from_dict(cls, d):
        """Objectives from {name: weight} or {name: {'weight':.., 'target':.., 'limit':..}} with
        snake_case names or camelCase names such as 'maximizeEnergyProduction', plus an optional
        'constraints' entry with 'min_spacing' / 'minSpacing'"""
        kwargs = {}
        weights = {}
        targets = {}
        for key, v in d.items():
            if key == 'constraints':
                for ck, cv in v.items():
                    kwargs[snake_case(ck)] = cv
                continue
            name = _OBJECTIVE_ALIASES.get(key, key)
            if name not in cls.NAMES:
                raise ValueError(f"Unknown objective '{key}'. Valid objectives are {cls.NAMES} or "
                                 f"{list(_OBJECTIVE_ALIASES)}")
            if isinstance(v, dict):
                weight = v.get('weight', 0)
                if 'target' in v:
                    targets[name] = v['target']
                limit = v.get('maxNoiseLevel', v.get('max_noise_level', v.get('limit')))
                if name == 'noise' and limit is not None:
                    kwargs['max_noise_level'] = limit
            else:
                weight = v
            weights[name] = weights.get(name, 0) + weight
        unknown = set(kwargs) - {'max_noise_level', 'min_spacing'}
        if unknown:
            raise ValueError(f"Unknown constraint(s) {sorted(unknown)}")
        defaults = {k: 0. for k in cls.NAMES} if weights else {}
        defaults.update(weights)
        return cls(targets=targets, **defaults, **kwargs)
