import numpy as np
from numpy import newaxis as na
from py_wflo.utils.check_input import check_not_empty


def _readonly(a, dtype=float):
    a = np.array(a, dtype=dtype)
    a.flags.writeable = False
    return a


class TurbinePosition():
    def __init__(self, id, x, y, spec, elevation=0., orientation=None):
        self.id = id
        self.x = float(x)
        self.y = float(y)
        self.spec = spec
        self.elevation = float(elevation)
        self.orientation = orientation

    def __repr__(self):
        return f"TurbinePosition({self.id}, x={self.x:.1f}, y={self.y:.1f}, {self.spec.name})"


class EnergyProduction():
    def __init__(self, aep, gross_aep, capacity_factor, wake_loss, aep_i, capacity):
        """
        Parameters
        ----------
        aep : float
            Net annual energy production [MWh]
        gross_aep : float
            Annual energy production without wake losses [MWh]
        capacity_factor : float
            Net capacity factor [%]
        wake_loss : float
            Wake loss, 1 - aep / gross_aep [%]
        aep_i : array_like
            Net annual energy production per turbine [MWh]
        capacity : float
            Installed capacity [MW]
        """
        self.aep = aep
        self.gross_aep = gross_aep
        self.capacity_factor = capacity_factor
        self.wake_loss = wake_loss
        self.aep_i = aep_i
        self.capacity = capacity

    def __repr__(self):
        return "EnergyProduction(aep=%.1fMWh, capacity_factor=%.2f%%, wake_loss=%.2f%%)" % (
            self.aep, self.capacity_factor, self.wake_loss)


class Layout():
    """Ordered, immutable set of turbines

    Coordinates, elevations, ids and turbine specifications are stored as read-only arrays/tuples.
    Derived aggregates (energy production, economic metrics, environmental impact) are
    attached with `evaluated` and are dropped by every method returning a layout with
    new positions, so a layout never carries aggregates of another configuration.
    """

    def __init__(self, x, y, specs, elevation=None, ids=None, orientation=None, layout_type=None,
                 energy_production=None, economic_metrics=None, environmental_impact=None):
        """
        Parameters
        ----------
        x, y : array_like
            Turbine coordinates [m]
        specs : TurbineSpecification or list of TurbineSpecification
            Turbine type of all turbines or one per turbine
        elevation : array_like, optional
            Ground elevation [m]. Defaults to 0
        ids : list of str, optional
            Turbine ids. Defaults to 'turbine-1', 'turbine-2', ...
        orientation : array_like, optional
            Turbine orientation [deg]
        layout_type : str, optional
            Archetype or method that produced the layout
        """
        self.x = _readonly(np.atleast_1d(x))
        self.y = _readonly(np.atleast_1d(y))
        check_not_empty('Layout', self.x)
        n = len(self.x)
        if len(self.y) != n:
            raise ValueError(f"x and y must have same length, got {n} and {len(self.y)}")
        if hasattr(specs, 'diameter'):
            specs = [specs] * n
        self.specs = tuple(specs)
        if len(self.specs) != n:
            raise ValueError(f"Expected {n} turbine specifications, got {len(self.specs)}")
        self.elevation = _readonly(np.zeros(n) if elevation is None else np.broadcast_to(elevation, (n,)))
        self.ids = tuple(ids) if ids is not None else tuple('turbine-%d' % (i + 1) for i in range(n))
        self.orientation = None if orientation is None else _readonly(np.broadcast_to(orientation, (n,)))
        self.layout_type = layout_type
        self.energy_production = energy_production
        self.economic_metrics = economic_metrics
        self.environmental_impact = environmental_impact

    @classmethod
    def from_positions(cls, positions, layout_type=None):
        check_not_empty('Layout', positions)
        orientation = [p.orientation for p in positions]
        return cls(x=[p.x for p in positions], y=[p.y for p in positions], specs=[p.spec for p in positions],
                   elevation=[p.elevation for p in positions], ids=[p.id for p in positions],
                   orientation=None if None in orientation else orientation, layout_type=layout_type)

    def __len__(self):
        return len(self.x)

    @property
    def n_turbines(self):
        return len(self.x)

    @property
    def turbines(self):
        orientation = self.orientation if self.orientation is not None else [None] * len(self)
        return [TurbinePosition(*args) for args in zip(self.ids, self.x, self.y, self.specs, self.elevation,
                                                        orientation)]

    @property
    def diameter(self):
        return np.array([s.diameter for s in self.specs])

    @property
    def hub_height(self):
        return np.array([s.hub_height for s in self.specs])

    @property
    def rated_power(self):
        return np.array([s.rated_power for s in self.specs])

    @property
    def installed_capacity(self):
        """Installed capacity [MW]"""
        return float(np.sum(self.rated_power))

    @property
    def is_evaluated(self):
        return self.energy_production is not None

    def _copy(self, **kwargs):
        args = dict(x=self.x, y=self.y, specs=self.specs, elevation=self.elevation, ids=self.ids,
                    orientation=self.orientation, layout_type=self.layout_type)
        args.update(kwargs)
        return Layout(**args)

    def with_positions(self, x, y, elevation=None):
        """New layout (without aggregates) with turbines moved to x, y"""
        return self._copy(x=x, y=y, elevation=self.elevation if elevation is None else elevation)

    def with_specs(self, specs):
        """New layout (without aggregates) with other turbine specifications"""
        return self._copy(specs=specs)

    def with_layout_type(self, layout_type):
        return self._copy(layout_type=layout_type)

    def evaluated(self, energy_production=None, economic_metrics=None, environmental_impact=None):
        """Copy with derived aggregates attached. Aggregates not given are kept"""
        return self._copy(energy_production=energy_production or self.energy_production,
                          economic_metrics=economic_metrics or self.economic_metrics,
                          environmental_impact=environmental_impact or self.environmental_impact)

    def to_vector(self):
        """Positions as interleaved vector [x0, y0, x1, y1, ...]"""
        return np.array([self.x, self.y]).T.ravel()

    def from_vector(self, xy, site=None):
        """New layout (without aggregates) with positions from an interleaved vector

        The elevation is read from the site terrain when site is given, otherwise it is kept
        """
        xy = np.asarray(xy, dtype=float)
        if xy.shape != (2 * len(self),):
            raise ValueError(f"Expected position vector of length {2 * len(self)}, got shape {xy.shape}")
        x, y = xy[0::2], xy[1::2]
        return self.with_positions(x, y, None if site is None else site.elevation(x, y))

    def pairwise_distances(self):
        return np.hypot(self.x[:, na] - self.x[na], self.y[:, na] - self.y[na])

    def min_spacing(self):
        """Smallest distance between two turbines, inf for a single turbine"""
        if len(self) < 2:
            return np.inf
        d = self.pairwise_distances()
        return d[np.triu_indices(len(self), 1)].min()

    def spacing_violations(self, min_spacing):
        """Pairs (i, j), i<j, closer than min_spacing"""
        d = self.pairwise_distances()
        i, j = np.where(np.triu(d < min_spacing, 1))
        return list(zip(i, j))

    def __repr__(self):
        return f"Layout({len(self)} turbines, {self.installed_capacity:.1f}MW, type={self.layout_type})"
