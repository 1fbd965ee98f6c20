import copy
import numpy as np


def _readonly(a):
    a = np.array(a, dtype=float)
    a.flags.writeable = False
    return a


class TurbineSpecification():
    """Catalog entry of a wind turbine model

    Instances are shared by reference between layouts and are never modified.
    Use with_hub_height to derive a variant.
    """

    def __init__(self, name, rated_power, diameter, hub_height, ws_cutin=3., ws_rated=12., ws_cutout=25.,
                 power_curve=None, ct_curve=None, cost=None, maintenance_cost=None, lifespan=25, model=None):
        """
        Parameters
        ----------
        name : str
            Turbine id, e.g. 'V80'
        rated_power : float
            Rated power [MW]
        diameter : float
            Rotor diameter [m]
        hub_height : float
            Hub height [m]
        ws_cutin, ws_rated, ws_cutout : float
            Cut-in, rated and cut-out wind speed [m/s]
        power_curve : array_like or None
            (n,2) table of wind speed [m/s] and power [MW]. If None, a cubic curve
            from cut-in to rated wind speed is used
        ct_curve : array_like or None
            (n,2) table of wind speed [m/s] and thrust coefficient. If None, Ct=0.8 in
            the operating range
        cost : float, optional
            Capital cost [USD]
        maintenance_cost : float, optional
            Maintenance cost [USD/year]
        lifespan : float, optional
            Design life [years]
        model : str, optional
            Manufacturer model name
        """
        if rated_power <= 0 or diameter <= 0 or hub_height <= 0:
            raise ValueError("rated_power, diameter and hub_height must be positive")
        if not ws_cutin < ws_rated <= ws_cutout:
            raise ValueError(f"Expected ws_cutin < ws_rated <= ws_cutout, got {ws_cutin}, {ws_rated}, {ws_cutout}")
        self.name = name
        self.model = model or name
        self.rated_power = float(rated_power)
        self.diameter = float(diameter)
        self.hub_height = float(hub_height)
        self.ws_cutin = ws_cutin
        self.ws_rated = ws_rated
        self.ws_cutout = ws_cutout
        self.cost = cost
        self.maintenance_cost = maintenance_cost
        self.lifespan = lifespan

        if power_curve is None:
            ws = np.linspace(ws_cutin, ws_cutout, 45)
            power_curve = np.array([ws, np.minimum(rated_power * ((ws - ws_cutin) / (ws_rated - ws_cutin))**3,
                                                   rated_power)]).T
        if ct_curve is None:
            ct_curve = [[ws_cutin, .8], [ws_cutout, .8]]
        self.power_curve = _readonly(power_curve)
        self.ct_curve = _readonly(ct_curve)
        for curve in [self.power_curve, self.ct_curve]:
            if curve.ndim != 2 or curve.shape[1] != 2 or np.any(np.diff(curve[:, 0]) <= 0):
                raise ValueError("Curves must be (n,2) tables with increasing wind speeds")

    def power(self, ws):
        """Power [MW] at wind speed(s) ws, zero outside [ws_cutin, ws_cutout]"""
        ws = np.asarray(ws, dtype=float)
        p = np.interp(ws, self.power_curve[:, 0], self.power_curve[:, 1])
        return np.where((ws >= self.ws_cutin) & (ws <= self.ws_cutout), p, 0)

    def ct(self, ws):
        """Thrust coefficient at wind speed(s) ws, zero outside [ws_cutin, ws_cutout]"""
        ws = np.asarray(ws, dtype=float)
        ct = np.interp(ws, self.ct_curve[:, 0], self.ct_curve[:, 1])
        return np.where((ws >= self.ws_cutin) & (ws <= self.ws_cutout), ct, 0)

    def with_hub_height(self, hub_height):
        spec = copy.copy(self)
        spec.hub_height = float(hub_height)
        return spec

    @property
    def tip_height(self):
        return self.hub_height + self.diameter / 2

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name}, {self.rated_power}MW, D={self.diameter}m, H={self.hub_height}m)"


class GenericTurbineSpecification(TurbineSpecification):
    def __init__(self, name, rated_power, diameter, hub_height, ws_cutin=3., ws_rated=12., ws_cutout=25.,
                 constant_ct=.8, ct_idle=.03, **kwargs):
        """Turbine with cubic power curve and constant Ct up to rated wind speed.
        Above rated, Ct follows a second order polynomial down to ct_idle at cut-out

        Parameters
        ----------
        constant_ct : float, optional
            Ct in range [ws_cutin, ws_rated]
        ct_idle : float, optional
            Ct at ws_cutout

        See TurbineSpecification for the other parameters
        """
        ws = np.linspace(ws_cutin, ws_cutout, 89)
        power = np.minimum(rated_power * ((ws - ws_cutin) / (ws_rated - ws_cutin))**3, rated_power)

        # second order polynomial from (ws_rated,ct) to (ws_cutout,ct_idle) with zero slope at ws_cutout
        a = (constant_ct - ct_idle) / (ws_rated - ws_cutout)**2
        ct = np.where(ws <= ws_rated, constant_ct, a * (ws - ws_cutout)**2 + ct_idle)
        TurbineSpecification.__init__(self, name, rated_power, diameter, hub_height,
                                      ws_cutin=ws_cutin, ws_rated=ws_rated, ws_cutout=ws_cutout,
                                      power_curve=np.array([ws, power]).T, ct_curve=np.array([ws, ct]).T, **kwargs)
