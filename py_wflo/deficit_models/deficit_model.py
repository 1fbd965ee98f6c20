from abc import ABC, abstractmethod
from warnings import catch_warnings, filterwarnings
import numpy as np
from numpy import newaxis as na
from py_wflo.deficit_models.utils import ct2a_mom1d


class WakeDeficitModel(ABC):
    """Base class of wake deficit models

    Arrays follow the suffix convention:

    - i: upstream (wake generating) turbines
    - j: downstream turbines or map points
    - l: wind direction sectors
    """

    def __init__(self, ct2a=ct2a_mom1d):
        self.ct2a = ct2a

    @abstractmethod
    def calc_deficit(self, D_src_i, dw_ijl, cw_ijl, ct_il, TI):
        """Fractional velocity deficit caused by turbine i at point j for sector l

        This method must be overridden by subclass. It is only evaluated where dw_ijl > 0

        Parameters
        ----------
        D_src_i : array_like
            Rotor diameter of the upstream turbines [m]
        dw_ijl : array_like
            Downwind distance [m]
        cw_ijl : array_like
            Crosswind distance [m]
        ct_il : array_like
            Thrust coefficient of the upstream turbines
        TI : float
            Ambient turbulence intensity

        Returns
        -------
        deficit_ijl : array_like
        """

    @abstractmethod
    def wake_radius(self, D_src_i, dw_ijl, TI):
        """Wake radius [m] at downwind distance dw_ijl"""

    def __call__(self, D_src_i, dw_ijl, cw_ijl, ct_il, TI=.1):
        """Deficit with zero upstream of the source and no NaN or inf from the formulas"""
        D_src_i = np.asarray(D_src_i, dtype=float)
        ct_il = np.asarray(ct_il, dtype=float)
        downstream_ijl = dw_ijl > 0
        with catch_warnings():
            filterwarnings('ignore', r'invalid value encountered')
            filterwarnings('ignore', r'divide by zero encountered')
            filterwarnings('ignore', r'overflow encountered')
            deficit_ijl = self.calc_deficit(D_src_i=D_src_i, dw_ijl=np.where(downstream_ijl, dw_ijl, 1.),
                                            cw_ijl=cw_ijl, ct_il=ct_il, TI=TI)
        return np.where(downstream_ijl & np.isfinite(deficit_ijl), deficit_ijl, 0.)


class WakeRadiusTopHat():
    """Super class of models with a tophat shape limited by the wake radius, e.g. JensenDeficit"""

    def in_wake(self, D_src_i, dw_ijl, cw_ijl, TI):
        return np.abs(cw_ijl) < self.wake_radius(D_src_i, dw_ijl, TI)


def broadcast_src(v_i):
    """Expand a per-source quantity to ijl"""
    return np.asarray(v_i, dtype=float)[:, na, na]
