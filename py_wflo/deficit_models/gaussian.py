import numpy as np
from numpy import newaxis as na
from py_wflo.deficit_models.deficit_model import WakeDeficitModel, broadcast_src
from py_wflo.deficit_models.utils import ct2c0


class GaussianDeficit(WakeDeficitModel):
    """Gaussian wake with turbulence dependent expansion

    The expansion rate follows the linear TI relation of Niayifar and Porte-Agel (2016),
    k = a[0] * TI + a[1], and the wake width is sigma = k*x + D/sqrt(8). The centre line
    deficit is (1 - sqrt(1 - Ct)) * (D / (D + 2kx))^2.
    """

    def __init__(self, a=[0.3837, 0.003678], ct2c0=ct2c0):
        """
        Parameters
        ----------
        a : list of float
            Coefficients of the expansion rate, k = a[0] * TI + a[1]
        ct2c0 : callable
            Ct to centre line deficit coefficient function
        """
        WakeDeficitModel.__init__(self, ct2a=None)
        self.a = a
        self.ct2c0 = ct2c0

    def k(self, TI):
        return self.a[0] * TI + self.a[1]

    def sigma_ijl(self, D_src_i, dw_ijl, TI):
        return self.k(TI) * dw_ijl + broadcast_src(D_src_i) / np.sqrt(8.)

    def wake_radius(self, D_src_i, dw_ijl, TI=.1):
        # twice sigma, as in Niayifar
        return 2. * self.sigma_ijl(D_src_i, dw_ijl, TI)

    def calc_deficit(self, D_src_i, dw_ijl, cw_ijl, ct_il, TI=.1):
        D_ijl = broadcast_src(D_src_i)
        k = self.k(TI)
        sigma_ijl = self.sigma_ijl(D_src_i, dw_ijl, TI)
        deficit_centre_ijl = self.ct2c0(ct_il)[:, na] * (D_ijl / (D_ijl + 2 * k * dw_ijl))**2
        return deficit_centre_ijl * np.exp(-0.5 * (cw_ijl / sigma_ijl)**2)
