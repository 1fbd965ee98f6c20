from numpy import newaxis as na
from py_wflo.deficit_models.deficit_model import WakeDeficitModel, WakeRadiusTopHat, broadcast_src
from py_wflo.deficit_models.utils import ct2a_mom1d


class JensenDeficit(WakeDeficitModel, WakeRadiusTopHat):
    """Top-hat wake of the Jensen (N.O. Jensen 1983) model

    Inside the wake radius, D/2 + k*x, the deficit is 2a / (1 + 2kx/D)^2, where a is the
    axial induction factor of the upstream turbine.
    """

    def __init__(self, k=.075, ct2a=ct2a_mom1d):
        """
        Parameters
        ----------
        k : float, default 0.075
            wake expansion factor
        ct2a : callable
            Ct to axial induction factor function
        """
        WakeDeficitModel.__init__(self, ct2a=ct2a)
        self.k = k

    def wake_radius(self, D_src_i, dw_ijl, TI=None):
        return self.k * dw_ijl + broadcast_src(D_src_i) / 2

    def calc_deficit(self, D_src_i, dw_ijl, cw_ijl, ct_il, TI=None):
        D_ijl = broadcast_src(D_src_i)
        a_ijl = self.ct2a(ct_il)[:, na]
        deficit_ijl = 2 * a_ijl / (1 + 2 * self.k * dw_ijl / D_ijl)**2
        return deficit_ijl * self.in_wake(D_src_i, dw_ijl, cw_ijl, TI)
