import numpy as np
from numpy import newaxis as na


class StraightDistance():
    """Downwind and crosswind distances from source points (wind turbines) to
    destination points (turbines or map points) for a set of wind directions.

    Wind directions follow the meteorological convention, i.e. wd=270 is a westerly
    wind and the wake propagates in the +x direction.
    """

    def _cos_sin(self, wd):
        theta = np.deg2rad(90 - np.asarray(wd, dtype=float))
        return np.cos(theta), np.sin(theta)

    def __call__(self, src_x_i, src_y_i, wd_l, dst_x_j=None, dst_y_j=None):
        """
        Parameters
        ----------
        src_x_i, src_y_i : array_like
            Source coordinates [m]
        wd_l : array_like
            Wind directions [deg]
        dst_x_j, dst_y_j : array_like, optional
            Destination coordinates [m]. Defaults to the source coordinates

        Returns
        -------
        dw_ijl : array_like
            Downwind distance from source i to destination j for wind direction l.
            Positive when j is downstream of i
        cw_ijl : array_like
            Signed horizontal crosswind distance
        """
        src_x_i, src_y_i = np.asarray(src_x_i, dtype=float), np.asarray(src_y_i, dtype=float)
        if dst_x_j is None:
            dst_x_j, dst_y_j = src_x_i, src_y_i
        dx_ij = np.asarray(dst_x_j, dtype=float)[na] - src_x_i[:, na]
        dy_ij = np.asarray(dst_y_j, dtype=float)[na] - src_y_i[:, na]
        cos_l, sin_l = self._cos_sin(np.atleast_1d(wd_l))

        dw_ijl = -cos_l[na, na] * dx_ij[:, :, na] - sin_l[na, na] * dy_ij[:, :, na]
        cw_ijl = sin_l[na, na] * dx_ij[:, :, na] - cos_l[na, na] * dy_ij[:, :, na]
        return dw_ijl, cw_ijl
