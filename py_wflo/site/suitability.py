import numpy as np
import xarray as xr


class TerrainSuitability():
    def __init__(self, max_slope=15., resolution=None, medium_severity_factor=.5):
        """Placement suitability score in [0, 1] per grid cell

        The score combines terrain slope (1 on flat ground, linearly decreasing to 0 at
        max_slope), relative elevation (the lowest ground scores 20% less than the
        highest) and environmental constraint zones (0 inside high/critical zones, scaled
        by medium_severity_factor inside medium zones). Cells outside the site boundary
        score 0.

        Parameters
        ----------
        max_slope : float, optional
            Slope [deg] at which the terrain becomes unsuitable
        resolution : float or None, optional
            Grid resolution [m]. If None, the terrain grid is used
        medium_severity_factor : float, optional
            Score multiplier inside zones of medium severity
        """
        self.max_slope = max_slope
        self.resolution = resolution
        self.medium_severity_factor = medium_severity_factor

    def __call__(self, site):
        x, y = site.grid(self.resolution)
        X, Y = np.meshgrid(x, y)
        score = np.ones(X.shape)

        if site.terrain is not None:
            Z = site.terrain.elevation_at(X.ravel(), Y.ravel()).reshape(X.shape)
            if self.resolution is None:
                slope = site.terrain.slope()
            else:
                dz_dy, dz_dx = np.gradient(Z, y, x) if min(Z.shape) > 1 else (Z * 0, Z * 0)
                slope = np.rad2deg(np.arctan(np.hypot(dz_dx, dz_dy)))
            score *= np.clip(1 - slope / self.max_slope, 0, 1)
            if np.ptp(Z) > 0:
                score *= .8 + .2 * (Z - Z.min()) / np.ptp(Z)

        for c in site.environmental_constraints:
            inside = c.contains(X, Y)
            if c.is_exclusion:
                score[inside] = 0
            elif c.severity == 'medium':
                score[inside] *= self.medium_severity_factor

        score[~site.contains(X, Y)] = 0
        return xr.DataArray(score, dims=['y', 'x'], coords={'x': x, 'y': y},
                            attrs={'description': 'Placement suitability [0-1]'})


def local_maxima(da, threshold=0.):
    """Coordinates of cells that are greater than or equal to all 8 neighbours and above threshold,
    sorted by decreasing value

    Returns
    -------
    x, y, value : array_like
    """
    v = np.pad(da.values, 1, constant_values=-np.inf)
    center = v[1:-1, 1:-1]
    is_max = center > threshold
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dx or dy:
                is_max &= center >= v[1 + dy:v.shape[0] - 1 + dy, 1 + dx:v.shape[1] - 1 + dx]
    iy, ix = np.where(is_max)
    order = np.argsort(-center[iy, ix], kind='stable')
    iy, ix = iy[order], ix[order]
    return da.x.values[ix], da.y.values[iy], center[iy, ix]
