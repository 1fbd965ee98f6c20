import numpy as np
import shapely
import xarray as xr
from py_wflo.layout import Layout
from py_wflo.site.suitability import TerrainSuitability, local_maxima

LAYOUT_TYPES = ('grid_regular', 'grid_irregular', 'cluster_based', 'wind_aligned', 'terrain_following',
                'biomimetic')
SEED_LAYOUT_TYPES = LAYOUT_TYPES[:5]
GOLDEN_ANGLE = 137.5


def rectangle(N, columns, distance):
    return np.array([np.ravel(v)[:N] * distance
                     for v in np.meshgrid(np.arange(columns), np.arange(np.ceil(N / columns)))])


def farm_area(wt_x, wt_y):
    """
    Parameters
    ----------
    wt_x : array_like
        x-coordinate of wind turbines [m]
    wt_y : array_like
        y-coordinate of wind turbines [m]

    Returns
    -------
    y : float
        area of the convex hull of the turbines [m^2]. 0 for less than three non-collinear turbines
    """
    return shapely.MultiPoint(np.array([wt_x, wt_y], dtype=float).T).convex_hull.area


def _greedy(cand_x, cand_y, N, min_distance, x=(), y=()):
    x, y = list(x), list(y)
    for px, py in zip(cand_x, cand_y):
        if len(x) >= N:
            break
        if len(x) == 0 or np.min(np.hypot(np.subtract(x, px), np.subtract(y, py))) >= min_distance:
            x.append(px)
            y.append(py)
    return np.array(x, dtype=float), np.array(y, dtype=float)


def _complete(site, N, spacing, x, y):
    """The first N candidate positions inside the site. Missing positions are taken from a
    fine grid over the site, relaxing the spacing if needed"""
    x, y = np.ravel(x).astype(float), np.ravel(y).astype(float)
    inside = site.contains(x, y)
    x, y = x[inside][:N], y[inside][:N]
    if len(x) == N:
        return x, y
    X, Y = [v.ravel() for v in np.meshgrid(*site.grid(max(spacing / 4, 1.)))]
    m = site.contains(X, Y)
    for min_distance in [spacing, spacing / 2, spacing / 4, 1e-3]:
        x, y = _greedy(X[m], Y[m], N, min_distance, x, y)
        if len(x) == N:
            return x, y
    raise ValueError(f"Cannot place {N} turbines inside site '{site.name}'")


def _rotated_grid(site, spacing, row_spacing, angle):
    # grid covering the bounding box for any rotation, centred at the box centre
    xmin, ymin, xmax, ymax = site.bounds
    cx, cy = (xmin + xmax) / 2, (ymin + ymax) / 2
    R = np.hypot(xmax - xmin, ymax - ymin) / 2
    u = np.arange(-np.floor(R / spacing), np.floor(R / spacing) + 1) * spacing
    v = np.arange(-np.floor(R / row_spacing), np.floor(R / row_spacing) + 1) * row_spacing
    U, V = [a.ravel() for a in np.meshgrid(u, v)]
    theta = np.deg2rad(angle)
    return cx + U * np.cos(theta) - V * np.sin(theta), cy + U * np.sin(theta) + V * np.cos(theta)


def grid_regular(site, N, spacing, row_spacing=None, angle=0.):
    """Rows of turbines filled row by row from the lower edge

    Parameters
    ----------
    site : Site
    N : int
        Number of turbines
    spacing : float
        Distance between turbines in a row [m]
    row_spacing : float, optional
        Distance between rows [m]. Defaults to spacing
    angle : float, optional
        Counterclockwise rotation of the rows [deg]
    """
    row_spacing = row_spacing or spacing
    if angle % 360 == 0:
        xmin, ymin, xmax, ymax = site.bounds
        x, y = [v.ravel() for v in np.meshgrid(np.arange(xmin + spacing / 2, xmax, spacing),
                                               np.arange(ymin + row_spacing / 2, ymax, row_spacing))]
    else:
        x, y = _rotated_grid(site, spacing, row_spacing, angle)
        order = np.lexsort((x, y))
        x, y = x[order], y[order]
    return _complete(site, N, spacing, x, y)


def grid_irregular(site, N, spacing, row_spacing=None, angle=0., rng=None, perturbation=100.):
    """Regular grid with uniform random perturbations of +/- perturbation [m]"""
    rng = np.random.default_rng(rng)
    x, y = grid_regular(site, N, spacing, row_spacing, angle)
    x, y = site.clip(x + rng.uniform(-perturbation, perturbation, N), y + rng.uniform(-perturbation, perturbation, N))
    return _complete(site, N, spacing, x, y)


def wind_aligned(site, N, spacing, row_spacing=None, wind_direction=270.):
    """Rows perpendicular to the wind direction, i.e. spacing across and row_spacing along the wind"""
    return grid_regular(site, N, spacing, row_spacing, angle=(360 - wind_direction) % 360)


def cluster_based(site, N, spacing, cluster_size=5, rng=None):
    """Clusters of cluster_size turbines, the first in the cluster centre and the rest on hexagonal
    rings around it. Cluster centres are spread along x and drawn randomly in the middle 60% along y"""
    rng = np.random.default_rng(rng)
    xmin, ymin, xmax, ymax = site.bounds
    cluster_size = max(int(cluster_size), 1)
    n_clusters = int(np.ceil(N / cluster_size))
    x, y = [], []
    for c in range(n_clusters):
        cx = xmin + (xmax - xmin) / (n_clusters + 1) * (c + 1)
        cy = ymin + (ymax - ymin) * (.5 + (rng.random() - .5) * .6)
        m = min(cluster_size, N - c * cluster_size)
        k = np.arange(m)
        r = spacing * np.ceil(k / 6)
        theta = k / m * 2 * np.pi
        x.extend(cx + r * np.cos(theta))
        y.extend(cy + r * np.sin(theta))
    return _complete(site, N, spacing, *site.clip(np.array(x), np.array(y)))


def terrain_following(site, N, spacing, suitability=None):
    """Turbines on local elevation maxima first, then on the highest remaining suitable ground

    Parameters
    ----------
    suitability : xr.DataArray, optional
        Suitability map (dims y, x). Cells with zero suitability are not used. If None, it is
        computed with TerrainSuitability
    """
    if suitability is None:
        suitability = TerrainSuitability()(site)
    X, Y = np.meshgrid(suitability.x.values, suitability.y.values)
    Z = np.reshape(site.elevation(X.ravel(), Y.ravel()), X.shape)
    score = xr.DataArray(np.where(suitability.values > 0, Z + suitability.values, -np.inf),
                         dims=suitability.dims, coords=suitability.coords)
    mx, my, _ = local_maxima(score, threshold=-np.inf)
    s = score.values.ravel()
    order = np.argsort(-s, kind='stable')
    order = order[np.isfinite(s[order])]
    x, y = _greedy(np.r_[mx, X.ravel()[order]], np.r_[my, Y.ravel()[order]], N, spacing)
    return _complete(site, N, spacing, x, y)


def biomimetic(site, N, spacing):
    """Fibonacci (sunflower) spiral around the site centroid, r = spacing * sqrt(i)"""
    c = site.boundary.centroid
    i = np.arange(4 * N)
    r = spacing * np.sqrt(i)
    theta = np.deg2rad(i * GOLDEN_ANGLE)
    cand_x, cand_y = c.x + r * np.cos(theta), c.y + r * np.sin(theta)
    inside = site.contains(cand_x, cand_y)
    x, y = _greedy(cand_x[inside], cand_y[inside], N, spacing)
    return _complete(site, N, spacing, x, y)


def generate_layout(layout_type, site, spec, N, spacing, row_spacing=None, cluster_size=5, grid_angle=0.,
                    rng=None, suitability=None):
    """Seed layout of N turbines of the archetype layout_type

    Parameters
    ----------
    layout_type : str
        One of LAYOUT_TYPES
    site : Site
    spec : TurbineSpecification
    N : int
        Number of turbines
    spacing, row_spacing : float
        Turbine and row spacing [m]
    cluster_size : int
        Turbines per cluster (cluster_based)
    grid_angle : float
        Grid rotation [deg] (grid_regular, grid_irregular)
    rng : numpy.random.Generator, int or None
        Random source of grid_irregular and cluster_based
    suitability : xr.DataArray, optional
        Suitability map used by terrain_following

    Returns
    -------
    Layout
    """
    N = int(N)
    if N < 1:
        raise ValueError(f"Number of turbines must be positive, got {N}")
    if layout_type == 'grid_regular':
        x, y = grid_regular(site, N, spacing, row_spacing, grid_angle)
    elif layout_type == 'grid_irregular':
        x, y = grid_irregular(site, N, spacing, row_spacing, grid_angle, rng)
    elif layout_type == 'cluster_based':
        x, y = cluster_based(site, N, spacing, cluster_size, rng)
    elif layout_type == 'wind_aligned':
        x, y = wind_aligned(site, N, spacing, row_spacing, site.wind_resource.dominant_direction)
    elif layout_type == 'terrain_following':
        x, y = terrain_following(site, N, spacing, suitability)
    elif layout_type == 'biomimetic':
        x, y = biomimetic(site, N, spacing)
    else:
        raise ValueError(f"Unknown layout type '{layout_type}'. Valid types are {LAYOUT_TYPES}")
    return Layout(x, y, spec, elevation=site.elevation(x, y), layout_type=layout_type)
