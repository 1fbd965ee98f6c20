import numpy as np
import xarray as xr
import shapely
from shapely.geometry import Polygon, Point, box
from scipy.interpolate import RegularGridInterpolator
from py_wflo.utils.check_input import check_not_empty
from py_wflo.utils import weibull

"""
suffixs:
- i: Wind turbines (upstream)
- j: Wind turbines (downstream) or map points
- l: Wind direction sectors
- k: Wind speed bins
"""

SEVERITIES = ('low', 'medium', 'high', 'critical')


def _readonly(a, dtype=float):
    a = np.array(a, dtype=dtype)
    a.flags.writeable = False
    return a


class WindSector():
    def __init__(self, direction, frequency, mean_speed, weibull_a=None, weibull_k=None):
        """
        Parameters
        ----------
        direction : float
            Sector centre [deg], meteorological convention (direction the wind comes from)
        frequency : float
            Relative frequency. Percentages and fractions are both accepted, the
            wind resource normalizes them to probabilities
        mean_speed : float
            Mean wind speed at reference height [m/s]
        weibull_a, weibull_k : float, optional
            Weibull scale and shape parameters
        """
        self.direction = float(direction) % 360
        self.frequency = float(frequency)
        self.mean_speed = float(mean_speed)
        self.weibull_a = weibull_a
        self.weibull_k = weibull_k
        if self.frequency < 0 or self.mean_speed < 0:
            raise ValueError("Sector frequency and mean speed must be non-negative")

    @classmethod
    def from_dict(cls, d):
        return cls(direction=d['direction'], frequency=d['frequency'],
                   mean_speed=d.get('mean_speed', d.get('meanSpeed')),
                   weibull_a=d.get('weibull_a', d.get('weibullA')),
                   weibull_k=d.get('weibull_k', d.get('weibullK')))


class WindResource():
    def __init__(self, sectors, turbulence_intensity=.1, air_density=1.225, reference_height=None,
                 shear_exponent=.143):
        """Wind rose and ambient conditions of a site

        Parameters
        ----------
        sectors : list of WindSector or dict
            Wind rose sectors
        turbulence_intensity : float, optional
            Ambient turbulence intensity (fraction)
        air_density : float, optional
            Air density [kg/m^3]
        reference_height : float or None, optional
            Height of the sector wind speeds [m]. If None, the speeds are taken as
            hub height speeds
        shear_exponent : float, optional
            Power law shear exponent
        """
        check_not_empty('Wind rose', sectors)
        self.sectors = tuple(s if isinstance(s, WindSector) else WindSector.from_dict(s) for s in sectors)
        f = np.array([s.frequency for s in self.sectors])
        if f.sum() <= 0:
            raise ValueError("Wind rose frequencies sum to zero")
        self.wd_l = _readonly([s.direction for s in self.sectors])
        self.P_l = _readonly(f / f.sum())
        self.ws_l = _readonly([s.mean_speed for s in self.sectors])
        self.A_l = _readonly([np.nan if s.weibull_a is None else s.weibull_a for s in self.sectors])
        self.k_l = _readonly([np.nan if s.weibull_k is None else s.weibull_k for s in self.sectors])
        self.turbulence_intensity = turbulence_intensity
        self.air_density = air_density
        self.reference_height = reference_height
        self.shear_exponent = shear_exponent

    @property
    def has_weibull_l(self):
        return (self.A_l > 0) & (self.k_l > 0)

    @property
    def mean_wind_speed(self):
        """Frequency weighted mean speed at reference height. Sectors with Weibull
        parameters contribute their Weibull mean"""
        ws_l = np.where(self.has_weibull_l, weibull.mean(np.nan_to_num(self.A_l, nan=1),
                                                         np.nan_to_num(self.k_l, nan=1)), self.ws_l)
        return np.sum(self.P_l * ws_l)

    @property
    def dominant_direction(self):
        return self.wd_l[np.argmax(self.P_l)]

    def shear_factor(self, h):
        """Power law speed-up factor from reference height to height(s) h"""
        if self.reference_height is None:
            return np.ones_like(np.asarray(h, dtype=float))
        return (np.asarray(h, dtype=float) / self.reference_height) ** self.shear_exponent

    @classmethod
    def from_dict(cls, d):
        sectors = d.get('sectors', d.get('wind_rose', d.get('windRose')))
        return cls(sectors,
                   turbulence_intensity=d.get('turbulence_intensity', d.get('turbulenceIntensity', .1)),
                   air_density=d.get('air_density', d.get('airDensity', 1.225)),
                   reference_height=d.get('reference_height', d.get('referenceHeight')),
                   shear_exponent=d.get('shear_exponent', d.get('windShearExponent', .143)))


class TerrainGrid():
    def __init__(self, elevation, resolution, origin=(0, 0), roughness=None):
        """
        Parameters
        ----------
        elevation : array_like
            Elevation [m], shape (ny, nx)
        resolution : float
            Grid spacing [m]
        origin : (float, float)
            Coordinate of elevation[0, 0]
        roughness : array_like, optional
            Surface roughness length [m], same shape as elevation
        """
        self.elevation = _readonly(elevation)
        if self.elevation.ndim != 2:
            raise ValueError("elevation must be a 2d array")
        self.resolution = float(resolution)
        self.origin = tuple(origin)
        ny, nx = self.elevation.shape
        self.x = _readonly(self.origin[0] + np.arange(nx) * self.resolution)
        self.y = _readonly(self.origin[1] + np.arange(ny) * self.resolution)
        self.roughness = None if roughness is None else _readonly(roughness)
        self._interpolator = RegularGridInterpolator((self.y, self.x), self.elevation)

    def elevation_at(self, x, y):
        """Bilinear interpolated elevation, points outside the grid take the value of the nearest edge"""
        x = np.clip(x, self.x[0], self.x[-1])
        y = np.clip(y, self.y[0], self.y[-1])
        return self._interpolator(np.array([y, x]).T)

    def slope(self):
        """Terrain slope [deg]"""
        if min(self.elevation.shape) < 2:
            return np.zeros(self.elevation.shape)
        dz_dy, dz_dx = np.gradient(self.elevation, self.resolution)
        return np.rad2deg(np.arctan(np.hypot(dz_dx, dz_dy)))

    def to_dataarray(self):
        return xr.DataArray(self.elevation, dims=['y', 'x'], coords={'x': self.x, 'y': self.y},
                            attrs={'description': 'Elevation [m]'})


class EnvironmentalConstraint():
    def __init__(self, type, geometry, severity='medium', radius=None):
        """Restricted zone

        Parameters
        ----------
        type : str
            E.g. 'wildlife_corridor', 'bird_migration', 'noise_sensitive', 'visual_impact',
            'archaeological' or 'wetland'
        geometry : shapely geometry or array_like
            Zone geometry. A single (x,y) point together with radius defines a circle,
            a list of points defines a polygon
        severity : {'low', 'medium', 'high', 'critical'}
        radius : float, optional
            Radius of circular zones [m]
        """
        if severity not in SEVERITIES:
            raise ValueError(f"severity must be one of {SEVERITIES}, got '{severity}'")
        self.type = type
        self.severity = severity
        if not hasattr(geometry, 'geom_type'):
            coords = np.atleast_2d(geometry)
            if len(coords) == 1:
                geometry = Point(coords[0]).buffer(radius or 0)
            else:
                geometry = Polygon(coords)
        self.geometry = geometry
        self.radius = radius

    @property
    def centroid(self):
        c = self.geometry.centroid
        return c.x, c.y

    @property
    def is_exclusion(self):
        return self.severity in ('high', 'critical')

    def contains(self, x, y):
        return shapely.intersects_xy(self.geometry, np.asarray(x, dtype=float), np.asarray(y, dtype=float))

    def distance(self, x, y):
        return shapely.distance(self.geometry, shapely.points(np.asarray(x, dtype=float), np.asarray(y, dtype=float)))

    @classmethod
    def from_dict(cls, d):
        g = d.get('geometry', d)
        return cls(d['type'], g.get('coordinates'), severity=d.get('severity', 'medium'), radius=g.get('radius'))


class Site():
    def __init__(self, boundary, wind_resource, terrain=None, environmental_constraints=(), receptors=(),
                 viewpoints=(), name=''):
        """Candidate wind farm area

        Parameters
        ----------
        boundary : shapely Polygon or array_like
            Site boundary in planar coordinates [m]
        wind_resource : WindResource
        terrain : TerrainGrid, optional
            If None, the terrain is flat at elevation 0
        environmental_constraints : list of EnvironmentalConstraint, optional
        receptors : array_like, optional
            (n,2) positions of noise receptors (dwellings)
        viewpoints : list, optional
            (x, y, importance) tuples of visual impact viewpoints, importance in {'low', 'medium', 'high'}
        name : str, optional
        """
        if not hasattr(boundary, 'geom_type'):
            boundary = Polygon(boundary)
        if boundary.is_empty or boundary.area <= 0:
            raise ValueError("Site boundary must be a polygon with positive area")
        self.boundary = boundary
        self.wind_resource = wind_resource
        self.terrain = terrain
        self.environmental_constraints = tuple(environmental_constraints)
        self.receptors = _readonly(np.reshape(receptors, (-1, 2)))
        self.viewpoints = tuple(viewpoints)
        self.name = name

    @classmethod
    def rectangle(cls, width, height, wind_resource, origin=(0, 0), **kwargs):
        x0, y0 = origin
        return cls(box(x0, y0, x0 + width, y0 + height), wind_resource, **kwargs)

    @property
    def bounds(self):
        """xmin, ymin, xmax, ymax"""
        return self.boundary.bounds

    @property
    def area(self):
        return self.boundary.area

    def contains(self, x, y):
        """True for points inside or on the boundary"""
        return shapely.intersects_xy(self.boundary, np.asarray(x, dtype=float), np.asarray(y, dtype=float))

    def clip(self, x, y):
        """Clamp coordinates to the bounding box of the boundary"""
        xmin, ymin, xmax, ymax = self.bounds
        return np.clip(x, xmin, xmax), np.clip(y, ymin, ymax)

    def elevation(self, x, y):
        if self.terrain is None:
            return np.zeros(np.shape(x))
        return self.terrain.elevation_at(x, y)

    def noise_receptors(self):
        """Explicit receptors plus the centroids of noise sensitive zones"""
        pts = [tuple(r) for r in self.receptors]
        pts += [c.centroid for c in self.environmental_constraints if c.type == 'noise_sensitive']
        return np.reshape(pts, (-1, 2))

    def visual_viewpoints(self):
        """(n,3) array of x, y and weight. Zones of type 'visual_impact' are viewpoints at
        their centroid with weight 2 when high or critical"""
        vps = [(x, y, 2. if importance == 'high' else 1.) for x, y, importance in self.viewpoints]
        vps += [c.centroid + ((1., 2.)[c.is_exclusion],) for c in self.environmental_constraints
                if c.type == 'visual_impact']
        return np.reshape(vps, (-1, 3))

    def grid(self, resolution=None):
        """x and y coordinates of a map grid covering the site. Defaults to the terrain
        grid if present, otherwise ~50 cells per side"""
        xmin, ymin, xmax, ymax = self.bounds
        if resolution is None and self.terrain is not None:
            return self.terrain.x, self.terrain.y
        resolution = resolution or max(xmax - xmin, ymax - ymin) / 50
        return (np.arange(xmin, xmax + resolution / 2, resolution),
                np.arange(ymin, ymax + resolution / 2, resolution))
