import numpy as np
import pytest
from py_wflo.site import Site, WindResource, WindSector, TerrainGrid, EnvironmentalConstraint, TerrainSuitability
from py_wflo.site.distance import StraightDistance
from py_wflo.site.suitability import local_maxima
from py_wflo.tests import npt


def west_wind():
    return WindResource([WindSector(270, 1, 8)])


def test_wind_resource_normalizes_frequencies():
    wr = WindResource([WindSector(0, 2, 8), WindSector(90, 6, 9), WindSector(180, 2, 10)])
    npt.assert_array_almost_equal(wr.P_l, [.2, .6, .2])
    assert wr.dominant_direction == 90
    npt.assert_almost_equal(wr.mean_wind_speed, 9)


def test_wind_resource_invalid():
    with pytest.raises(ValueError, match="Wind rose must contain at least one element"):
        WindResource([])
    with pytest.raises(ValueError, match="sum to zero"):
        WindResource([WindSector(0, 0, 8)])
    with pytest.raises(ValueError, match="non-negative"):
        WindSector(0, -1, 8)


def test_sector_from_dict():
    s = WindSector.from_dict({'direction': 370, 'frequency': .5, 'meanSpeed': 7, 'weibullA': 8, 'weibullK': 2})
    assert s.direction == 10
    assert (s.mean_speed, s.weibull_a, s.weibull_k) == (7, 8, 2)


def test_shear_factor():
    wr = WindResource([WindSector(270, 1, 8)], reference_height=100, shear_exponent=.2)
    npt.assert_array_almost_equal(wr.shear_factor([100, 200]), [1, 2**.2])
    npt.assert_array_equal(west_wind().shear_factor([50, 100]), [1, 1])


def test_site_geometry():
    site = Site.rectangle(2000, 1000, west_wind())
    assert site.bounds == (0, 0, 2000, 1000)
    assert site.area == 2e6
    npt.assert_array_equal(site.contains([0, 1000, 2001], [0, 500, 500]), [True, True, False])
    x, y = site.clip([-10, 2500], [500, 1200])
    npt.assert_array_equal(x, [0, 2000])
    npt.assert_array_equal(y, [500, 1000])


def test_site_invalid_boundary():
    with pytest.raises(ValueError, match="positive area"):
        Site([(0, 0), (1, 1), (2, 2)], west_wind())


def test_terrain_elevation():
    terrain = TerrainGrid([[0, 10], [20, 30]], resolution=100)
    site = Site.rectangle(100, 100, west_wind(), terrain=terrain)
    npt.assert_array_almost_equal(site.elevation([0, 100, 50, 200], [0, 0, 50, 100]), [0, 10, 15, 30])
    npt.assert_array_equal(Site.rectangle(100, 100, west_wind()).elevation([1, 2], [3, 4]), [0, 0])


def test_terrain_slope():
    terrain = TerrainGrid(np.array([[0, 10, 20]] * 3), resolution=10)
    npt.assert_array_almost_equal(terrain.slope(), 45)
    da = terrain.to_dataarray()
    npt.assert_array_equal(da.x, [0, 10, 20])


def test_environmental_constraint():
    c = EnvironmentalConstraint('wetland', (500, 500), 'critical', radius=100)
    npt.assert_array_equal(c.contains([500, 550, 700], [500, 500, 500]), [True, True, False])
    npt.assert_array_almost_equal(c.distance([700], [500]), [100], 1)
    assert c.is_exclusion
    assert not EnvironmentalConstraint('wetland', (0, 0), 'medium', radius=1).is_exclusion
    with pytest.raises(ValueError, match="severity must be one of"):
        EnvironmentalConstraint('wetland', (0, 0), 'extreme', radius=1)


def test_receptors_and_viewpoints():
    site = Site.rectangle(1000, 1000, west_wind(), receptors=[(1500, 500)], viewpoints=[(0, -500, 'high')],
                          environmental_constraints=[
                              EnvironmentalConstraint('noise_sensitive', [(0, 2000), (100, 2000), (100, 2100),
                                                                          (0, 2100)]),
                              EnvironmentalConstraint('visual_impact', (3000, 0), 'low', radius=10)])
    npt.assert_array_almost_equal(site.noise_receptors(), [[1500, 500], [50, 2050]])
    npt.assert_array_almost_equal(site.visual_viewpoints(), [[0, -500, 2], [3000, 0, 1]])


def test_straight_distance():
    dw_ijl, cw_ijl = StraightDistance()([0, 100], [0, 0], [270, 0])
    # westerly wind: turbine 1 is 100m downstream of turbine 0
    npt.assert_array_almost_equal(dw_ijl[0, 1], [100, 0])
    npt.assert_array_almost_equal(dw_ijl[1, 0], [-100, 0])
    npt.assert_array_almost_equal(np.abs(cw_ijl[0, 1]), [0, 100])


def test_suitability_flat_site():
    site = Site.rectangle(1000, 1000, west_wind(),
                          environmental_constraints=[EnvironmentalConstraint('wetland', (500, 500), 'high',
                                                                             radius=150)])
    suitability = TerrainSuitability(resolution=100)(site)
    assert suitability.dims == ('y', 'x')
    assert suitability.sel(x=500, y=500) == 0
    assert suitability.sel(x=0, y=0) == 1
    assert suitability.max() <= 1


def test_suitability_medium_zone():
    site = Site.rectangle(1000, 1000, west_wind(),
                          environmental_constraints=[EnvironmentalConstraint('wetland', (500, 500), 'medium',
                                                                             radius=150)])
    suitability = TerrainSuitability(resolution=100, medium_severity_factor=.4)(site)
    npt.assert_almost_equal(suitability.sel(x=500, y=500), .4)


def test_local_maxima():
    terrain = TerrainGrid([[0, 0, 0, 0, 0],
                           [0, 5, 0, 0, 0],
                           [0, 0, 0, 0, 0],
                           [0, 0, 0, 9, 0],
                           [0, 0, 0, 0, 0]], resolution=10)
    x, y, v = local_maxima(terrain.to_dataarray(), threshold=1)
    npt.assert_array_equal(x, [30, 10])
    npt.assert_array_equal(y, [30, 10])
    npt.assert_array_equal(v, [9, 5])
