import numpy as np
import pytest
from py_wflo.environmental_models import EnvironmentalImpactModel, Species, significance
from py_wflo.examples.data.reference_farm import V80, ReferenceSite, reference_layout
from py_wflo.layout import Layout
from py_wflo.site import Site, WindResource, WindSector, EnvironmentalConstraint
from py_wflo.tests import npt


def site(**kwargs):
    return Site.rectangle(2000, 2000, WindResource([WindSector(270, 1, 8)]), **kwargs)


def test_noise_single_turbine():
    model = EnvironmentalImpactModel()
    layout = Layout([0], [0], V80())
    npt.assert_array_almost_equal(model.noise_levels(layout, [(100, 0), (1000, 0)]), [105 - 40 - 8, 105 - 60 - 8])


def test_noise_energetic_sum():
    model = EnvironmentalImpactModel()
    layout = Layout([0, 0], [100, -100], V80())
    level = model.noise_levels(layout, [(0, 0)])
    npt.assert_array_almost_equal(level, [57 + 10 * np.log10(2)])
    npt.assert_array_almost_equal(model.turbine_noise_levels(layout, [(0, 0)]), [[57], [57]])


def test_noise_impact():
    model = EnvironmentalImpactModel()
    layout = Layout([0], [0], V80())
    score, max_level, affected = model.noise_impact(layout, site(receptors=[(100, 0), (1000, 0), (3000, 0)]))
    npt.assert_almost_equal(max_level, 57)
    assert score == 100
    assert affected == 1
    assert model.noise_impact(layout, site()) == (0., 0., 0)


def test_visual_impact():
    model = EnvironmentalImpactModel()
    layout = Layout([0], [0], V80())
    assert model.visual_impact(layout, site()) == 0
    d = 1000.
    expected = (1 - d / 5000) * np.rad2deg(np.arctan(110 / d))
    npt.assert_almost_equal(model.visual_impact(layout, site(viewpoints=[(d, 0, 'low')])), expected)
    npt.assert_almost_equal(model.visual_impact(layout, site(viewpoints=[(d, 0, 'high')])), 2 * expected)
    assert model.visual_impact(layout, site(viewpoints=[(6000, 0, 'high')])) == 0


def test_species_collision_risk():
    crane = Species('crane', flight_height=100, maneuverability='low', nocturnal=True,
                    conservation_status='endangered')
    npt.assert_array_almost_equal(crane.collision_risk([70, 200], [80, 80]), [1.5 * 1.2 * 2, 0])
    assert Species('bat', 'bat', flight_height=60).collision_risk(70, 80) == 1
    assert Species('deer', 'mammal', flight_height=1).collision_risk(70, 80) == 0
    assert Species('unknown').collision_risk(70, 80) == 0


def test_species_from_dict():
    s = Species.from_dict({'name': 'crane', 'conservationStatus': 'endangered',
                           'flightBehavior': {'typicalFlightHeight': 120, 'maneuverability': 'low',
                                              'nocturnal': True}})
    assert (s.flight_height, s.maneuverability, s.nocturnal, s.conservation_status) == \
        (120, 'low', True, 'endangered')


def test_wildlife_impact():
    layout = Layout([0, 1000], [0, 0], V80())
    score, collision_risk, habitat_loss = EnvironmentalImpactModel().wildlife_impact(layout, site())
    assert (score, collision_risk, habitat_loss) == (.5, 0, 1)

    model = EnvironmentalImpactModel(species=[Species('crane', flight_height=70)])
    zone = EnvironmentalConstraint('bird_migration', (1050, 0), 'critical', radius=10)
    score, collision_risk, habitat_loss = model.wildlife_impact(layout, site(environmental_constraints=[zone]))
    npt.assert_almost_equal(collision_risk, (1 + 1 + 2) / 2)
    npt.assert_almost_equal(score, 2 * 20 + .5)


def test_zone_intrusions():
    zones = [EnvironmentalConstraint('archaeological', (0, 0), 'high', radius=50),
             EnvironmentalConstraint('wetland', (0, 0), 'critical', radius=50),
             EnvironmentalConstraint('wetland', (1000, 0), 'medium', radius=50)]
    layout = Layout([0, 1000], [0, 0], V80())
    intrusions = EnvironmentalImpactModel().zone_intrusions(layout, site(environmental_constraints=zones))
    assert intrusions == {'turbine-1': ['archaeological', 'wetland']}


def test_overall_score():
    model = EnvironmentalImpactModel()
    npt.assert_almost_equal(model.overall_score({'noise': 60, 'visual': 0, 'wildlife': 0}), 60 * .2 / .6)
    assert EnvironmentalImpactModel(weights={}).overall_score({'noise': 60}) == 0


def test_significance():
    assert [significance(s) for s in [0, 10, 30, 60, 80]] == ['negligible', 'minor', 'moderate', 'major', 'severe']


def test_impact_assessment():
    impact = EnvironmentalImpactModel()(reference_layout(), ReferenceSite())
    for score in [impact.noise_score, impact.visual_score, impact.wildlife_score, impact.overall_score]:
        assert 0 <= score <= 100
    assert impact.max_noise_level > 0
    assert impact.habitat_loss == 8
    assert set(impact.significance) == {'noise', 'visual', 'wildlife'}
    # north-west turbine inside the bird migration corridor
    assert impact.zone_intrusions == {'turbine-13': ['bird_migration']}
