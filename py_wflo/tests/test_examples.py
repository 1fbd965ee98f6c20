import pytest
from py_wflo.examples.data import example_data_path
from py_wflo.examples.data.farm_reader import read_farm_case, read_turbine
from py_wflo.optimization import Algorithm
from py_wflo.wind_turbines import GenericTurbineSpecification, TurbineSpecification
from py_wflo.tests import npt


@pytest.fixture(scope='module')
def case():
    return read_farm_case(example_data_path + 'reference_farm.yaml')


def test_site(case):
    site = case['site']
    assert site.name == 'reference'
    assert site.area == 6e6
    assert len(site.wind_resource.sectors) == 8
    assert site.wind_resource.dominant_direction == 270
    assert [c.type for c in site.environmental_constraints] == ['bird_migration', 'noise_sensitive']
    npt.assert_array_almost_equal(site.noise_receptors(), [[-900, 500], [3800, 1000]], 3)
    npt.assert_array_equal(site.visual_viewpoints(), [[1500, -2500, 2]])


def test_turbines(case):
    turbine, = case['turbine_specs']
    assert isinstance(turbine, GenericTurbineSpecification)
    assert (turbine.name, turbine.rated_power, turbine.diameter, turbine.hub_height) == ('G3', 3, 100, 100)


def test_parameters_and_objectives(case):
    params = case['parameters']
    assert params.value('turbine.turbine_count') == 10
    assert params['turbine.turbine_count'].upper == 20
    npt.assert_almost_equal(params.economic_parameters().discount_rate, .07)
    assert params.economic_parameters().electricity_price == 55
    objectives = case['objectives']
    assert (objectives.max_noise_level, objectives.min_spacing) == (45, 300)
    assert objectives.weights['energy_production'] == .4
    assert objectives.weights['wildlife'] == 0


def test_settings_and_species(case):
    settings = case['settings']
    assert settings.algorithm == Algorithm.GENETIC
    assert (settings.population_size, settings.max_generations, settings.seed) == (20, 30, 1)
    crane, = case['environmental_model'].species
    assert (crane.name, crane.flight_height, crane.maneuverability) == ('common crane', 120, 'low')


def test_read_turbine_with_power_curve():
    turbine = read_turbine({'name': 'T1', 'rated_power': 2, 'diameter': 80, 'hub_height': 70,
                            'power_curve': [[4, 0.1], [15, 2]], 'ct_curve': [[4, .8], [15, .3]]})
    assert type(turbine) is TurbineSpecification
