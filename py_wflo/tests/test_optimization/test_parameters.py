import pytest
from py_wflo.optimization import OptimizationParameters, ParameterBounds, Objectives, OptimizationSettings, \
    Algorithm
from py_wflo.optimization.parameters import noise_limit
from py_wflo.tests import npt


def test_default_parameters():
    params = OptimizationParameters()
    assert params.value('site.turbine_spacing') == 5
    assert params.value('turbine.hub_height') is None
    assert 'economic.discount_rate' in params
    ep = params.economic_parameters()
    npt.assert_almost_equal(ep.discount_rate, .08)
    assert ep.electricity_price == 50


def test_parameters_from_nested_dict():
    params = OptimizationParameters.from_dict({
        'site': {'turbineSpacing': {'min': 4, 'max': 8, 'current': 6}},
        'economic.discount_rate': (3, 12, 7),
        'turbine': {'hubHeight': {'min': 80, 'max': 120}}})
    assert params.value('site.turbine_spacing') == 6
    assert params['site.turbine_spacing'].lower == 4
    assert params.value('economic.discount_rate') == 7
    assert params.value('turbine.hub_height') == 100
    assert params.value('layout.grid_angle') == 0


def test_with_value_is_clipped_copy():
    params = OptimizationParameters()
    p2 = params.with_value('layout.grid_angle', 120)
    assert p2.value('layout.grid_angle') == 90
    assert params.value('layout.grid_angle') == 0


def test_parameter_bounds():
    with pytest.raises(ValueError, match="Invalid bounds for parameter"):
        ParameterBounds(5, 3)
    with pytest.warns(UserWarning, match="outside"):
        assert ParameterBounds(0, 1, 2).current == 1
    assert ParameterBounds.from_dict({'lower': 0, 'upper': 4}).current == 2


def test_objectives_from_dict():
    objectives = Objectives.from_dict({'maximizeEnergyProduction': .5, 'minimizeLCOE': .3,
                                       'minimizeNoiseImpact': {'weight': .2, 'maxNoiseLevel': 40, 'target': 35},
                                       'constraints': {'minSpacing': 400}})
    assert objectives.weights == {'energy_production': .5, 'wake_loss': 0, 'npv': .3, 'noise': .2, 'visual': 0,
                                  'wildlife': 0}
    assert objectives.max_noise_level == 40
    assert objectives.min_spacing == 400
    assert objectives.targets == {'noise': 35}


def test_objectives_invalid():
    with pytest.raises(ValueError, match="Unknown objective 'maximizeHappiness'"):
        Objectives.from_dict({'maximizeHappiness': 1})
    with pytest.raises(ValueError, match="Unknown constraint"):
        Objectives.from_dict({'npv': 1, 'constraints': {'maxHeight': 200}})


def test_settings():
    settings = OptimizationSettings.from_dict({'algorithm': 'pso', 'populationSize': 10, 'maxGenerations': 5})
    assert settings.algorithm == Algorithm.PARTICLE_SWARM
    assert (settings.population_size, settings.max_generations) == (10, 5)
    assert OptimizationSettings('gradient_based').algorithm == Algorithm.GRADIENT
    assert OptimizationSettings('GA').algorithm == Algorithm.GENETIC


def test_settings_invalid():
    with pytest.raises(ValueError, match="Unknown optimization algorithm 'annealing'"):
        OptimizationSettings('annealing')
    with pytest.raises(ValueError, match="population_size must be at least 2"):
        OptimizationSettings(population_size=1)
    with pytest.raises(ValueError, match="max_generations must be at least 1"):
        OptimizationSettings(max_generations=0)
    with pytest.raises(ValueError, match="Input, crossover_rate, with value, 1.5 outside range 0-1"):
        OptimizationSettings(crossover_rate=1.5)


def test_explicit_parameters_and_noise_limit():
    params = OptimizationParameters.from_dict({'environmental': {'noiseLimit': {'min': 35, 'max': 55,
                                                                                'current': 50}}})
    assert params.explicit == {'environmental.noise_limit'}
    assert noise_limit(params, Objectives(max_noise_level=40)) == 50
    default = OptimizationParameters()
    assert default.explicit == set()
    assert noise_limit(default, Objectives(max_noise_level=40)) == 40
    assert noise_limit(None, Objectives()) == 45
    swept = default.with_value('environmental.noise_limit', 60)
    assert swept.explicit == {'environmental.noise_limit'}
    assert noise_limit(swept, Objectives(max_noise_level=40)) == 55
    assert default.explicit == set()
