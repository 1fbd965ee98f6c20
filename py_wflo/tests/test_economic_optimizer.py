import numpy as np
import pytest
from py_wflo.economic_optimizer import EconomicOptimizer, EconomicParameters, SENSITIVITY_PARAMETERS
from py_wflo.examples.data.reference_farm import V80
from py_wflo.layout import Layout, EnergyProduction
from py_wflo.site import Site, WindResource, WindSector
from py_wflo.wind_turbines import GenericTurbineSpecification
from py_wflo.tests import npt


@pytest.fixture
def eo():
    return EconomicOptimizer()


def test_npv(eo):
    npt.assert_almost_equal(eo.calculate_npv([100, 100, 100], .1, 250), -250 + 100 / 1.1 + 100 / 1.21 + 100 / 1.331)
    npt.assert_almost_equal(eo.calculate_npv([100, 100, 100], .1, 250), -1.3148, 4)
    assert eo.calculate_npv([110], .1, 100) == pytest.approx(0)


def test_irr(eo):
    irr, converged = eo.calculate_irr([110], 100)
    assert converged
    npt.assert_almost_equal(irr, .1, 4)
    irr, converged = eo.calculate_irr([100, 100, 100], 250)
    assert converged
    npt.assert_almost_equal(eo.calculate_npv([100, 100, 100], irr, 250), 0, 2)


def test_irr_not_converged(eo):
    irr, converged = eo.calculate_irr([1, 1], 100, maxiter=3)
    assert not converged
    with pytest.warns(RuntimeWarning, match="IRR did not converge"):
        eo.calculate_irr([1, 1], 100, maxiter=3, warn=True)


def test_payback_period(eo):
    assert eo.calculate_payback_period([100, 100, 100], 250) == 2.5
    assert eo.calculate_payback_period([100, 100, 100], 100) == 1
    assert eo.calculate_payback_period([10, 10], 100) == 2


def test_capital_and_operational_cost(eo):
    npt.assert_almost_equal(eo.capital_cost(10), 10 * 1.2e6 * 1.3 + 10 * 1e5)
    npt.assert_almost_equal(eo.operational_cost(10), 4e5)


def test_cash_flows():
    params = EconomicParameters(inflation_rate=0, tax_rate=0, degradation=0, project_life=3)
    eo = EconomicOptimizer(params)
    npt.assert_array_almost_equal(eo.cash_flows(1000, 1), [1000 * 50 - 4e4] * 3)

    params = params.replace(tax_rate=.5)
    capex = eo.capital_cost(1, params)
    ebit = 100000 * 50 - 4e4 - capex / 3
    npt.assert_array_almost_equal(eo.cash_flows(100000, 1, params), [ebit * .5 + capex / 3] * 3)


def test_no_tax_on_losses():
    params = EconomicParameters(inflation_rate=0, tax_rate=.5, degradation=0, project_life=2)
    eo = EconomicOptimizer(params)
    npt.assert_array_almost_equal(eo.cash_flows(100, 1), [100 * 50 - 4e4] * 2)


def test_degradation_and_inflation():
    params = EconomicParameters(inflation_rate=.1, tax_rate=0, degradation=.5, project_life=2,
                                operational_cost_per_mw_year=0)
    cf = EconomicOptimizer(params).cash_flows(1000, 1)
    npt.assert_array_almost_equal(cf, [50000, 50000 * .5 * 1.1])


def test_lcoe(eo):
    npt.assert_almost_equal(eo.calculate_lcoe(100, 0, 10, 0, project_life=10, degradation=0), 1)
    assert eo.calculate_lcoe(100, 10, 0, .08) == np.inf
    lcoe = eo.calculate_lcoe(eo.capital_cost(10), eo.operational_cost(10), 10 * 8760 * .35, .08)
    assert 30 < lcoe < 100


def test_calculate_metrics(eo):
    m = eo.calculate_metrics(10 * 8760 * .35, 10)
    assert m.lcoe > 0
    assert m.capital_cost == eo.capital_cost(10)
    assert len(m.cash_flows) == 25
    npt.assert_almost_equal(m.npv, eo.calculate_npv(m.cash_flows, .08, m.capital_cost))
    npt.assert_almost_equal(m.profitability_index, (m.npv + m.capital_cost) / m.capital_cost)
    assert m.irr_converged
    npt.assert_almost_equal(eo.calculate_npv(m.cash_flows, m.irr, m.capital_cost) / m.capital_cost, 0, 3)
    assert 0 < m.payback_period < 25


def test_npv_increases_with_price(eo):
    npv = [eo.calculate_metrics(30000, 10, eo.parameters.replace(electricity_price=p)).npv for p in [30, 50, 70, 90]]
    assert np.all(np.diff(npv) > 0)


def test_simple_economic_value(eo):
    params = EconomicParameters(discount_rate=0, project_life=10)
    capex = eo.capital_cost(1, params)
    margin = 1000 * 50 - 4e4
    npt.assert_almost_equal(eo.simple_economic_value(1000, 1, params), (10 * margin - capex) / capex)
    assert eo.simple_economic_value(40000, 10) > eo.simple_economic_value(20000, 10)


def test_evaluate(eo):
    layout = Layout([0, 500], [0, 0], V80())
    with pytest.raises(ValueError, match="no energy production"):
        eo.evaluate(layout)
    ep = EnergyProduction(aep=14000, gross_aep=15000, capacity_factor=40, wake_loss=6.7, aep_i=[7000, 7000],
                          capacity=4)
    npt.assert_almost_equal(eo.evaluate(layout.evaluated(ep)).npv, eo.calculate_metrics(14000, 4).npv)


def test_parameters_replace_and_from_dict():
    params = EconomicParameters.from_dict({'electricityPrice': 60, 'discountRate': .07, 'project_life': 20})
    assert (params.electricity_price, params.discount_rate, params.project_life) == (60, .07, 20)
    p2 = params.replace(electricity_price=70)
    assert p2.electricity_price == 70
    assert params.electricity_price == 60
    with pytest.raises(ValueError, match="Unknown economic parameter 'price'"):
        params.replace(price=1)


def test_sensitivity_analysis(eo):
    results = eo.sensitivity_analysis(10 * 8760 * .35, 10)
    assert list(results) == list(SENSITIVITY_PARAMETERS)
    price = results['electricity_price']
    npt.assert_array_almost_equal(price.values, 50 * np.arange(.5, 1.51, .1))
    assert price.slope > 0
    assert results['capital_cost'].slope < 0
    assert results['operational_cost'].slope < 0
    assert results['discount_rate'].slope < 0
    assert results['capacity_factor'].slope > 0
    npt.assert_almost_equal(results['capacity_factor'].base_value, 35)
    assert len(price.npv) == 11


def test_sensitivity_unknown_parameter(eo):
    with pytest.raises(ValueError, match="Unknown sensitivity parameter 'wind_speed'"):
        eo.sensitivity_analysis(30000, 10, parameters=['wind_speed'])


def test_risk_analysis(eo):
    risk, npv = eo.risk_analysis(10 * 8760 * .35, 10, n_trials=500, seed=1)
    assert len(npv) == 500 == risk.n_samples
    assert risk.worst_case <= risk.value_at_risk <= risk.percentiles[50] <= risk.best_case
    assert risk.expected_shortfall <= risk.value_at_risk
    assert 0 <= risk.probability_of_loss <= 1
    risk2, npv2 = eo.risk_analysis(10 * 8760 * .35, 10, n_trials=500, seed=1)
    npt.assert_array_equal(npv, npv2)


def test_scenario_analysis(eo):
    scenarios = eo.scenario_analysis(10 * 8760 * .35, 10)
    assert scenarios['pessimistic'].npv < scenarios['base'].npv < scenarios['optimistic'].npv
    assert scenarios['pessimistic'].lcoe > scenarios['base'].lcoe > scenarios['optimistic'].lcoe


def test_analyze_economics(eo):
    analysis = eo.analyze_economics(10 * 8760 * .35, 10, n_trials=50, seed=0)
    assert set(analysis) == {'base_case', 'sensitivity', 'risk', 'npv_samples', 'scenarios'}
    assert len(analysis['npv_samples']) == 50
    npt.assert_almost_equal(analysis['base_case'].npv, analysis['scenarios']['base'].npv)


def sheared_site():
    return Site.rectangle(2000, 2000, WindResource([WindSector(270, 1, 8)], reference_height=70))


def economic_row():
    return Layout(200 + np.arange(5) * 400., [1000] * 5, V80())


def test_upgrade_turbine(eo):
    generic = eo.upgrade_turbine(V80())
    assert generic.rated_power == 3
    npt.assert_almost_equal(generic.diameter, 80 * np.sqrt(1.5))
    assert generic.hub_height == 70
    big = GenericTurbineSpecification('G4', 4., 130, 110)
    medium = GenericTurbineSpecification('G3.6', 3.6, 120, 90)
    assert eo.upgrade_turbine(V80(), [V80(), big, medium]) is medium
    assert eo.upgrade_turbine(V80(), [V80()]) is None


def test_economic_recommendations(eo):
    catalog = [GenericTurbineSpecification('G3.6', 3.6, 120, 90)]
    recommendations = eo.economic_recommendations(economic_row(), sheared_site(), turbine_catalog=catalog)
    assert {r.type for r in recommendations} == {'turbine_upgrade', 'hub_height'}
    improvements = [r.npv_improvement for r in recommendations]
    assert improvements == sorted(improvements, reverse=True)
    upgrade, = [r for r in recommendations if r.type == 'turbine_upgrade']
    assert (upgrade.current_value, upgrade.recommended_value) == (2, 3.6)
    upgraded = eo.apply_economic_recommendation(economic_row(), upgrade)
    npt.assert_array_equal(upgraded.hub_height, [70] * 5)
    npt.assert_array_equal(upgraded.rated_power, [3.6] * 5)
    # a capital cost limit below the current design excludes every change
    assert eo.economic_recommendations(economic_row(), sheared_site(), turbine_catalog=catalog,
                                       constraints={'max_capital_cost': 1}) == []


def test_optimize_for_economic_value(eo):
    layout = economic_row()
    result = eo.optimize_for_economic_value(layout, sheared_site(), turbine_catalog=[])
    step, = result['steps']
    assert step['iteration'] == 1
    assert step['recommendation'] == 'Increase hub height to 100m'
    npt.assert_almost_equal(step['improvement'], step['npv_after'] - step['npv_before'])
    assert step['improvement'] > 1e5
    best = result['layout']
    npt.assert_array_equal(best.hub_height, [100] * 5)
    assert best.economic_metrics.npv == result['npv']
    npt.assert_almost_equal(result['economic_improvement'], result['npv'] - result['initial_npv'])
    npt.assert_almost_equal(result['economic_improvement'], step['improvement'])
    npt.assert_array_equal(layout.hub_height, [70] * 5)


def test_optimize_for_economic_value_stops(eo):
    result = eo.optimize_for_economic_value(economic_row(), sheared_site(), min_improvement=np.inf)
    assert result['steps'] == []
    assert result['economic_improvement'] == 0
    npt.assert_array_equal(result['layout'].hub_height, [70] * 5)
    result = eo.optimize_for_economic_value(economic_row(), sheared_site(), constraints={'max_lcoe': 0})
    assert result['steps'] == []
    with pytest.raises(ValueError, match="Unknown economic constraint"):
        eo.optimize_for_economic_value(economic_row(), sheared_site(), constraints={'max_npv': 1})
