import copy
from warnings import catch_warnings, filterwarnings
import warnings
import numpy as np
from scipy.optimize import newton
from py_wflo.utils.statistics import box_muller, risk_metrics, sensitivity
from py_wflo.wake_effect_modeler import WakeEffectModeler
from py_wflo.wind_turbines import GenericTurbineSpecification

SENSITIVITY_PARAMETERS = ('electricity_price', 'capital_cost', 'capacity_factor', 'discount_rate',
                          'operational_cost')

# Turbines below this rated power [MW] and hub height [m] get upgrade recommendations
UPGRADE_RATED_POWER = 3.
MIN_HUB_HEIGHT = 100.
ECONOMIC_CONSTRAINTS = ('max_capital_cost', 'min_irr', 'max_payback_period', 'max_lcoe')

_CAMEL_CASE_KEYS = {'turbineCostPerMW': 'turbine_cost_per_mw',
                    'balanceOfSystemMultiplier': 'balance_of_system_multiplier',
                    'developmentCostPerMW': 'development_cost_per_mw',
                    'operationalCostPerMWPerYear': 'operational_cost_per_mw_year',
                    'electricityPrice': 'electricity_price',
                    'discountRate': 'discount_rate',
                    'inflationRate': 'inflation_rate',
                    'taxRate': 'tax_rate',
                    'projectLife': 'project_life'}


class EconomicParameters():
    def __init__(self, turbine_cost_per_mw=1.2e6, balance_of_system_multiplier=.3, development_cost_per_mw=1e5,
                 operational_cost_per_mw_year=4e4, electricity_price=50., discount_rate=.08, inflation_rate=.025,
                 tax_rate=.25, project_life=25, degradation=.005):
        """
        Parameters
        ----------
        turbine_cost_per_mw : float
            Turbine cost [USD/MW]
        balance_of_system_multiplier : float
            Balance of system cost as fraction of turbine cost
        development_cost_per_mw : float
            [USD/MW]
        operational_cost_per_mw_year : float
            Operation and maintenance cost [USD/MW/year]
        electricity_price : float
            [USD/MWh]
        discount_rate, inflation_rate, tax_rate : float
            Fractions, e.g. 0.08
        project_life : int
            [years]
        degradation : float
            Annual energy production degradation (fraction)
        """
        self.turbine_cost_per_mw = turbine_cost_per_mw
        self.balance_of_system_multiplier = balance_of_system_multiplier
        self.development_cost_per_mw = development_cost_per_mw
        self.operational_cost_per_mw_year = operational_cost_per_mw_year
        self.electricity_price = electricity_price
        self.discount_rate = discount_rate
        self.inflation_rate = inflation_rate
        self.tax_rate = tax_rate
        self.project_life = int(project_life)
        self.degradation = degradation

    def replace(self, **kwargs):
        """Copy with some parameters changed"""
        params = copy.copy(self)
        for k, v in kwargs.items():
            if not hasattr(params, k):
                raise ValueError(f"Unknown economic parameter '{k}'")
            setattr(params, k, v)
        return params

    @classmethod
    def from_dict(cls, d):
        return cls(**{_CAMEL_CASE_KEYS.get(k, k): v for k, v in d.items()})


class EconomicMetrics():
    def __init__(self, capital_cost, operational_cost, lcoe, npv, irr, irr_converged, payback_period,
                 profitability_index, cash_flows):
        """
        Parameters
        ----------
        capital_cost : float
            [USD]
        operational_cost : float
            First year operation and maintenance cost [USD/year]
        lcoe : float
            Levelized cost of energy [USD/MWh]
        npv : float
            Net present value [USD]
        irr : float
            Internal rate of return. Last Newton-Raphson estimate if irr_converged is False
        irr_converged : bool
        payback_period : float
            [years], project life if the investment is not paid back
        profitability_index : float
            (npv + capital_cost) / capital_cost
        cash_flows : array_like
            After tax cash flow of year 1..project_life [USD]
        """
        self.capital_cost = capital_cost
        self.operational_cost = operational_cost
        self.lcoe = lcoe
        self.npv = npv
        self.irr = irr
        self.irr_converged = irr_converged
        self.payback_period = payback_period
        self.profitability_index = profitability_index
        self.cash_flows = cash_flows

    def __repr__(self):
        return "EconomicMetrics(npv=%.4g, lcoe=%.2f, irr=%.4f, payback=%.1f)" % (
            self.npv, self.lcoe, self.irr, self.payback_period)


class SensitivityResult():
    def __init__(self, parameter, base_value, values, metrics, slope, elasticity):
        self.parameter = parameter
        self.base_value = base_value
        self.values = values
        self.metrics = metrics
        self.slope = slope
        self.elasticity = elasticity

    @property
    def npv(self):
        return np.array([m.npv for m in self.metrics])


class EconomicRecommendation():
    def __init__(self, type, description, current_value, recommended_value, npv_improvement=0., turbine=None):
        """
        Parameters
        ----------
        type : {'turbine_upgrade', 'hub_height'}
        description : str
        current_value, recommended_value : float
            Rated power [MW] or hub height [m]
        npv_improvement : float
            NPV of the modified layout minus NPV of the current layout [USD]
        turbine : TurbineSpecification, optional
            Replacement turbine of a turbine upgrade
        """
        self.type = type
        self.description = description
        self.current_value = current_value
        self.recommended_value = recommended_value
        self.npv_improvement = npv_improvement
        self.turbine = turbine

    def __repr__(self):
        return "EconomicRecommendation(%s, %.4g -> %.4g, npv_improvement=%.4g)" % (
            self.type, self.current_value, self.recommended_value, self.npv_improvement)


class EconomicOptimizer():
    """Discounted cash flow model of a wind farm

    All methods are pure functions of their arguments. Energy is in MWh, capacity in MW
    and money in USD.
    """

    def __init__(self, parameters=None, factors=np.round(np.arange(.5, 1.51, .1), 10)):
        """
        Parameters
        ----------
        parameters : EconomicParameters, optional
            Default parameters used when a method is called without parameters
        factors : array_like, optional
            Multipliers of the base value used in the sensitivity analysis
        """
        self.parameters = parameters or EconomicParameters()
        self.factors = factors

    def capital_cost(self, capacity, params=None):
        params = params or self.parameters
        turbine_cost = capacity * params.turbine_cost_per_mw
        return turbine_cost * (1 + params.balance_of_system_multiplier) + capacity * params.development_cost_per_mw

    def operational_cost(self, capacity, params=None):
        params = params or self.parameters
        return capacity * params.operational_cost_per_mw_year

    def cash_flows(self, annual_energy, capacity, params=None):
        """After tax cash flows of year 1..project_life

        Energy degrades, revenue and operational cost are inflated, depreciation is
        straight-line over the project life and negative taxable income is not taxed.
        """
        params = params or self.parameters
        capex = self.capital_cost(capacity, params)
        year = np.arange(1, params.project_life + 1)
        energy = annual_energy * (1 - params.degradation)**(year - 1)
        inflation = (1 + params.inflation_rate)**(year - 1)
        revenue = energy * params.electricity_price * inflation
        opex = self.operational_cost(capacity, params) * inflation
        depreciation = capex / params.project_life
        ebit = revenue - opex - depreciation
        tax = np.maximum(0, ebit * params.tax_rate)
        return ebit - tax + depreciation

    def calculate_lcoe(self, capital_cost, operational_cost, annual_energy, discount_rate, project_life=25,
                       degradation=.005):
        """Levelized cost of energy [USD/MWh]

        Present value of capital and (uninflated) operational cost divided by present
        value of the degrading energy production
        """
        year = np.arange(1, project_life + 1)
        discount = (1 + discount_rate)**-year
        pv_costs = capital_cost + np.sum(operational_cost * discount)
        pv_energy = np.sum(annual_energy * (1 - degradation)**(year - 1) * discount)
        if pv_energy <= 0:
            return np.inf
        return pv_costs / pv_energy

    def calculate_npv(self, cash_flows, discount_rate, initial_investment):
        """Net present value of cash flows received at the end of year 1, 2, ..."""
        cash_flows = np.asarray(cash_flows, dtype=float)
        year = np.arange(1, len(cash_flows) + 1)
        return -initial_investment + np.sum(cash_flows / (1 + discount_rate)**year)

    def calculate_irr(self, cash_flows, initial_investment, x0=.1, tol=1e-4, maxiter=100, warn=False):
        """Internal rate of return by Newton-Raphson iteration

        Returns
        -------
        irr : float
            Rate where the net present value is zero. If the iteration does not
            converge, the last estimate is returned
        converged : bool
        """
        cf = np.r_[-initial_investment, np.asarray(cash_flows, dtype=float)]
        t = np.arange(len(cf))

        def npv(r):
            return np.sum(cf / (1 + r)**t)

        def dnpv(r):
            return -np.sum(t * cf / (1 + r)**(t + 1))

        with catch_warnings():
            filterwarnings('ignore', category=RuntimeWarning)
            irr, res = newton(npv, x0, fprime=dnpv, tol=tol, maxiter=maxiter, full_output=True, disp=False)
        converged = bool(res.converged) and np.isfinite(irr)
        if not converged and warn:
            warnings.warn(f"IRR did not converge within {maxiter} iterations, returning last estimate {irr}",
                          RuntimeWarning)
        return float(irr), converged

    def calculate_payback_period(self, cash_flows, initial_investment):
        """Year where the cumulative undiscounted cash flow becomes non-negative, linearly
        interpolated within that year. Project life if never reached"""
        cumulative = -initial_investment
        for year, cf in enumerate(cash_flows):
            if cumulative + cf >= 0:
                return year + (-cumulative / cf if cf > 0 else 0.)
            cumulative += cf
        return float(len(cash_flows))

    def calculate_metrics(self, annual_energy, capacity, params=None):
        """Full metric set of a wind farm

        Parameters
        ----------
        annual_energy : float
            Net annual energy production [MWh]
        capacity : float
            Installed capacity [MW]
        params : EconomicParameters, optional

        Returns
        -------
        EconomicMetrics
        """
        params = params or self.parameters
        capex = self.capital_cost(capacity, params)
        opex = self.operational_cost(capacity, params)
        cash_flows = self.cash_flows(annual_energy, capacity, params)
        npv = self.calculate_npv(cash_flows, params.discount_rate, capex)
        irr, irr_converged = self.calculate_irr(cash_flows, capex)
        return EconomicMetrics(capital_cost=capex, operational_cost=opex,
                               lcoe=self.calculate_lcoe(capex, opex, annual_energy, params.discount_rate,
                                                        params.project_life, params.degradation),
                               npv=npv, irr=irr, irr_converged=irr_converged,
                               payback_period=self.calculate_payback_period(cash_flows, capex),
                               profitability_index=(npv + capex) / capex if capex > 0 else 0.,
                               cash_flows=cash_flows)

    def evaluate(self, layout, params=None):
        """Metrics of an evaluated layout (layout.energy_production must be set)"""
        if layout.energy_production is None:
            raise ValueError("Layout has no energy production. Evaluate it with WakeEffectModeler first")
        return self.calculate_metrics(layout.energy_production.aep, layout.installed_capacity, params)

    def simple_economic_value(self, annual_energy, capacity, params=None):
        """Fast economic value used inside layout searches

        Net present value of a constant annual margin (revenue - operational cost) over
        the project life, relative to the capital cost, i.e. profitability index - 1
        without tax, inflation and degradation.
        """
        params = params or self.parameters
        r, n = params.discount_rate, params.project_life
        annuity = (1 - (1 + r)**-n) / r if r > 0 else n
        capex = self.capital_cost(capacity, params)
        margin = annual_energy * params.electricity_price - self.operational_cost(capacity, params)
        return (annuity * margin - capex) / capex

    def _vary(self, parameter, value, annual_energy, capacity, params):
        if parameter == 'electricity_price':
            return annual_energy, params.replace(electricity_price=value)
        elif parameter == 'capital_cost':
            return annual_energy, params.replace(turbine_cost_per_mw=value)
        elif parameter == 'capacity_factor':
            # capacity factor in %
            return capacity * 8760 * value / 100, params
        elif parameter == 'discount_rate':
            return annual_energy, params.replace(discount_rate=value)
        elif parameter == 'operational_cost':
            return annual_energy, params.replace(operational_cost_per_mw_year=value)
        raise ValueError(f"Unknown sensitivity parameter '{parameter}'. Valid parameters are {SENSITIVITY_PARAMETERS}")

    def sensitivity_analysis(self, annual_energy, capacity, params=None, parameters=SENSITIVITY_PARAMETERS):
        """Sweep each parameter from 0.5 to 1.5 times its base value

        Returns
        -------
        results : dict
            parameter name -> SensitivityResult with the metrics at each point, the slope
            of a linear regression of NPV on the parameter value and the elasticity
            slope * base_value / base_NPV
        """
        params = params or self.parameters
        base_npv = self.calculate_metrics(annual_energy, capacity, params).npv
        capacity_factor = annual_energy / (capacity * 8760) * 100
        base_values = {'electricity_price': params.electricity_price,
                       'capital_cost': params.turbine_cost_per_mw,
                       'capacity_factor': capacity_factor,
                       'discount_rate': params.discount_rate,
                       'operational_cost': params.operational_cost_per_mw_year}
        results = {}
        for name in parameters:
            if name not in base_values:
                raise ValueError(f"Unknown sensitivity parameter '{name}'. Valid parameters are "
                                 f"{SENSITIVITY_PARAMETERS}")
            base_value = base_values[name]
            values = base_value * np.asarray(self.factors)
            metrics = []
            for v in values:
                energy, p = self._vary(name, v, annual_energy, capacity, params)
                metrics.append(self.calculate_metrics(energy, capacity, p))
            slope, elasticity = sensitivity(values, [m.npv for m in metrics], base_value, base_npv)
            results[name] = SensitivityResult(name, base_value, values, metrics, slope, elasticity)
        return results

    def random_parameters(self, rng, params=None, n=1):
        """Monte Carlo draws of electricity price, turbine cost and operational cost
        with 15%, 10% and 20% relative standard deviation"""
        params = params or self.parameters
        z = box_muller(rng, (n, 3))
        return [params.replace(electricity_price=params.electricity_price * (1 + .15 * z_[0]),
                               turbine_cost_per_mw=params.turbine_cost_per_mw * (1 + .1 * z_[1]),
                               operational_cost_per_mw_year=params.operational_cost_per_mw_year * (1 + .2 * z_[2]))
                for z_ in z]

    def risk_analysis(self, annual_energy, capacity, params=None, n_trials=1000, seed=None):
        """Monte Carlo NPV distribution

        Returns
        -------
        risk : RiskMetrics
            Mean, std, percentiles, 95% value at risk, probability of negative NPV and
            expected shortfall
        npv : array_like
            NPV of each trial
        """
        rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
        npv = np.array([self.calculate_metrics(annual_energy, capacity, p).npv
                        for p in self.random_parameters(rng, params, n_trials)])
        return risk_metrics(npv), npv

    def scenario_analysis(self, annual_energy, capacity, params=None):
        """Metrics of the base case and of an optimistic (price x1.2, turbine cost x0.9,
        operational cost x0.8) and a pessimistic (price x0.8, turbine cost x1.15,
        operational cost x1.3) scenario"""
        params = params or self.parameters

        def scale(price, turbine_cost, opex):
            return params.replace(electricity_price=params.electricity_price * price,
                                  turbine_cost_per_mw=params.turbine_cost_per_mw * turbine_cost,
                                  operational_cost_per_mw_year=params.operational_cost_per_mw_year * opex)
        return {'base': self.calculate_metrics(annual_energy, capacity, params),
                'optimistic': self.calculate_metrics(annual_energy, capacity, scale(1.2, .9, .8)),
                'pessimistic': self.calculate_metrics(annual_energy, capacity, scale(.8, 1.15, 1.3))}

    def analyze_economics(self, annual_energy, capacity, params=None, n_trials=1000, seed=None):
        """Base case, sensitivity, risk and scenario analysis

        Returns
        -------
        analysis : dict
            with keys 'base_case', 'sensitivity', 'risk', 'npv_samples' and 'scenarios'
        """
        risk, npv_samples = self.risk_analysis(annual_energy, capacity, params, n_trials, seed)
        return {'base_case': self.calculate_metrics(annual_energy, capacity, params),
                'sensitivity': self.sensitivity_analysis(annual_energy, capacity, params),
                'risk': risk,
                'npv_samples': npv_samples,
                'scenarios': self.scenario_analysis(annual_energy, capacity, params)}

    def layout_metrics(self, layout, site, wake_modeler=None, params=None):
        """Energy production and metrics of a layout

        Returns
        -------
        energy_production : EnergyProduction
        metrics : EconomicMetrics
        """
        wake_modeler = wake_modeler or WakeEffectModeler()
        ep = wake_modeler.calculate_energy_production(layout, site)
        return ep, self.calculate_metrics(ep.aep, ep.capacity, params)

    def satisfies(self, metrics, constraints=None):
        """True if metrics meet the limits in constraints, see ECONOMIC_CONSTRAINTS"""
        c = constraints or {}
        return (metrics.capital_cost <= c.get('max_capital_cost', np.inf) and
                metrics.irr >= c.get('min_irr', -np.inf) and
                metrics.payback_period <= c.get('max_payback_period', np.inf) and
                metrics.lcoe <= c.get('max_lcoe', np.inf))

    def upgrade_turbine(self, spec, turbine_catalog=None):
        """Smallest turbine of the catalog rated at least UPGRADE_RATED_POWER, or, without a
        catalog, a generic turbine of that rating with the same specific power as spec"""
        if turbine_catalog is None:
            diameter = spec.diameter * np.sqrt(UPGRADE_RATED_POWER / spec.rated_power)
            return GenericTurbineSpecification(f'{spec.name} {UPGRADE_RATED_POWER:g}MW', UPGRADE_RATED_POWER,
                                               diameter, spec.hub_height, ws_cutin=spec.ws_cutin,
                                               ws_rated=spec.ws_rated, ws_cutout=spec.ws_cutout)
        candidates = [t for t in turbine_catalog if t.rated_power >= UPGRADE_RATED_POWER]
        if not candidates:
            return None
        return min(candidates, key=lambda t: t.rated_power)

    def apply_economic_recommendation(self, layout, recommendation):
        """New layout with all turbines upgraded (hub heights kept) or raised to the recommended hub height"""
        if recommendation.type == 'turbine_upgrade':
            return layout.with_specs([recommendation.turbine.with_hub_height(s.hub_height) for s in layout.specs])
        h = recommendation.recommended_value
        return layout.with_specs([s.with_hub_height(h) if s.hub_height < h else s for s in layout.specs])

    def economic_recommendations(self, layout, site, wake_modeler=None, params=None, constraints=None,
                                 turbine_catalog=None):
        """Design changes of a layout, evaluated by their NPV improvement

        A turbine upgrade is recommended when all turbines are rated below 3 MW and a hub
        height increase when a turbine is lower than 100 m. Changes whose metrics violate
        the constraints are left out.

        Returns
        -------
        recommendations : list of EconomicRecommendation
            Sorted by decreasing NPV improvement
        """
        params = params or self.parameters
        wake_modeler = wake_modeler or WakeEffectModeler()
        candidates = []
        rated_power = layout.rated_power.max()
        if rated_power < UPGRADE_RATED_POWER:
            turbine = self.upgrade_turbine(layout.specs[0], turbine_catalog)
            if turbine is not None:
                candidates.append(EconomicRecommendation('turbine_upgrade', f'Upgrade to {turbine.name}',
                                                         rated_power, turbine.rated_power, turbine=turbine))
        hub_height = layout.hub_height.min()
        if hub_height < MIN_HUB_HEIGHT:
            candidates.append(EconomicRecommendation('hub_height', f'Increase hub height to {MIN_HUB_HEIGHT:g}m',
                                                     hub_height, MIN_HUB_HEIGHT))
        npv = self.layout_metrics(layout, site, wake_modeler, params)[1].npv
        recommendations = []
        for r in candidates:
            metrics = self.layout_metrics(self.apply_economic_recommendation(layout, r), site, wake_modeler,
                                          params)[1]
            if self.satisfies(metrics, constraints):
                r.npv_improvement = metrics.npv - npv
                recommendations.append(r)
        return sorted(recommendations, key=lambda r: -r.npv_improvement)

    def optimize_for_economic_value(self, layout, site, wake_modeler=None, params=None, constraints=None,
                                    turbine_catalog=None, max_iterations=20, min_improvement=1e5):
        """Apply the recommendation with the largest NPV improvement repeatedly

        Parameters
        ----------
        layout : Layout
        site : Site
        wake_modeler : WakeEffectModeler, optional
        params : EconomicParameters, optional
        constraints : dict, optional
            Limits of the modified designs: max_capital_cost [USD], min_irr,
            max_payback_period [years] and max_lcoe [USD/MWh]
        turbine_catalog : list of TurbineSpecification, optional
            Turbines available for upgrades. A generic turbine is used if None
        max_iterations : int
        min_improvement : float
            Stop when the best recommendation improves the NPV less than this [USD]

        Returns
        -------
        result : dict
            layout (best NPV, with energy production and economic metrics attached),
            initial_npv, npv, economic_improvement and steps (iteration, recommendation,
            npv_before, npv_after and improvement per applied recommendation)
        """
        unknown = set(constraints or {}) - set(ECONOMIC_CONSTRAINTS)
        if unknown:
            raise ValueError(f"Unknown economic constraint(s) {sorted(unknown)}. Valid constraints are "
                             f"{ECONOMIC_CONSTRAINTS}")
        params = params or self.parameters
        wake_modeler = wake_modeler or WakeEffectModeler()
        ep, metrics = self.layout_metrics(layout, site, wake_modeler, params)
        initial_npv = metrics.npv
        current = best = layout.evaluated(ep, metrics)
        steps = []
        for iteration in range(1, max_iterations + 1):
            recommendations = self.economic_recommendations(current, site, wake_modeler, params, constraints,
                                                            turbine_catalog)
            if not recommendations or recommendations[0].npv_improvement < min_improvement:
                break
            recommendation = recommendations[0]
            candidate = self.apply_economic_recommendation(current, recommendation)
            ep, metrics = self.layout_metrics(candidate, site, wake_modeler, params)
            npv_before = current.economic_metrics.npv
            steps.append({'iteration': iteration, 'recommendation': recommendation.description,
                          'npv_before': npv_before, 'npv_after': metrics.npv, 'improvement': metrics.npv - npv_before})
            current = candidate.evaluated(ep, metrics)
            if metrics.npv > best.economic_metrics.npv:
                best = current
        return {'layout': best, 'initial_npv': initial_npv, 'npv': best.economic_metrics.npv,
                'economic_improvement': best.economic_metrics.npv - initial_npv, 'steps': steps}
