import time
import numpy as np
from py_wflo.economic_optimizer import EconomicOptimizer
from py_wflo.environmental_models import EnvironmentalImpactModel
from py_wflo.optimization import get_placement_optimizer, NSGA2Optimizer
from py_wflo.optimization.fitness import LayoutFitness
from py_wflo.optimization.parameters import Objectives, OptimizationParameters, ParameterBounds, noise_limit
from py_wflo.optimization._optimizer import OptimizationSettings
from py_wflo.site.suitability import TerrainSuitability
from py_wflo.utils.check_input import check_not_empty, check_model
from py_wflo.utils.layouts import SEED_LAYOUT_TYPES, generate_layout, farm_area
from py_wflo.utils.statistics import box_muller, empirical_percentiles, risk_metrics, sensitivity
from py_wflo.wake_effect_modeler import WakeEffectModeler

SENSITIVITY_PARAMETERS = ('site.turbine_spacing', 'layout.grid_angle', 'turbine.hub_height',
                          'economic.discount_rate', 'economic.electricity_price', 'environmental.noise_limit')
DEFAULT_UNCERTAINTY = {'economic.electricity_price': .15,
                       'economic.discount_rate': .1,
                       'site.turbine_spacing': .05}


class ConstraintViolation():
    def __init__(self, type, severity, value, limit, turbine_ids):
        """
        Parameters
        ----------
        type : {'min_spacing', 'boundary', 'noise_limit', 'setback_distance', 'max_turbines'}
        severity : {'low', 'medium', 'high', 'critical'}
        value : float
            Offending value
        limit : float
        turbine_ids : list of str
            Turbines causing the violation
        """
        self.type = type
        self.severity = severity
        self.value = value
        self.limit = limit
        self.turbine_ids = turbine_ids

    def __repr__(self):
        return "ConstraintViolation(%s, %s, value=%.4g, limit=%.4g, %d turbines)" % (
            self.type, self.severity, self.value, self.limit, len(self.turbine_ids))


class OptimizationResult():
    def __init__(self, optimal_layout, objective_value, performance, convergence_history, iterations, converged,
                 computation_time, method, constraint_violations, flags, seed_objective_value=None,
                 wake_analysis=None, run=None):
        """
        Parameters
        ----------
        optimal_layout : Layout
            Best layout with energy production, economic metrics and environmental impact attached
        objective_value : float
            Fitness of the optimal layout
        performance : dict
            energy_production [MWh], capacity_factor [%], wake_loss [%], npv [USD], lcoe [USD/MWh],
            irr, environmental_score (100 is no impact), feasibility_score [0-100], farm_area [km^2]
            and power_density [MW/km^2]
        convergence_history : list of float
            Best-ever fitness per generation
        iterations : int
        converged : bool
        computation_time : float
            [s]
        method : str
            Algorithm name
        constraint_violations : list of ConstraintViolation
        flags : list of str
            Soft issues: 'irr_not_converged', 'max_generations_reached', 'cancelled', 'infeasible'
        seed_objective_value : float, optional
            Best fitness of the seed layouts
        wake_analysis : WakeAnalysis, optional
        run : OptimizationRun, optional
        """
        self.optimal_layout = optimal_layout
        self.objective_value = objective_value
        self.performance = performance
        self.convergence_history = convergence_history
        self.iterations = iterations
        self.converged = converged
        self.computation_time = computation_time
        self.method = method
        self.constraint_violations = constraint_violations
        self.flags = flags
        self.seed_objective_value = seed_objective_value
        self.wake_analysis = wake_analysis
        self.run = run

    @property
    def feasible(self):
        return 'infeasible' not in self.flags

    def __repr__(self):
        return "OptimizationResult(%s, objective=%.5f, iterations=%d, violations=%d, flags=%s)" % (
            self.method, self.objective_value, self.iterations, len(self.constraint_violations), self.flags)


class LayoutSensitivity():
    def __init__(self, parameter, base_value, values, objective_values, energy_production, economic_value,
                 environmental_score, slope, elasticity):
        self.parameter = parameter
        self.base_value = base_value
        self.values = values
        self.objective_values = objective_values
        self.energy_production = energy_production
        self.economic_value = economic_value
        self.environmental_score = environmental_score
        self.slope = slope
        self.elasticity = elasticity


class UncertaintyResult():
    def __init__(self, risk, confidence_interval, robust_layout, samples):
        """
        Parameters
        ----------
        risk : RiskMetrics
            Mean, std, percentiles, value at risk, expected shortfall (CVaR), probability of
            loss, worst and best case of the objective value
        confidence_interval : (float, float)
            2.5 and 97.5 percentiles
        robust_layout : Layout
        samples : array_like
            Objective value of each simulation
        """
        self.risk = risk
        self.confidence_interval = confidence_interval
        self.robust_layout = robust_layout
        self.samples = samples

    @property
    def mean(self):
        return self.risk.mean

    @property
    def std(self):
        return self.risk.std

    @property
    def value_at_risk(self):
        return self.risk.value_at_risk

    @property
    def conditional_value_at_risk(self):
        return self.risk.expected_shortfall


class WindFarmOptimizer():
    """Wind farm layout optimization pipeline

    1. Suitability map of the site (terrain slope, elevation and constraint zones)
    2. Seed layouts from layout archetypes
    3. Placement search (genetic, particle swarm, gradient or hybrid)
    4. Wake, economic and environmental evaluation of the best layout and constraint check
    """

    def __init__(self, wake_modeler=None, economic_optimizer=None, environmental_model=None,
                 terrain_suitability=None, layout_types=SEED_LAYOUT_TYPES):
        """
        Parameters
        ----------
        wake_modeler : WakeEffectModeler, optional
        economic_optimizer : EconomicOptimizer, optional
        environmental_model : callable, optional
            environmental_model(layout, site) -> EnvironmentalImpact. Defaults to EnvironmentalImpactModel()
        terrain_suitability : callable, optional
            terrain_suitability(site) -> xr.DataArray. Defaults to TerrainSuitability()
        layout_types : list of str, optional
            Archetypes of the seed layouts
        """
        check_model(wake_modeler, WakeEffectModeler, 'wake_modeler')
        check_model(economic_optimizer, EconomicOptimizer, 'economic_optimizer')
        self.wake_modeler = wake_modeler or WakeEffectModeler()
        self.economic_optimizer = economic_optimizer or EconomicOptimizer()
        self.environmental_model = environmental_model or EnvironmentalImpactModel()
        self.terrain_suitability = terrain_suitability or TerrainSuitability()
        self.layout_types = layout_types

    def _check_specs(self, turbine_specs):
        if hasattr(turbine_specs, 'diameter'):
            turbine_specs = [turbine_specs]
        check_not_empty('Turbine specifications', turbine_specs)
        return list(turbine_specs)

    def _check_inputs(self, parameters, objectives, settings=None):
        if parameters is None or isinstance(parameters, dict):
            parameters = OptimizationParameters.from_dict(parameters or {})
        if objectives is None or isinstance(objectives, dict):
            objectives = Objectives.from_dict(objectives or {})
        if settings is None or isinstance(settings, dict):
            settings = OptimizationSettings.from_dict(settings or {})
        return parameters, objectives, settings

    def fitness(self, site, parameters, objectives):
        return LayoutFitness(site, objectives, parameters.economic_parameters(self.economic_optimizer.parameters),
                             wake_modeler=self.wake_modeler, economic_optimizer=self.economic_optimizer,
                             environmental_model=self.environmental_model,
                             noise_limit=noise_limit(parameters, objectives))

    def _turbine(self, turbine_specs, parameters):
        spec = turbine_specs[0]
        if 'turbine.hub_height' in parameters:
            spec = spec.with_hub_height(parameters.value('turbine.hub_height'))
        return spec

    def generate_layouts(self, site, turbine_specs, parameters=None, layout_types=None, seed=None,
                         suitability=None):
        """Seed layouts, one per archetype

        Parameters
        ----------
        site : Site
        turbine_specs : list of TurbineSpecification
            The first specification is used
        parameters : OptimizationParameters or dict, optional
            turbine.turbine_count, site.turbine_spacing and site.row_spacing (rotor
            diameters), layout.grid_angle and layout.cluster_size are used
        layout_types : list of str, optional
            Defaults to the archetypes of this optimizer
        seed : int, optional
            Seed of the random archetypes
        suitability : xr.DataArray, optional
            Suitability map. Computed if None

        Returns
        -------
        layouts : list of Layout
        """
        turbine_specs = self._check_specs(turbine_specs)
        parameters, _, _ = self._check_inputs(parameters, None)
        spec = self._turbine(turbine_specs, parameters)
        if suitability is None:
            suitability = self.terrain_suitability(site)
        rng = np.random.default_rng(seed)
        D = spec.diameter
        return [generate_layout(layout_type, site, spec,
                                N=int(round(parameters.value('turbine.turbine_count'))),
                                spacing=parameters.value('site.turbine_spacing') * D,
                                row_spacing=parameters.value('site.row_spacing') * D,
                                cluster_size=int(round(parameters.value('layout.cluster_size'))),
                                grid_angle=parameters.value('layout.grid_angle'),
                                rng=rng, suitability=suitability)
                for layout_type in (layout_types or self.layout_types)]

    def optimize_layout(self, site, turbine_specs, parameters=None, objectives=None, settings=None,
                        initial_layouts=None):
        """Optimize the turbine positions

        Parameters
        ----------
        site : Site
        turbine_specs : list of TurbineSpecification
        parameters : OptimizationParameters or dict, optional
        objectives : Objectives or dict, optional
        settings : OptimizationSettings or dict, optional
        initial_layouts : list of Layout, optional
            Seed layouts. Generated from the archetypes if None

        Returns
        -------
        OptimizationResult
        """
        start = time.time()
        turbine_specs = self._check_specs(turbine_specs)
        parameters, objectives, settings = self._check_inputs(parameters, objectives, settings)
        if initial_layouts is None:
            initial_layouts = self.generate_layouts(site, turbine_specs, parameters, seed=settings.seed)
        fitness = self.fitness(site, parameters, objectives)
        seed_objective_value = max(fitness(layout) for layout in initial_layouts)
        run = get_placement_optimizer(settings.algorithm).optimize(initial_layouts, site, parameters, objectives,
                                                                   settings, fitness)
        evaluation = self.evaluate_layout(run.layout, site, parameters, objectives, fitness)
        flags = list(evaluation['flags'])
        if run.max_generations_reached:
            flags.append('max_generations_reached')
        if run.cancelled:
            flags.append('cancelled')
        return OptimizationResult(optimal_layout=evaluation['layout'],
                                  objective_value=evaluation['objective_value'],
                                  performance=evaluation['performance'],
                                  convergence_history=run.history,
                                  iterations=run.iterations,
                                  converged=run.converged,
                                  computation_time=time.time() - start,
                                  method=settings.algorithm.value,
                                  constraint_violations=evaluation['constraint_violations'],
                                  flags=flags,
                                  seed_objective_value=seed_objective_value,
                                  wake_analysis=evaluation['wake_analysis'],
                                  run=run)

    def evaluate_layout(self, layout, site, parameters=None, objectives=None, fitness=None):
        """Full evaluation of a layout

        Returns
        -------
        evaluation : dict
            layout (with aggregates), objective_value, performance, constraint_violations,
            wake_analysis, individual and flags
        """
        parameters, objectives, _ = self._check_inputs(parameters, objectives)
        fitness = fitness or self.fitness(site, parameters, objectives)
        layout = layout.with_positions(layout.x, layout.y, site.elevation(layout.x, layout.y))
        individual = fitness.evaluate(layout)
        energy_production = self.wake_modeler.calculate_energy_production(layout, site)
        economic_metrics = self.economic_optimizer.calculate_metrics(energy_production.aep,
                                                                     energy_production.capacity,
                                                                     fitness.economic_parameters)
        impact = self.environmental_model(layout, site)
        layout = layout.evaluated(energy_production, economic_metrics, impact)
        violations = self.constraint_violations(layout, site, parameters, objectives)
        area = farm_area(layout.x, layout.y) / 1e6
        performance = {'energy_production': energy_production.aep,
                       'capacity_factor': energy_production.capacity_factor,
                       'wake_loss': energy_production.wake_loss,
                       'npv': economic_metrics.npv,
                       'lcoe': economic_metrics.lcoe,
                       'irr': economic_metrics.irr,
                       'environmental_score': 100 - impact.overall_score,
                       'feasibility_score': self.feasibility_score(layout, site, objectives),
                       'farm_area': area,
                       'power_density': layout.installed_capacity / area if area > 0 else np.inf}
        flags = []
        if not economic_metrics.irr_converged:
            flags.append('irr_not_converged')
        if not individual.feasible:
            flags.append('infeasible')
        return {'layout': layout, 'objective_value': individual.fitness, 'performance': performance,
                'constraint_violations': violations, 'wake_analysis': self.wake_modeler.analyze_wake_effects(layout,
                                                                                                           site),
                'individual': individual, 'flags': flags}

    def feasibility_score(self, layout, site, objectives):
        """Percentage of turbines not involved in a spacing violation, outside the boundary
        or inside a high/critical constraint zone"""
        bad = {i for pair in layout.spacing_violations(objectives.min_spacing) for i in pair}
        bad |= set(np.where(~site.contains(layout.x, layout.y))[0])
        for c in site.environmental_constraints:
            if c.is_exclusion:
                bad |= set(np.where(c.contains(layout.x, layout.y))[0])
        return 100. * (1 - len(bad) / len(layout))

    def constraint_violations(self, layout, site, parameters, objectives):
        ids = np.array(layout.ids, dtype=object)
        violations = []
        pairs = layout.spacing_violations(objectives.min_spacing)
        if pairs:
            violations.append(ConstraintViolation('min_spacing', 'high', layout.min_spacing(), objectives.min_spacing,
                                                  sorted({ids[i] for pair in pairs for i in pair})))
        outside = ~site.contains(layout.x, layout.y)
        if outside.any():
            violations.append(ConstraintViolation('boundary', 'critical', int(outside.sum()), 0, list(ids[outside])))

        receptors = site.noise_receptors()
        if len(receptors):
            model = self.environmental_model
            max_level = (layout.environmental_impact.max_noise_level if layout.environmental_impact is not None
                         else model.noise_levels(layout, receptors).max())
            limit = noise_limit(parameters, objectives)
            if max_level > limit:
                level_ij = model.turbine_noise_levels(layout, receptors)
                loud = np.any(level_ij > limit - 10, 1)
                violations.append(ConstraintViolation('noise_limit', 'high', max_level, limit, list(ids[loud])))
            setback = parameters.value('environmental.setback_distance')
            if setback is not None:
                dist_ij = np.hypot(layout.x[:, None] - receptors[None, :, 0], layout.y[:, None] - receptors[None, :, 1])
                close = dist_ij.min(1) < setback
                if close.any():
                    violations.append(ConstraintViolation('setback_distance', 'high', dist_ij.min(), setback,
                                                          list(ids[close])))
        if 'turbine.turbine_count' in parameters and len(layout) > parameters['turbine.turbine_count'].upper:
            violations.append(ConstraintViolation('max_turbines', 'medium', len(layout),
                                                  parameters['turbine.turbine_count'].upper, list(ids)))
        return violations

    def multi_objective_optimization(self, site, turbine_specs, parameters=None, objectives=None, settings=None,
                                     initial_layouts=None):
        """NSGA-II search for the Pareto front of energy production, economic value and
        environmental impact

        Returns
        -------
        ParetoResult
        """
        turbine_specs = self._check_specs(turbine_specs)
        parameters, objectives, settings = self._check_inputs(parameters, objectives, settings)
        if initial_layouts is None:
            initial_layouts = self.generate_layouts(site, turbine_specs, parameters, seed=settings.seed)
        return NSGA2Optimizer().optimize(initial_layouts, site, parameters, objectives, settings,
                                         self.fitness(site, parameters, objectives))

    def apply_parameters(self, layout, site, base, parameters):
        """Layout modified from the parameter set base to parameters

        Positions are scaled around the layout centroid by the turbine spacing ratio and
        rotated by the grid angle change (clipped to the site bounding box). A hub height
        parameter replaces the hub height of all turbines.
        """
        x, y = layout.x, layout.y
        cx, cy = x.mean(), y.mean()
        scale = 1.
        if base.value('site.turbine_spacing'):
            scale = parameters.value('site.turbine_spacing') / base.value('site.turbine_spacing')
        theta = np.deg2rad(parameters.value('layout.grid_angle', 0) - base.value('layout.grid_angle', 0))
        dx, dy = (x - cx) * scale, (y - cy) * scale
        x, y = site.clip(cx + dx * np.cos(theta) - dy * np.sin(theta), cy + dx * np.sin(theta) + dy * np.cos(theta))
        layout = layout.with_positions(x, y, site.elevation(x, y))
        hub_height = parameters.value('turbine.hub_height')
        if hub_height is not None and hub_height != base.value('turbine.hub_height'):
            layout = layout.with_specs([s.with_hub_height(hub_height) for s in layout.specs])
        return layout

    def _with_hub_height_bounds(self, layout, parameters):
        if 'turbine.hub_height' in parameters:
            return parameters
        h = layout.specs[0].hub_height
        bounds = {k: parameters[k] for k in parameters.explicit}
        return OptimizationParameters({**bounds, 'turbine.hub_height': ParameterBounds(h / 2, h * 1.5, h)})

    def _objective(self, layout, site, base, parameters, objectives):
        layout = self.apply_parameters(layout, site, base, parameters)
        return self.fitness(site, parameters, objectives).evaluate(layout)

    def sensitivity_analysis(self, layout, site, parameters=None, objectives=None, variation=10.,
                             parameter_names=SENSITIVITY_PARAMETERS):
        """Objective value sensitivity to one parameter at a time

        Each parameter is varied by factors 1 + v*k, k=-5..5, v=variation/100, clipped to
        its bounds. Parameters with base value 0 are varied additively by v*k*(upper-lower).

        Returns
        -------
        results : dict
            parameter name -> LayoutSensitivity
        """
        parameters, objectives, _ = self._check_inputs(parameters, objectives)
        parameters = self._with_hub_height_bounds(layout, parameters)
        base_objective = self._objective(layout, site, parameters, parameters, objectives).fitness
        v = variation / 100
        k = np.arange(-5, 6)
        results = {}
        for name in parameter_names:
            if name not in parameters:
                raise ValueError(f"Unknown parameter '{name}'. Valid parameters are {parameters.names}")
            b = parameters[name]
            values = b.current * (1 + v * k) if b.current != 0 else b.current + v * k * (b.upper - b.lower)
            values = b.clip(values)
            individuals = [self._objective(layout, site, parameters, parameters.with_value(name, value), objectives)
                           for value in values]
            objective_values = np.array([ind.fitness for ind in individuals])
            slope, elasticity = sensitivity(values, objective_values, b.current, base_objective)
            results[name] = LayoutSensitivity(
                name, b.current, values, objective_values,
                energy_production=np.array([ind.objectives['aep'] for ind in individuals]),
                economic_value=np.array([ind.objectives['economic_value'] for ind in individuals]),
                environmental_score=np.array([100 - ind.objectives['environmental_score'] for ind in individuals]),
                slope=slope, elasticity=elasticity)
        return results

    def uncertainty_analysis(self, layout, site, parameters=None, objectives=None, uncertainty=DEFAULT_UNCERTAINTY,
                             n_simulations=1000, seed=None):
        """Monte Carlo analysis of the objective value

        Parameters
        ----------
        uncertainty : dict
            parameter name -> relative standard deviation of normal perturbations (Box-Muller).
            Values are clipped to the parameter bounds
        n_simulations : int
        seed : int or numpy.random.Generator, optional

        Returns
        -------
        UncertaintyResult
        """
        parameters, objectives, _ = self._check_inputs(parameters, objectives)
        parameters = self._with_hub_height_bounds(layout, parameters)
        for name in uncertainty:
            if name not in parameters:
                raise ValueError(f"Unknown parameter '{name}'. Valid parameters are {parameters.names}")
        rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
        z = box_muller(rng, (n_simulations, len(uncertainty)))
        samples = []
        for z_ in z:
            p = parameters
            for (name, std), zi in zip(uncertainty.items(), z_):
                p = p.with_value(name, parameters.value(name) * (1 + std * zi))
            samples.append(self._objective(layout, site, parameters, p, objectives).fitness)
        samples = np.array(samples)
        ci = empirical_percentiles(samples, (2.5, 97.5))
        return UncertaintyResult(risk=risk_metrics(samples), confidence_interval=(ci[2.5], ci[97.5]),
                                 robust_layout=layout, samples=samples)


def main():
    if __name__ == '__main__':
        from py_wflo.examples.data import example_data_path
        from py_wflo.examples.data.farm_reader import read_farm_case
        case = read_farm_case(example_data_path + 'reference_farm.yaml')
        settings = case['settings']
        settings.population_size, settings.max_generations = 8, 5
        wfo = WindFarmOptimizer(environmental_model=case['environmental_model'])
        result = wfo.optimize_layout(case['site'], case['turbine_specs'], case['parameters'], case['objectives'],
                                     settings)
        print(result)
        for k, v in result.performance.items():
            print(f"{k:20s}{v:.4g}")
        for v in result.constraint_violations:
            print(v)


main()
