import numpy as np
from scipy.special import expit
from py_wflo.economic_optimizer import EconomicOptimizer
from py_wflo.environmental_models import EnvironmentalImpactModel
from py_wflo.optimization.parameters import Objectives, OptimizationParameters, noise_limit
from py_wflo.wake_effect_modeler import WakeEffectModeler, HOURS_PER_YEAR

INFEASIBLE_FACTOR = .1
ZONE_INTRUSION_PENALTY = .1
# per dB(A) above the noise limit
NOISE_EXCESS_PENALTY = .01


class Individual():
    def __init__(self, layout, fitness, raw_fitness, objectives, constraints, feasible, generation=0):
        """
        Parameters
        ----------
        layout : Layout
        fitness : float
            Penalized fitness, raw_fitness * 0.1 if infeasible
        raw_fitness : float
        objectives : dict
            Objective breakdown: aep, normalized_energy, wake_loss, economic_value,
            environmental_penalty and environmental_score
        constraints : dict
            Constraint measures: min_spacing and turbines_outside
        feasible : bool
        generation : int
        """
        self.layout = layout
        self.fitness = fitness
        self.raw_fitness = raw_fitness
        self.objectives = objectives
        self.constraints = constraints
        self.feasible = feasible
        self.generation = generation

    def __repr__(self):
        return "Individual(fitness=%.5f, feasible=%s, generation=%d)" % (self.fitness, self.feasible,
                                                                         self.generation)


class LayoutFitness():
    """Scalar fitness shared by all placement searches and the final evaluation

    benefit = w_energy * AEP / (capacity * 8760)
            + w_wake * (1 - mean turbine wake loss)
            + w_npv * expit(economic value)
    penalty = sum(w_env * impact score / 100) + 0.1 * turbines inside high/critical zones
            + 0.01 * dB(A) of the loudest receptor above the noise limit
    raw = benefit / (1 + penalty)

    All terms are non-negative, so raw >= 0 and the infeasibility factor always lowers
    the fitness. A layout is feasible when all turbines are at least min_spacing apart
    and inside the site boundary. Infeasible layouts get fitness = raw * 0.1.

    Instances hold no state between evaluations and can be pickled to worker processes.
    """

    def __init__(self, site, objectives=None, economic_parameters=None, wake_modeler=None,
                 economic_optimizer=None, environmental_model=None, noise_limit=None):
        """
        Parameters
        ----------
        site : Site
        objectives : Objectives, optional
        economic_parameters : EconomicParameters, optional
            Defaults to the parameters of economic_optimizer
        wake_modeler : WakeEffectModeler, optional
        economic_optimizer : EconomicOptimizer, optional
        environmental_model : callable, optional
        noise_limit : float, optional
            Noise limit at receptors [dB(A)]. Defaults to objectives.max_noise_level
        """
        self.site = site
        self.objectives = objectives or Objectives()
        self.wake_modeler = wake_modeler or WakeEffectModeler()
        self.economic_optimizer = economic_optimizer or EconomicOptimizer()
        self.economic_parameters = economic_parameters or self.economic_optimizer.parameters
        self.environmental_model = environmental_model or EnvironmentalImpactModel()
        self.noise_limit = self.objectives.max_noise_level if noise_limit is None else noise_limit

    @classmethod
    def from_parameters(cls, site, parameters=None, objectives=None, **kwargs):
        parameters = parameters or OptimizationParameters()
        objectives = objectives or Objectives()
        return cls(site, objectives, parameters.economic_parameters(), noise_limit=noise_limit(parameters, objectives),
                   **kwargs)

    def constraints(self, layout):
        outside = ~self.site.contains(layout.x, layout.y)
        return {'min_spacing': layout.min_spacing(),
                'turbines_outside': [layout.ids[i] for i in np.where(outside)[0]]}

    def is_feasible(self, constraints):
        return constraints['min_spacing'] >= self.objectives.min_spacing and not constraints['turbines_outside']

    def environmental_penalty(self, impact):
        w = self.objectives.environmental_weights
        penalty = sum(w[k] * impact.scores[k] / 100 for k in w)
        penalty += NOISE_EXCESS_PENALTY * max(0., impact.max_noise_level - self.noise_limit)
        return penalty + ZONE_INTRUSION_PENALTY * len(impact.zone_intrusions)

    def evaluate(self, layout):
        """
        Returns
        -------
        Individual
        """
        w = self.objectives.weights
        ep = self.wake_modeler.calculate_energy_production(layout, self.site)
        wake_loss = self.wake_modeler.total_wake_loss(layout, self.site)
        economic_value = self.economic_optimizer.simple_economic_value(ep.aep, ep.capacity, self.economic_parameters)
        impact = self.environmental_model(layout, self.site)
        normalized_energy = ep.aep / (ep.capacity * HOURS_PER_YEAR)
        penalty = self.environmental_penalty(impact)
        benefit = (w['energy_production'] * normalized_energy + w['wake_loss'] * (1 - wake_loss) +
                   w['npv'] * expit(economic_value))
        raw = float(benefit / (1 + penalty))
        constraints = self.constraints(layout)
        feasible = self.is_feasible(constraints)
        return Individual(layout=layout,
                          fitness=raw if feasible else raw * INFEASIBLE_FACTOR,
                          raw_fitness=raw,
                          objectives={'aep': ep.aep, 'normalized_energy': normalized_energy, 'wake_loss': wake_loss,
                                      'economic_value': economic_value, 'environmental_penalty': penalty,
                                      'environmental_score': impact.overall_score},
                          constraints=constraints, feasible=feasible)

    def __call__(self, layout):
        return self.evaluate(layout).fitness
