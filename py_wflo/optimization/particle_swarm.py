import numpy as np
from numpy import newaxis as na
from py_wflo.optimization._optimizer import Algorithm, PlacementOptimizer, RunState, clip_vector
from py_wflo.optimization.genetic import GeneticOptimizer


class ParticleSwarmOptimizer(PlacementOptimizer):
    """Particle swarm optimization over the interleaved turbine position vector

    v = w*v + c1*r1*(personal_best - x) + c2*r2*(global_best - x), x = clip(x + v)
    """
    algorithm = Algorithm.PARTICLE_SWARM

    def __init__(self, inertia=.9, cognitive=2., social=2., initial_velocity=50., initial_perturbation=50.):
        """
        Parameters
        ----------
        inertia : float
            w
        cognitive, social : float
            c1 and c2
        initial_velocity : float
            Initial velocities are uniform in +/- initial_velocity [m]
        initial_perturbation : float
            Particles are initialized as for GeneticOptimizer
        """
        self.inertia = inertia
        self.cognitive = cognitive
        self.social = social
        self.initial_velocity = initial_velocity
        self.initial_perturbation = initial_perturbation

    def search(self, seeds, state, generations):
        rng, site = state.rng, state.site
        init = GeneticOptimizer(initial_perturbation=self.initial_perturbation)
        population = state.evaluate(init.initial_population(seeds, state.settings.population_size, site, rng), 0)
        template = population[0].layout
        x = np.array([p.layout.to_vector() for p in population])
        v = rng.uniform(-self.initial_velocity, self.initial_velocity, x.shape)
        pbest_x, pbest_f = x.copy(), np.array([p.fitness for p in population])
        personal_best = list(population)
        generation0 = len(state.history)
        converged = False
        for g in range(1, generations + 1):
            if state.stop_requested():
                break
            state.set_state(RunState.VARYING)
            gbest_x = pbest_x[np.argmax(pbest_f)]
            r1, r2 = rng.random((2,) + x.shape)
            v = self.inertia * v + self.cognitive * r1 * (pbest_x - x) + self.social * r2 * (gbest_x[na] - x)
            x = clip_vector(site, x + v)
            population = state.evaluate([template.from_vector(xy, site) for xy in x], generation0 + g)
            state.set_state(RunState.SELECTING)
            f = np.array([p.fitness for p in population])
            improved = f > pbest_f
            pbest_x[improved], pbest_f[improved] = x[improved], f[improved]
            personal_best = [p if imp else pb for p, pb, imp in zip(population, personal_best, improved)]
            state.record(generation0 + g, personal_best)
            if state.converged():
                converged = True
                break
        return personal_best, converged
