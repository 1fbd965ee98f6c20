import numpy as np
from py_wflo.optimization._optimizer import Algorithm, PlacementOptimizer, RunState, clip_vector, sort_population


class GeneticOptimizer(PlacementOptimizer):
    """Elitist genetic algorithm over the turbine coordinates

    - Initial population: the seeds followed by copies of the seeds with uniform
      perturbations of +/- initial_perturbation [m]
    - Selection: tournament of tournament_size individuals
    - Crossover: with probability crossover_rate, each turbine (x and y together) of
      the children comes from either parent with probability 0.5
    - Mutation: with probability mutation_rate an individual is mutated. Each of its
      turbines is then moved by N(0, mutation_std) [m] with probability
      turbine_mutation_probability
    - Replacement: the floor(population_size * elitism_rate) best individuals survive,
      the rest is filled with the best offspring
    """
    algorithm = Algorithm.GENETIC

    def __init__(self, tournament_size=3, mutation_std=50., turbine_mutation_probability=.3,
                 initial_perturbation=50.):
        self.tournament_size = tournament_size
        self.mutation_std = mutation_std
        self.turbine_mutation_probability = turbine_mutation_probability
        self.initial_perturbation = initial_perturbation

    def initial_population(self, seeds, size, site, rng):
        layouts = list(seeds[:size])
        i = 0
        while len(layouts) < size:
            seed = seeds[i % len(seeds)]
            xy = seed.to_vector()
            xy = xy + rng.uniform(-self.initial_perturbation, self.initial_perturbation, len(xy))
            layouts.append(seed.from_vector(clip_vector(site, xy), site))
            i += 1
        return layouts

    def tournament(self, population, rng):
        idx = rng.integers(len(population), size=self.tournament_size)
        return population[max(idx, key=lambda i: population[i].fitness)]

    def crossover(self, parent1, parent2, crossover_rate, rng):
        """Uniform crossover of turbine positions. Returns two child position vectors"""
        xy1, xy2 = parent1.layout.to_vector(), parent2.layout.to_vector()
        if rng.random() >= crossover_rate:
            return xy1, xy2
        mask = np.repeat(rng.random(len(xy1) // 2) < .5, 2)
        return np.where(mask, xy1, xy2), np.where(mask, xy2, xy1)

    def mutate(self, xy, mutation_rate, site, rng):
        if rng.random() >= mutation_rate:
            return xy
        n = len(xy) // 2
        mutate_turbine = np.repeat(rng.random(n) < self.turbine_mutation_probability, 2)
        return clip_vector(site, xy + mutate_turbine * rng.normal(0, self.mutation_std, 2 * n))

    def offspring(self, parents, settings, site, rng):
        """Child position vectors from consecutive parent pairs. The last parent of an odd
        population is paired with the first"""
        children = []
        for i in range(0, len(parents), 2):
            p1 = parents[i]
            p2 = parents[i + 1] if i + 1 < len(parents) else parents[0]
            for xy in self.crossover(p1, p2, settings.crossover_rate, rng):
                children.append(self.mutate(xy, settings.mutation_rate, site, rng))
        return children[:len(parents)]

    def replace(self, population, offspring, n_elite):
        elite = sort_population(population)[:n_elite]
        return sort_population(elite + sort_population(offspring)[:len(population) - n_elite])

    def evolve(self, population, state, generation):
        """One generation: selection, variation, evaluation and replacement"""
        settings, rng = state.settings, state.rng
        state.set_state(RunState.SELECTING)
        parents = [self.tournament(population, rng) for _ in range(len(population))]
        state.set_state(RunState.VARYING)
        template = population[0].layout
        site = state.site
        children = [template.from_vector(xy, site) for xy in self.offspring(parents, settings, site, rng)]
        offspring = state.evaluate(children, generation)
        n_elite = int(np.floor(len(population) * settings.elitism_rate))
        return self.replace(population, offspring, n_elite)

    def search(self, seeds, state, generations):
        rng = state.rng
        population = state.evaluate(self.initial_population(seeds, state.settings.population_size, state.site, rng),
                                    0)
        generation0 = len(state.history)
        converged = False
        for g in range(1, generations + 1):
            if state.stop_requested():
                break
            population = self.evolve(population, state, generation0 + g)
            state.record(generation0 + g, population)
            if state.converged():
                converged = True
                break
        return population, converged
