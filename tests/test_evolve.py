#!/usr/bin/env python3
"""
Tests for the evolution engine.
"""

import random
import unittest
from unittest import mock

from bfsynth.config import GASettings
from bfsynth.errors import SettingsError
from bfsynth.eval import Individual, TestCase
from bfsynth.evolve import EvolutionEngine, sort_population, tournament_select


def cases(pairs):
    return [TestCase(i, o) for i, o in pairs]


DOUBLE_TRAIN = cases([(1, 2), (2, 4), (3, 6), (4, 8)])
DOUBLE_TEST = cases([(5, 10), (6, 12)])
DOUBLE_PROGRAM = ',[->++<]>.'


def make_individual(program, fitness, train_accuracy=0.0, test_accuracy=0.0):
    """Individual with made-up scores, for selection and convergence tests."""
    return Individual(
        program=program, fitness=fitness, accuracy=train_accuracy,
        results=(), outputs=(), train_results=(), train_outputs=(),
        train_accuracy=train_accuracy, test_results=(), test_outputs=(),
        test_accuracy=test_accuracy,
    )


class ScriptedIndices:
    """Random source whose randrange() replays a fixed script."""

    def __init__(self, indices):
        self.indices = list(indices)

    def randrange(self, n):
        index = self.indices.pop(0)
        assert 0 <= index < n
        return index


class TestTournamentSelect(unittest.TestCase):
    """Test cases for tournament_select."""

    def setUp(self):
        self.population = (
            make_individual('a', 5.0),
            make_individual('b', 5.0),
            make_individual('c', 1.0),
            make_individual('d', 9.0),
        )

    def test_best_of_draws(self):
        winner = tournament_select(self.population, ScriptedIndices([2, 3, 0]))
        self.assertEqual(winner.program, 'd')

    def test_first_draw_wins_ties(self):
        winner = tournament_select(self.population, ScriptedIndices([1, 0, 2]))
        self.assertEqual(winner.program, 'b')

    def test_draws_with_replacement(self):
        winner = tournament_select(self.population, ScriptedIndices([2, 2, 2]))
        self.assertEqual(winner.program, 'c')

    def test_empty_population(self):
        with self.assertRaises(ValueError):
            tournament_select((), random.Random(0))

    def test_sort_population(self):
        ordered = sort_population(self.population)
        self.assertIsInstance(ordered, tuple)
        self.assertEqual([ind.program for ind in ordered], ['d', 'a', 'b', 'c'])


class TestSettings(unittest.TestCase):
    """Test cases for settings validation in the engine."""

    def test_invalid_settings_rejected(self):
        bad = [
            GASettings(population_size=0),
            GASettings(population_size=5, elitism=6),
            GASettings(elitism=-1),
            GASettings(mutation_rate=1.5),
            GASettings(crossover_rate=-0.1),
            GASettings(max_program_length=0),
            GASettings(max_generations=-1),
        ]
        for settings in bad:
            with self.assertRaises(SettingsError):
                EvolutionEngine(settings, DOUBLE_TRAIN)

    def test_error_names_field(self):
        with self.assertRaises(SettingsError) as ctx:
            GASettings(population_size=5, elitism=6).validate()
        self.assertEqual(ctx.exception.field, 'elitism')
        self.assertIsInstance(ctx.exception, ValueError)

    def test_engine_copies_settings(self):
        settings = GASettings(population_size=10)
        engine = EvolutionEngine(settings, DOUBLE_TRAIN)
        settings.population_size = 99
        self.assertEqual(engine.settings.population_size, 10)

    def test_update_settings(self):
        engine = EvolutionEngine(GASettings(population_size=10), DOUBLE_TRAIN, seed=1)
        engine.update_settings(GASettings(population_size=12, elitism=1))
        self.assertEqual(engine.settings.population_size, 12)

        with self.assertRaises(SettingsError):
            engine.update_settings(GASettings(population_size=3, elitism=4))
        self.assertEqual(engine.settings.population_size, 12)
        self.assertEqual(engine.settings.elitism, 1)


class TestEvolutionEngine(unittest.TestCase):
    """Test cases for EvolutionEngine."""

    def setUp(self):
        self.settings = GASettings(population_size=20, elitism=2, max_generations=50)
        self.engine = EvolutionEngine(self.settings, DOUBLE_TRAIN, DOUBLE_TEST,
                                      seed=42, max_steps=1000)

    def assertSortedBestFirst(self, population):
        fitnesses = [ind.fitness for ind in population]
        self.assertEqual(fitnesses, sorted(fitnesses, reverse=True))

    def test_initialize(self):
        population = self.engine.initialize()
        self.assertEqual(len(population), 20)
        self.assertIs(population, self.engine.population)
        self.assertSortedBestFirst(population)
        self.assertEqual(len({ind.program for ind in population}), 20)
        self.assertTrue(all(len(ind.program) <= 100 for ind in population))
        self.assertEqual(self.engine.generation, 0)
        self.assertEqual(len(self.engine.history), 1)
        self.assertTrue(self.engine.is_initialized)

    def test_advance_requires_initialize(self):
        self.assertFalse(self.engine.is_initialized)
        with self.assertRaises(RuntimeError):
            self.engine.advance()

    def test_advance(self):
        self.engine.initialize()
        for expected_generation in range(1, 6):
            population = self.engine.advance()
            self.assertEqual(self.engine.generation, expected_generation)
            self.assertEqual(len(population), 20)
            self.assertSortedBestFirst(population)
            self.assertTrue(all(ind.program for ind in population))
        self.assertEqual(len(self.engine.history), 6)

    def test_elites_survive(self):
        previous = self.engine.initialize()
        for _ in range(5):
            elites = [ind.program for ind in previous[:2]]
            current = self.engine.advance()
            programs = [ind.program for ind in current]
            for program in elites:
                self.assertIn(program, programs)
            previous = current

    def test_best_fitness_monotonic(self):
        self.engine.initialize()
        for _ in range(15):
            self.engine.advance()
        best = [stats.best_fitness for stats in self.engine.history]
        for earlier, later in zip(best, best[1:]):
            self.assertGreaterEqual(later, earlier)

    def test_population_is_immutable_tuple(self):
        population = self.engine.initialize()
        self.assertIsInstance(population, tuple)
        self.engine.advance()
        self.assertIsNot(population, self.engine.population)

    def test_same_seed_same_run(self):
        def run(seed):
            engine = EvolutionEngine(GASettings(population_size=10), DOUBLE_TRAIN,
                                     seed=seed, max_steps=500)
            engine.initialize()
            for _ in range(3):
                engine.advance()
            return [ind.program for ind in engine.population]

        self.assertEqual(run(7), run(7))

    def test_injected_rng(self):
        a = EvolutionEngine(GASettings(population_size=10), DOUBLE_TRAIN, rng=random.Random(3))
        b = EvolutionEngine(GASettings(population_size=10), DOUBLE_TRAIN, rng=random.Random(3))
        self.assertEqual([i.program for i in a.initialize()], [i.program for i in b.initialize()])

    def test_initialize_rejection_budget_is_shared(self):
        """Filling a tiny program space costs a bounded number of generator calls."""
        settings = GASettings(population_size=30, max_program_length=1)
        engine = EvolutionEngine(settings, DOUBLE_TRAIN, seed=0)

        with mock.patch.object(engine, '_generate', wraps=engine._generate) as generate:
            engine.initialize()

        self.assertEqual(len(engine.population), 30)
        # 30 accepted programs plus at most 30 * 10 rejections
        self.assertLessEqual(generate.call_count, 30 + 300)
        self.assertLessEqual(len({ind.program for ind in engine.population}), 8)

    def test_fallback_when_unique_offspring_run_out(self):
        """A tiny program space forces random top-ups with duplicates."""
        settings = GASettings(population_size=20, max_program_length=1)
        engine = EvolutionEngine(settings, DOUBLE_TRAIN, seed=0)
        engine.initialize()
        self.assertEqual(len(engine.population), 20)

        engine.advance()
        self.assertEqual(len(engine.population), 20)
        self.assertGreater(engine.total_fallback_individuals, 0)
        self.assertTrue(all(len(ind.program) == 1 for ind in engine.population))

    def test_has_perfect_solution(self):
        self.assertFalse(self.engine.has_perfect_solution())

        self.engine._population = (make_individual('x', 99.0, 100.0, 50.0),)
        self.assertFalse(self.engine.has_perfect_solution())

        self.engine._population = (make_individual('x', 99.0, 100.0, 100.0),)
        self.assertTrue(self.engine.has_perfect_solution())

        self.engine._population = (make_individual('x', 98.0, 99.0, 100.0),)
        self.assertFalse(self.engine.has_perfect_solution())

    def test_perfect_without_test_split(self):
        engine = EvolutionEngine(GASettings(population_size=5), DOUBLE_TRAIN)
        engine._population = (make_individual('x', 99.0, 100.0, 0.0),)
        self.assertTrue(engine.has_perfect_solution())

    def test_update_train_cases_keeps_scores(self):
        population = self.engine.initialize()
        evaluations = self.engine.evaluator.evaluations

        self.engine.update_train_cases(cases([(1, 1)]))
        self.assertIs(self.engine.population, population)
        self.assertEqual(self.engine.evaluator.train_cases, (TestCase(1, 1),))
        self.assertEqual(self.engine.evaluator.evaluations, evaluations)

        self.engine.update_test_cases([])
        self.assertEqual(self.engine.evaluator.test_cases, ())
        self.assertEqual(self.engine.train_cases, (TestCase(1, 1),))

    def test_statistics(self):
        self.assertIsNone(self.engine.get_best_individual())
        self.assertEqual(self.engine.get_average_fitness(), 0.0)
        self.assertEqual(self.engine.get_population_summary(), {})

        population = self.engine.initialize()
        self.assertIs(self.engine.get_best_individual(), population[0])
        self.assertAlmostEqual(self.engine.get_average_fitness(),
                               sum(i.fitness for i in population) / 20)
        self.assertAlmostEqual(self.engine.get_average_accuracy(),
                               sum(i.accuracy for i in population) / 20)

        summary = self.engine.get_population_summary()
        self.assertEqual(summary['population_size'], 20)
        self.assertEqual(summary['generation'], 0)
        self.assertEqual(summary['evaluations'], 20)
        self.assertEqual(self.engine.snapshot(), self.engine.history[-1])


class TestSeedGenomes(unittest.TestCase):
    """Test cases for seeding the initial population."""

    def setUp(self):
        self.engine = EvolutionEngine(GASettings(population_size=10), DOUBLE_TRAIN,
                                      DOUBLE_TEST, seed=5, max_steps=1000)

    def test_seeds_cleaned_and_empty_dropped(self):
        with self.assertLogs('bfsynth.evolve', 'WARNING'):
            self.engine.set_seed_genomes(['+.', 'x+.', '', 'abc', ',.'])
        self.assertEqual(self.engine.get_seed_genomes(), ['+.', '+.', ',.'])

        copy = self.engine.get_seed_genomes()
        copy.append('-')
        self.assertEqual(len(self.engine.get_seed_genomes()), 3)

    def test_seeds_deduplicated(self):
        self.engine.set_seed_genomes(['+.', '+.', ',.'])
        self.engine.initialize()
        self.assertEqual(self.engine.get_seeded_count(), 2)
        self.assertEqual(len(self.engine.population), 10)

    def test_seed_cap(self):
        """At most 30% of the population comes from seeds."""
        seeds = ['+' * k for k in range(1, 11)]
        self.engine.set_seed_genomes(seeds)
        self.engine.initialize()

        programs = {ind.program for ind in self.engine.population}
        self.assertEqual(self.engine.get_seeded_count(), 3)
        self.assertTrue({'+', '++', '+++'} <= programs)

    def test_clear_seeds(self):
        self.engine.set_seed_genomes(['+.'])
        self.engine.clear_seed_genomes()
        self.assertEqual(self.engine.get_seed_genomes(), [])
        self.engine.initialize()
        self.assertEqual(self.engine.get_seeded_count(), 0)

    def test_perfect_seed_stops_at_generation_zero(self):
        self.engine.set_seed_genomes([DOUBLE_PROGRAM])
        calls = []
        self.engine.run_evolution(max_generations=50, progress_callback=calls.append)

        self.assertTrue(self.engine.has_perfect_solution())
        self.assertEqual(self.engine.generation, 0)
        self.assertEqual(self.engine.get_best_individual().program, DOUBLE_PROGRAM)
        self.assertEqual([stats.generation for stats in calls], [0])


class TestRunEvolution(unittest.TestCase):
    """Test cases for run_evolution."""

    def test_runs_to_generation_limit(self):
        engine = EvolutionEngine(GASettings(population_size=10, max_generations=3),
                                 cases([(1, 200)]), seed=11, max_steps=500)
        calls = []
        history = engine.run_evolution(progress_callback=calls.append, stop_on_perfect=False)

        self.assertEqual(engine.generation, 3)
        self.assertEqual([stats.generation for stats in calls], [0, 1, 2, 3])
        self.assertEqual(len(history), 4)

    def test_zero_generations_only_initializes(self):
        engine = EvolutionEngine(GASettings(population_size=10), DOUBLE_TRAIN, seed=2)
        engine.run_evolution(max_generations=0)
        self.assertTrue(engine.is_initialized)
        self.assertEqual(engine.generation, 0)


if __name__ == '__main__':
    unittest.main()
