"""
BFSynth Evolution System

This module implements the generational genetic algorithm: population
initialization (with optional seed genomes), tournament selection,
crossover, mutation, elitism and uniqueness pressure, and convergence
detection over the train/test splits.
"""

import logging
import random
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from .config import GASettings
from .core import DEFAULT_MAX_STEPS, clean_program
from .crossover import crossover
from .eval import FitnessEvaluator, Individual, TestCase
from .generate import generate_random_program, random_program_length, random_refill_length
from .metrics import GenerationStats, snapshot, summarize_population
from .mutation import mutate

logger = logging.getLogger(__name__)

TOURNAMENT_SIZE = 3
SEED_FRACTION = 0.3
# Offspring attempts per population slot before falling back to random programs
ATTEMPTS_PER_SLOT = 10


def sort_population(population: Sequence[Individual]) -> Tuple[Individual, ...]:
    """Return the population sorted by fitness, best first (stable on ties)."""
    return tuple(sorted(population, key=lambda ind: ind.fitness, reverse=True))


def tournament_select(population: Sequence[Individual], rng: random.Random,
                      tournament_size: int = TOURNAMENT_SIZE) -> Individual:
    """
    Best of `tournament_size` uniform draws with replacement.

    The earliest draw wins ties.

    Raises:
        ValueError: If the population is empty
    """
    if not population:
        raise ValueError("Cannot select from an empty population")

    best = population[rng.randrange(len(population))]
    for _ in range(tournament_size - 1):
        candidate = population[rng.randrange(len(population))]
        if candidate.fitness > best.fitness:
            best = candidate
    return best


class EvolutionEngine:
    """
    Generational GA over tape-language programs.

    The algorithm:
    1. initialize(): seed genomes (up to 30%) plus unique random programs
    2. advance(): keep `elitism` best, breed the rest by tournament
       selection, crossover and mutation, rejecting duplicate programs
    3. Stop when has_perfect_solution() or max_generations is reached

    The population is an immutable tuple, replaced wholesale by every
    initialize()/advance() call and always sorted best-first. All
    randomness comes from one injectable random.Random.
    """

    def __init__(self, settings: Optional[GASettings] = None,
                 train_cases: Sequence[TestCase] = (),
                 test_cases: Sequence[TestCase] = (),
                 rng: Optional[random.Random] = None,
                 seed: Optional[int] = None,
                 max_steps: int = DEFAULT_MAX_STEPS):
        """
        Initialize the evolution engine.

        Args:
            settings: GA settings (defaults to GASettings())
            train_cases: Cases that drive fitness
            test_cases: Held-out cases used for convergence detection
            rng: Random number generator; takes precedence over `seed`
            seed: Seed for a fresh random.Random when `rng` is None
            max_steps: Interpreter step budget per case

        Raises:
            SettingsError: If the settings are inconsistent
        """
        self.settings = replace(settings or GASettings()).validate()
        self.train_cases: Tuple[TestCase, ...] = tuple(train_cases)
        self.test_cases: Tuple[TestCase, ...] = tuple(test_cases)
        self.max_steps = max_steps
        self.rng = rng if rng is not None else random.Random(seed)

        self.evaluator = FitnessEvaluator(self.train_cases, self.test_cases, max_steps)

        # Evolution state
        self._population: Tuple[Individual, ...] = ()
        self.generation = 0
        self.history: List[GenerationStats] = []
        self.seed_genomes: List[str] = []

        # Statistics
        self.total_fallback_individuals = 0

        logger.info(f"Initialized evolution engine: population={self.settings.population_size}, "
                    f"mutation_rate={self.settings.mutation_rate}, "
                    f"crossover_rate={self.settings.crossover_rate}, elitism={self.settings.elitism}, "
                    f"train={len(self.train_cases)}, test={len(self.test_cases)}")

    @property
    def population(self) -> Tuple[Individual, ...]:
        """Current generation, best first."""
        return self._population

    @property
    def is_initialized(self) -> bool:
        return bool(self._population)

    def _generate(self, target_length: int) -> str:
        return generate_random_program(target_length, self.settings.max_program_length, self.rng)

    def initialize(self) -> Tuple[Individual, ...]:
        """
        Build generation 0.

        Up to 30% of the population comes from the deduplicated seed
        genomes; the rest is random programs drawn from the length mix.
        Duplicate programs are rejected until `population_size * 10`
        rejections have accumulated over the whole fill, after which
        duplicates are accepted.

        Returns:
            The new population
        """
        size = self.settings.population_size
        self.generation = 0
        self.history = []

        members: List[Individual] = []
        seen: Set[str] = set()

        seed_limit = int(size * SEED_FRACTION)
        for code in self.seed_genomes:
            if len(members) >= seed_limit:
                break
            if code in seen:
                continue
            seen.add(code)
            members.append(self.evaluator(code))
        seeded = len(members)

        rejections = 0
        max_rejections = size * ATTEMPTS_PER_SLOT
        while len(members) < size:
            code = self._generate(random_program_length(self.settings.max_program_length, self.rng))

            if code in seen and rejections < max_rejections:
                rejections += 1
                continue

            seen.add(code)
            members.append(self.evaluator(code))

        self._population = sort_population(members)
        self._record()

        logger.info(f"Initialized population with {len(self._population)} individuals "
                    f"({seeded} seeded), best F={self._population[0].fitness:.2f}")

        return self._population

    def advance(self) -> Tuple[Individual, ...]:
        """
        Evolve one generation.

        Returns:
            The new population

        Raises:
            RuntimeError: If initialize() has not been called
        """
        if not self._population:
            raise RuntimeError("Population is not initialized; call initialize() first")

        settings = self.settings
        size = settings.population_size
        parents = self._population

        offspring: List[Individual] = list(parents[:settings.elitism])
        seen: Set[str] = {ind.program for ind in offspring}

        attempts = 0
        max_attempts = size * ATTEMPTS_PER_SLOT

        while len(offspring) < size and attempts < max_attempts:
            attempts += 1

            parent_a = tournament_select(parents, self.rng)
            parent_b = tournament_select(parents, self.rng)

            child_a, child_b = parent_a.program, parent_b.program
            if self.rng.random() < settings.crossover_rate:
                child_a, child_b = crossover(child_a, child_b, self.rng)

            child_a = mutate(child_a, settings.mutation_rate, settings.max_program_length, self.rng)
            child_b = mutate(child_b, settings.mutation_rate, settings.max_program_length, self.rng)

            for child in (child_a, child_b):
                if len(offspring) < size and child not in seen:
                    seen.add(child)
                    offspring.append(self.evaluator(child))

        # Attempt budget exhausted: top up with random programs, duplicates allowed
        fallback = size - len(offspring)
        for _ in range(fallback):
            code = self._generate(random_refill_length(settings.max_program_length, self.rng))
            offspring.append(self.evaluator(code))

        if fallback:
            self.total_fallback_individuals += fallback
            logger.debug(f"Gen {self.generation + 1}: filled {fallback} slots with random programs "
                         f"after {attempts} attempts")

        self._population = sort_population(offspring[:size])
        self.generation += 1
        stats = self._record()

        logger.info(f"Gen {self.generation}: best F={stats.best_fitness:.2f}, "
                    f"avg F={stats.average_fitness:.2f}, train={stats.train_accuracy:.1f}%, "
                    f"test={stats.test_accuracy:.1f}%")

        return self._population

    def _record(self) -> GenerationStats:
        stats = snapshot(self.generation, self._population)
        self.history.append(stats)
        return stats

    def run_evolution(self, max_generations: Optional[int] = None,
                      progress_callback: Optional[Callable[[GenerationStats], None]] = None,
                      stop_on_perfect: bool = True) -> List[GenerationStats]:
        """
        Run evolution for multiple generations.

        Initializes the population first if needed.

        Args:
            max_generations: Generation limit (defaults to settings.max_generations)
            progress_callback: Called with the snapshot of every generation
            stop_on_perfect: Stop as soon as has_perfect_solution() holds

        Returns:
            List of generation statistics
        """
        if max_generations is None:
            max_generations = self.settings.max_generations

        if not self._population:
            self.initialize()
            if progress_callback:
                progress_callback(self.history[-1])

        logger.info(f"Starting evolution for up to {max_generations} generations")

        while self.generation < max_generations:
            if stop_on_perfect and self.has_perfect_solution():
                break

            self.advance()

            if progress_callback:
                progress_callback(self.history[-1])

        if self.has_perfect_solution():
            logger.info(f"Perfect solution found at generation {self.generation}: "
                        f"{self._population[0].program!r}")
        else:
            logger.info(f"Evolution stopped after {self.generation} generations")

        return self.history

    def has_perfect_solution(self) -> bool:
        """True if the best individual is perfect on train and, when present, on test."""
        best = self.get_best_individual()
        if best is None:
            return False

        return best.train_accuracy == 100 and (not self.test_cases or best.test_accuracy == 100)

    def get_best_individual(self) -> Optional[Individual]:
        return self._population[0] if self._population else None

    def get_average_fitness(self) -> float:
        if not self._population:
            return 0.0
        return sum(ind.fitness for ind in self._population) / len(self._population)

    def get_average_accuracy(self) -> float:
        if not self._population:
            return 0.0
        return sum(ind.accuracy for ind in self._population) / len(self._population)

    def snapshot(self) -> GenerationStats:
        """Statistics of the current generation."""
        return snapshot(self.generation, self._population)

    def get_population_summary(self) -> Dict:
        """Get summary statistics of current population."""
        summary = summarize_population(self._population)
        if summary:
            summary['generation'] = self.generation
            summary['evaluations'] = self.evaluator.evaluations
        return summary

    def update_settings(self, settings: GASettings) -> None:
        """
        Replace the GA settings for subsequent generations.

        Raises:
            SettingsError: If the settings are inconsistent; the current
                settings are kept
        """
        self.settings = replace(settings).validate()
        logger.debug(f"Settings updated: {self.settings}")

    def update_train_cases(self, train_cases: Sequence[TestCase]) -> None:
        """Score later individuals against new train cases; existing ones keep their scores."""
        self.train_cases = tuple(train_cases)
        self._rebuild_evaluator()

    def update_test_cases(self, test_cases: Sequence[TestCase]) -> None:
        """Score later individuals against new test cases; existing ones keep their scores."""
        self.test_cases = tuple(test_cases)
        self._rebuild_evaluator()

    def _rebuild_evaluator(self) -> None:
        evaluations = self.evaluator.evaluations
        self.evaluator = FitnessEvaluator(self.train_cases, self.test_cases, self.max_steps)
        self.evaluator.evaluations = evaluations

    def set_seed_genomes(self, genomes: Sequence[str]) -> None:
        """
        Set programs to seed the next initialize() with.

        Non-instruction characters are stripped; genomes left empty are dropped.
        """
        cleaned = [clean_program(g) for g in genomes]
        self.seed_genomes = [g for g in cleaned if g]
        if len(self.seed_genomes) != len(genomes):
            logger.warning(f"Dropped {len(genomes) - len(self.seed_genomes)} empty seed genomes")

    def get_seed_genomes(self) -> List[str]:
        return list(self.seed_genomes)

    def clear_seed_genomes(self) -> None:
        self.seed_genomes = []

    def get_seeded_count(self) -> int:
        """Number of current individuals whose program is one of the seed genomes."""
        if not self.seed_genomes:
            return 0
        seeds = set(self.seed_genomes)
        return sum(1 for ind in self._population if ind.program in seeds)
