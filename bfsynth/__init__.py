"""
BFSynth: program synthesis for a tape-based instruction language.

This package evolves short Brainfuck programs that map input bytes to
expected output bytes, using a bounded-step interpreter and a generational
genetic algorithm.
"""

__version__ = "0.1.0"

from .core import COMMANDS, TapeInterpreter, build_bracket_map, execute
from .config import GASettings, InterpreterConfig, BFSynthConfig
from .errors import BFSynthError, SettingsError, DatasetError, GenomeDecodeError, GenomeNotFoundError
from .generate import generate_random_program
from .mutation import mutate, MutationType
from .crossover import crossover, CrossoverType
from .eval import TestCase, Individual, evaluate, FitnessEvaluator
from .metrics import GenerationStats
from .evolve import EvolutionEngine, tournament_select
from .tasks import DataSet, parse_dataset, get_preset, PRESETS
from .storage import GenomeRepository, InMemoryGenomeRepository, JsonGenomeRepository, StoredGenome

__all__ = [
    "COMMANDS", "TapeInterpreter", "build_bracket_map", "execute",
    "GASettings", "InterpreterConfig", "BFSynthConfig",
    "BFSynthError", "SettingsError", "DatasetError", "GenomeDecodeError", "GenomeNotFoundError",
    "generate_random_program", "mutate", "MutationType", "crossover", "CrossoverType",
    "TestCase", "Individual", "evaluate", "FitnessEvaluator", "GenerationStats",
    "EvolutionEngine", "tournament_select",
    "DataSet", "parse_dataset", "get_preset", "PRESETS",
    "GenomeRepository", "InMemoryGenomeRepository", "JsonGenomeRepository", "StoredGenome",
]
