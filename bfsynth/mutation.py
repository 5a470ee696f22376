"""
BFSynth Mutation Engine

This module implements the mutation operator for program strings:
per-instruction replace/insert/delete events followed by a global growth
pass and a global shrink pass.
"""

import random
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .core import INCREMENT
from .generate import random_command, random_commands

# Fallback for a mutation that deletes everything
EMPTY_FALLBACK = INCREMENT


class MutationType(Enum):
    """Per-instruction mutation events."""
    REPLACE = "replace"
    INSERT = "insert"
    DELETE = "delete"


def _replace_mutation(program: str, index: int, rng: random.Random) -> Tuple[str, int]:
    """Swap the instruction for a uniformly drawn one."""
    return random_command(rng), 1


def _insert_mutation(program: str, index: int, rng: random.Random) -> Tuple[str, int]:
    """Keep the instruction and insert 1-4 random instructions after it."""
    insert_count = 1 if rng.random() < 0.7 else rng.randint(2, 4)
    return program[index] + random_commands(insert_count, rng), 1


def _delete_mutation(program: str, index: int, rng: random.Random) -> Tuple[str, int]:
    """Drop the instruction, and sometimes the one after it."""
    if rng.random() < 0.3 and index + 1 < len(program):
        return '', 2
    return '', 1


# Each entry returns (replacement text, number of source instructions consumed)
MUTATION_REGISTRY: Dict[MutationType, Callable[[str, int, random.Random], Tuple[str, int]]] = {
    MutationType.REPLACE: _replace_mutation,
    MutationType.INSERT: _insert_mutation,
    MutationType.DELETE: _delete_mutation,
}

# Cumulative thresholds over a uniform draw
MUTATION_WEIGHTS: List[Tuple[float, MutationType]] = [
    (0.4, MutationType.REPLACE),
    (0.7, MutationType.INSERT),
    (1.0, MutationType.DELETE),
]


def choose_mutation(rng: random.Random) -> MutationType:
    """Pick a mutation event according to MUTATION_WEIGHTS."""
    draw = rng.random()
    for threshold, mutation_type in MUTATION_WEIGHTS:
        if draw < threshold:
            return mutation_type
    return MUTATION_WEIGHTS[-1][1]


def grow(program: str, max_length: int, rng: random.Random) -> str:
    """Prepend or append 1-5 random instructions without passing max_length."""
    room = max_length - len(program)
    if room <= 0:
        return program

    prepend = rng.random() < 0.5
    growth = random_commands(rng.randint(1, min(5, room)), rng)

    return growth + program if prepend else program + growth


def shrink(program: str, rng: random.Random) -> str:
    """Delete one random contiguous segment of 1-5 instructions."""
    start = rng.randrange(len(program))
    segment = rng.randint(1, min(len(program) - start, 5))
    return program[:start] + program[start + segment:]


def mutate(program: str, mutation_rate: float = 0.02, max_length: int = 100,
           rng: Optional[random.Random] = None) -> str:
    """
    Apply mutations to a program with the given per-instruction probability.

    Args:
        program: Program to mutate
        mutation_rate: Probability of a mutation event per instruction; also
            scales the global growth (rate * 0.5) and shrink (rate * 0.3) passes
        max_length: Hard upper bound on the result length
        rng: Random number generator (creates new one if None)

    Returns:
        A mutated program, never empty
    """
    if rng is None:
        rng = random.Random()

    pieces: List[str] = []
    i = 0

    while i < len(program):
        if rng.random() < mutation_rate:
            mutation_func = MUTATION_REGISTRY[choose_mutation(rng)]
            text, consumed = mutation_func(program, i, rng)
            pieces.append(text)
            i += consumed
        else:
            pieces.append(program[i])
            i += 1

    mutated = ''.join(pieces)

    if rng.random() < mutation_rate * 0.5 and len(mutated) < max_length:
        mutated = grow(mutated, max_length, rng)

    if rng.random() < mutation_rate * 0.3 and len(mutated) > 3:
        mutated = shrink(mutated, rng)

    mutated = mutated[:max_length]

    return mutated or EMPTY_FALLBACK
