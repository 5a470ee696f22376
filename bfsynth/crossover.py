"""
BFSynth Crossover

Recombination of two parent programs into two children. One of four
strategies is drawn per call: single-point, two-point, merge and uniform.
"""

import random
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .mutation import EMPTY_FALLBACK


class CrossoverType(Enum):
    """Available recombination strategies."""
    SINGLE_POINT = "single_point"
    TWO_POINT = "two_point"
    MERGE = "merge"
    UNIFORM = "uniform"


def _single_point_crossover(a: str, b: str, rng: random.Random) -> Tuple[str, str]:
    """Cut each parent at its own random point and swap the tails."""
    point_a = rng.randrange(len(a))
    point_b = rng.randrange(len(b))
    return a[:point_a] + b[point_b:], b[:point_b] + a[point_a:]


def _segment(program: str, rng: random.Random) -> Tuple[int, int]:
    start = rng.randrange(len(program))
    end = start + rng.randrange(len(program) - start)
    return start, end


def _two_point_crossover(a: str, b: str, rng: random.Random) -> Tuple[str, str]:
    """Swap one random middle segment between the parents."""
    start_a, end_a = _segment(a, rng)
    start_b, end_b = _segment(b, rng)
    child_a = a[:start_a] + b[start_b:end_b] + a[end_a:]
    child_b = b[:start_b] + a[start_a:end_a] + b[end_b:]
    return child_a, child_b


def interleave(first: str, second: str, rng: Optional[random.Random] = None) -> str:
    """
    Alternate segments of 1-5 instructions from two programs.

    Once one program is used up, the rest of the other is copied over.

    Args:
        first: Program contributing the first segment
        second: Program contributing the second segment
        rng: Random number generator (creates new one if None)

    Returns:
        Interleaved program, "+" if both inputs are empty
    """
    if rng is None:
        rng = random.Random()

    pieces: List[str] = []
    i1 = i2 = 0
    use_first = True

    while i1 < len(first) or i2 < len(second):
        segment = rng.randint(1, 5)

        if use_first and i1 < len(first):
            end = min(i1 + segment, len(first))
            pieces.append(first[i1:end])
            i1 = end
        elif not use_first and i2 < len(second):
            end = min(i2 + segment, len(second))
            pieces.append(second[i2:end])
            i2 = end

        use_first = not use_first

        if i1 >= len(first):
            use_first = False
        if i2 >= len(second):
            use_first = True

    return ''.join(pieces) or EMPTY_FALLBACK


def _merge_crossover(a: str, b: str, rng: random.Random) -> Tuple[str, str]:
    """Interleave the parents, or concatenate them in random order."""
    if rng.random() < 0.5:
        return interleave(a, b, rng), interleave(b, a, rng)

    child_a = a + b if rng.random() < 0.5 else b + a
    child_b = b + a if rng.random() < 0.5 else a + b
    return child_a, child_b


def _uniform_crossover(a: str, b: str, rng: random.Random) -> Tuple[str, str]:
    """Swap each aligned position with probability 0.5."""
    child_a: List[str] = []
    child_b: List[str] = []

    for i in range(max(len(a), len(b))):
        char_a = a[i] if i < len(a) else ''
        char_b = b[i] if i < len(b) else ''

        if rng.random() < 0.5:
            child_a.append(char_a)
            child_b.append(char_b)
        else:
            child_a.append(char_b)
            child_b.append(char_a)

    return ''.join(child_a) or EMPTY_FALLBACK, ''.join(child_b) or EMPTY_FALLBACK


CROSSOVER_REGISTRY: Dict[CrossoverType, Callable[[str, str, random.Random], Tuple[str, str]]] = {
    CrossoverType.SINGLE_POINT: _single_point_crossover,
    CrossoverType.TWO_POINT: _two_point_crossover,
    CrossoverType.MERGE: _merge_crossover,
    CrossoverType.UNIFORM: _uniform_crossover,
}

# Cumulative thresholds over a uniform draw
CROSSOVER_WEIGHTS: List[Tuple[float, CrossoverType]] = [
    (0.4, CrossoverType.SINGLE_POINT),
    (0.7, CrossoverType.TWO_POINT),
    (0.85, CrossoverType.MERGE),
    (1.0, CrossoverType.UNIFORM),
]


def choose_crossover(rng: random.Random) -> CrossoverType:
    """Pick a crossover strategy according to CROSSOVER_WEIGHTS."""
    draw = rng.random()
    for threshold, crossover_type in CROSSOVER_WEIGHTS:
        if draw < threshold:
            return crossover_type
    return CROSSOVER_WEIGHTS[-1][1]


def crossover(parent_a: str, parent_b: str,
              rng: Optional[random.Random] = None) -> Tuple[str, str]:
    """
    Combine two parent programs into two children.

    Args:
        parent_a: First parent program
        parent_b: Second parent program
        rng: Random number generator (creates new one if None)

    Returns:
        Tuple of two child programs; the parents themselves if either is empty
    """
    if not parent_a or not parent_b:
        return parent_a, parent_b

    if rng is None:
        rng = random.Random()

    crossover_func = CROSSOVER_REGISTRY[choose_crossover(rng)]
    return crossover_func(parent_a, parent_b, rng)
