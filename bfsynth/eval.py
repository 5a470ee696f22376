"""
BFSynth Evaluation System

This module scores a program against the train and test splits of a task
and derives accuracy and fitness. Fitness is training accuracy minus a
small length penalty; the test split is only reported, never optimized.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .core import DEFAULT_MAX_STEPS, TapeInterpreter

logger = logging.getLogger(__name__)

# Output recorded for a case whose execution raised
ERROR_OUTPUT = '[ERROR]'

LENGTH_PENALTY_PER_SYMBOL = 0.1
MAX_LENGTH_PENALTY = 5.0


@dataclass(frozen=True)
class TestCase:
    """One input byte and the byte the program must output for it."""
    input: int
    expected: int

    # Keep pytest from collecting this class
    __test__ = False

    def __post_init__(self):
        for name in ('input', 'expected'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 255:
                raise ValueError(f"TestCase.{name} must be a byte value 0-255, got {value!r}")

    @property
    def input_bytes(self) -> bytes:
        return bytes([self.input])

    @property
    def expected_output(self) -> str:
        """Exact output text a passing program produces."""
        return chr(self.expected)


@dataclass(frozen=True)
class Individual:
    """
    A program together with its cached evaluation results.

    `accuracy`, `results` and `outputs` are the display-facing fields and
    mirror the train split. Instances are never modified; a changed program
    is a new Individual.
    """
    program: str
    fitness: float
    accuracy: float
    results: Tuple[bool, ...]
    outputs: Tuple[str, ...]
    train_results: Tuple[bool, ...]
    train_outputs: Tuple[str, ...]
    train_accuracy: float
    test_results: Tuple[bool, ...]
    test_outputs: Tuple[str, ...]
    test_accuracy: float

    def size(self) -> int:
        """Return the size of the program (number of instructions)."""
        return len(self.program)


def length_penalty(program: str) -> float:
    """Penalty of 0.1 per instruction, capped at 5 points."""
    return min(len(program) * LENGTH_PENALTY_PER_SYMBOL, MAX_LENGTH_PENALTY)


def run_cases(interpreter: TapeInterpreter, program: str,
              cases: Sequence[TestCase]) -> Tuple[List[bool], List[str], float]:
    """
    Run a program once per case.

    An exception while running a case is logged and recorded as a failing
    case with ERROR_OUTPUT; it is not propagated.

    Args:
        interpreter: Interpreter carrying the step budget
        program: Program text
        cases: Cases to run

    Returns:
        Tuple of (per-case pass flags, per-case outputs, accuracy in percent)
    """
    results: List[bool] = []
    outputs: List[str] = []
    passed = 0

    for case in cases:
        try:
            output = interpreter.run(program, case.input_bytes)
        except Exception as e:
            logger.warning(f"Execution failed for program {program!r} on input {case.input}: {e}")
            outputs.append(ERROR_OUTPUT)
            results.append(False)
            continue

        outputs.append(output)
        ok = output == case.expected_output
        results.append(ok)
        if ok:
            passed += 1

    accuracy = passed / len(cases) * 100 if cases else 0.0
    return results, outputs, accuracy


def evaluate(program: str, train_cases: Sequence[TestCase],
             test_cases: Sequence[TestCase] = (),
             max_steps: int = DEFAULT_MAX_STEPS) -> Individual:
    """
    Evaluate a program on both splits.

    Args:
        program: Program text
        train_cases: Cases that drive fitness
        test_cases: Held-out cases, reported only
        max_steps: Interpreter step budget per case

    Returns:
        The scored Individual
    """
    interpreter = TapeInterpreter(max_steps=max_steps)

    train_results, train_outputs, train_accuracy = run_cases(interpreter, program, train_cases)
    test_results, test_outputs, test_accuracy = run_cases(interpreter, program, test_cases)

    fitness = max(0.0, train_accuracy - length_penalty(program))

    return Individual(
        program=program,
        fitness=fitness,
        accuracy=train_accuracy,
        results=tuple(train_results),
        outputs=tuple(train_outputs),
        train_results=tuple(train_results),
        train_outputs=tuple(train_outputs),
        train_accuracy=train_accuracy,
        test_results=tuple(test_results),
        test_outputs=tuple(test_outputs),
        test_accuracy=test_accuracy,
    )


class FitnessEvaluator:
    """Evaluator bound to one task and step budget."""

    def __init__(self, train_cases: Sequence[TestCase], test_cases: Sequence[TestCase] = (),
                 max_steps: int = DEFAULT_MAX_STEPS):
        self.train_cases = tuple(train_cases)
        self.test_cases = tuple(test_cases)
        self.max_steps = max_steps
        self.evaluations = 0

    def __call__(self, program: str) -> Individual:
        self.evaluations += 1
        individual = evaluate(program, self.train_cases, self.test_cases, self.max_steps)
        logger.debug(f"Evaluated {program!r}: F={individual.fitness:.2f}, "
                     f"train={individual.train_accuracy:.1f}%, test={individual.test_accuracy:.1f}%")
        return individual
