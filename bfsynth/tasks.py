"""
BFSynth Tasks

Task definitions: parsing comma-separated byte datasets into test cases,
built-in preset tasks, and the task-name and similarity heuristics used by
the genome library to find seeds for related tasks.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import DatasetError
from .eval import TestCase

logger = logging.getLogger(__name__)

CUSTOM_TASK = 'Custom Task'

# Task names that share useful building blocks
RELATED_TASKS: List[frozenset] = [
    frozenset({'Increment', 'Double', 'Square'}),
    frozenset({'Echo', 'Constant'}),
    frozenset({'Halve', 'Double'}),
]


def parse_bytes(text: str, strict: bool = False) -> List[int]:
    """
    Parse a comma-separated list of decimal byte values.

    Empty tokens are dropped. In lenient mode a token that is not a byte
    value becomes 0 and a warning is logged.

    Args:
        text: Text such as "1, 2, 3"
        strict: Raise on invalid tokens instead of coercing them

    Returns:
        List of byte values

    Raises:
        DatasetError: In strict mode, for the first invalid token
    """
    values = []
    tokens = [t.strip() for t in text.split(',')]

    for position, token in enumerate(t for t in tokens if t):
        try:
            value = int(token)
        except ValueError:
            value = None

        if value is None or not 0 <= value <= 255:
            if strict:
                raise DatasetError(token, position)
            logger.warning(f"Invalid byte value {token!r} at position {position}, using 0")
            value = 0

        values.append(value)

    return values


def parse_dataset(inputs: str, targets: str, strict: bool = False) -> List[TestCase]:
    """
    Pair comma-separated inputs and targets into test cases.

    Extra values on the longer side are ignored.
    """
    input_values = parse_bytes(inputs, strict)
    target_values = parse_bytes(targets, strict)
    return [TestCase(i, t) for i, t in zip(input_values, target_values)]


@dataclass(frozen=True)
class DataSet:
    """Comma-separated inputs and targets, as entered or stored."""
    inputs: str
    targets: str

    def to_cases(self, strict: bool = False) -> List[TestCase]:
        return parse_dataset(self.inputs, self.targets, strict)

    def pairs(self) -> List[Tuple[int, int]]:
        return [(c.input, c.expected) for c in self.to_cases()]

    @classmethod
    def from_cases(cls, cases: Sequence[TestCase]) -> 'DataSet':
        return cls(inputs=','.join(str(c.input) for c in cases),
                   targets=','.join(str(c.expected) for c in cases))

    def is_empty(self) -> bool:
        return not self.inputs.strip() or not self.targets.strip()


EMPTY_DATASET = DataSet('', '')


@dataclass(frozen=True)
class Preset:
    """A named example task with train and test splits."""
    name: str
    description: str
    train: DataSet
    test: DataSet = EMPTY_DATASET


PRESETS: Dict[str, Preset] = {p.name: p for p in [
    Preset("Double Number", "Multiply input by 2",
           DataSet('1,2,3,4', '2,4,6,8'), DataSet('5,6', '10,12')),
    Preset("Increment", "Add 1 to input",
           DataSet('0,1,2,5', '1,2,3,6'), DataSet('7,10', '8,11')),
    Preset("Square Number", "Square the input (limited to small numbers)",
           DataSet('1,2,3,4', '1,4,9,16'), DataSet('5', '25')),
    Preset("Echo", "Output the same as input",
           DataSet('1,5,10,15', '1,5,10,15'), DataSet('42,100', '42,100')),
    Preset("Constant Output", "Always output 42 regardless of input",
           DataSet('1,5,10,0', '42,42,42,42'), DataSet('7', '42')),
    Preset("Halve Number", "Divide input by 2 (integer division)",
           DataSet('2,4,6,8', '1,2,3,4'), DataSet('10,12', '5,6')),
]}


def get_preset(name: str) -> Preset:
    """Look up a preset by name (case-insensitive)."""
    for preset_name, preset in PRESETS.items():
        if preset_name.lower() == name.lower():
            return preset
    raise KeyError(f"Unknown preset: {name} (available: {', '.join(PRESETS)})")


def infer_task_name(dataset: DataSet) -> str:
    """
    Name the pattern a dataset follows.

    Checks, in order: Increment, Double, Square, Echo, Constant N, Halve.
    Fewer than two pairs, or no match, gives 'Custom Task'.
    """
    pairs = dataset.pairs()
    if len(pairs) < 2:
        return CUSTOM_TASK

    if all(t == i + 1 for i, t in pairs):
        return 'Increment'
    if all(t == i * 2 for i, t in pairs):
        return 'Double'
    if all(t == i * i for i, t in pairs):
        return 'Square'
    if all(t == i for i, t in pairs):
        return 'Echo'
    if all(t == pairs[0][1] for _, t in pairs):
        return f'Constant {pairs[0][1]}'
    if all(t == i // 2 for i, t in pairs):
        return 'Halve'

    return CUSTOM_TASK


def _task_family(name: str) -> str:
    return 'Constant' if name.startswith('Constant ') else name


def _range_ratio(a: Sequence[int], b: Sequence[int]) -> float:
    range_a = max(a) - min(a)
    range_b = max(b) - min(b)
    if max(range_a, range_b) == 0:
        return 1.0
    return min(range_a, range_b) / max(range_a, range_b)


def task_similarity(name_a: str, name_b: str, data_a: DataSet, data_b: DataSet) -> float:
    """
    Heuristic similarity between two tasks in [0, 1].

    Same name scores 0.9, related names 0.6. Otherwise the score compares
    the spread of inputs and of targets and stays at or below 0.5.
    """
    if name_a == name_b:
        return 0.9

    family_a, family_b = _task_family(name_a), _task_family(name_b)
    for group in RELATED_TASKS:
        if family_a in group and family_b in group:
            return 0.6

    pairs_a, pairs_b = data_a.pairs(), data_b.pairs()
    if not pairs_a or not pairs_b:
        return 0.1

    input_ratio = _range_ratio([i for i, _ in pairs_a], [i for i, _ in pairs_b])
    output_ratio = _range_ratio([t for _, t in pairs_a], [t for _, t in pairs_b])

    return (input_ratio + output_ratio) / 4


def task_signature(train: DataSet, test: Optional[DataSet] = None) -> str:
    """Exact identity of a task: its train data, plus test data when present."""
    parts = [train.inputs, train.targets]
    if test is not None and not test.is_empty():
        parts.extend([test.inputs, test.targets])
    return '|'.join(parts)
