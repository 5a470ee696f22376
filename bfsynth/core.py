"""
BFSynth Core Interpreter

This module implements the bounded-step Brainfuck interpreter that every
candidate program is scored with. Programs are plain strings over an
8-symbol alphabet; loops are not required to be balanced.
"""

from typing import Dict, List, Optional, Union


# Instruction alphabet
ADVANCE = '>'
RETREAT = '<'
INCREMENT = '+'
DECREMENT = '-'
OUTPUT = '.'
INPUT = ','
LOOP_OPEN = '['
LOOP_CLOSE = ']'

COMMANDS = (ADVANCE, RETREAT, INCREMENT, DECREMENT, OUTPUT, INPUT, LOOP_OPEN, LOOP_CLOSE)
COMMAND_SET = frozenset(COMMANDS)

TAPE_SIZE = 30000
CELL_MODULUS = 256
DEFAULT_MAX_STEPS = 10000

InputData = Union[bytes, bytearray, str, int, None]


def build_bracket_map(program: str) -> Dict[int, int]:
    """
    Pair every loop-open with its nearest unmatched following loop-close.

    A single stack pass. Brackets without a partner get no entry, which the
    interpreter treats as a halting jump target.

    Args:
        program: Program text

    Returns:
        Mapping from each matched bracket index to its partner index
    """
    bracket_map: Dict[int, int] = {}
    stack: List[int] = []

    for i, command in enumerate(program):
        if command == LOOP_OPEN:
            stack.append(i)
        elif command == LOOP_CLOSE and stack:
            start = stack.pop()
            bracket_map[start] = i
            bracket_map[i] = start

    return bracket_map


def is_balanced(program: str) -> bool:
    """Return True if every bracket in the program has a partner."""
    depth = 0
    for command in program:
        if command == LOOP_OPEN:
            depth += 1
        elif command == LOOP_CLOSE:
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def clean_program(text: str) -> str:
    """Strip every character that is not an instruction."""
    return ''.join(ch for ch in text if ch in COMMAND_SET)


def _input_bytes(input_data: InputData) -> bytes:
    if input_data is None:
        return b''
    if isinstance(input_data, int):
        return bytes([input_data % CELL_MODULUS])
    if isinstance(input_data, str):
        return bytes(ord(ch) % CELL_MODULUS for ch in input_data)
    return bytes(input_data)


class TapeInterpreter:
    """
    Step-limited interpreter for the tape language.

    Each call to run() starts from a fresh zeroed tape. The final tape,
    tape pointer and step count of the most recent run stay readable on the
    instance for inspection; they never influence the next run.

    Termination happens when the instruction pointer runs past the end of
    the program, when a jump targets an unmatched bracket, or when the step
    budget is exhausted. None of these is an error: the output accumulated
    so far is returned.
    """

    def __init__(self, max_steps: int = DEFAULT_MAX_STEPS, tape_size: int = TAPE_SIZE):
        if max_steps < 0:
            raise ValueError(f"max_steps must be >= 0, got {max_steps}")
        if tape_size < 1:
            raise ValueError(f"tape_size must be >= 1, got {tape_size}")
        self.max_steps = max_steps
        self.tape_size = tape_size

        # State of the last run
        self.tape: Optional[bytearray] = None
        self.pointer = 0
        self.step_count = 0
        self.halted_on_unmatched = False

    def run(self, program: str, input_data: InputData = None) -> str:
        """
        Execute a program against an input sequence.

        Args:
            program: Program text; characters outside the alphabet are no-ops
            input_data: Input bytes (a str is read by code point, an int is a
                single byte). Reads past the end store 0.

        Returns:
            Output text, one character per executed output instruction
        """
        data = _input_bytes(input_data)
        bracket_map = build_bracket_map(program)
        tape = bytearray(self.tape_size)
        tape_size = self.tape_size
        max_steps = self.max_steps
        length = len(program)

        pointer = 0
        code_pointer = 0
        input_pointer = 0
        steps = 0
        halted = False
        output: List[str] = []

        while code_pointer < length and steps < max_steps:
            command = program[code_pointer]
            steps += 1

            if command == ADVANCE:
                pointer = (pointer + 1) % tape_size
            elif command == RETREAT:
                pointer = (pointer - 1) % tape_size
            elif command == INCREMENT:
                tape[pointer] = (tape[pointer] + 1) % CELL_MODULUS
            elif command == DECREMENT:
                tape[pointer] = (tape[pointer] - 1) % CELL_MODULUS
            elif command == OUTPUT:
                output.append(chr(tape[pointer]))
            elif command == INPUT:
                if input_pointer < len(data):
                    tape[pointer] = data[input_pointer]
                    input_pointer += 1
                else:
                    tape[pointer] = 0
            elif command == LOOP_OPEN:
                if tape[pointer] == 0:
                    target = bracket_map.get(code_pointer)
                    if target is None:
                        halted = True
                        break
                    code_pointer = target
            elif command == LOOP_CLOSE:
                if tape[pointer] != 0:
                    target = bracket_map.get(code_pointer)
                    if target is None:
                        halted = True
                        break
                    code_pointer = target

            code_pointer += 1

        self.tape = tape
        self.pointer = pointer
        self.step_count = steps
        self.halted_on_unmatched = halted

        return ''.join(output)

    def cell(self, index: Optional[int] = None) -> int:
        """Value of a tape cell after the last run (default: the current cell)."""
        if self.tape is None:
            raise RuntimeError("Interpreter has not run a program yet")
        if index is None:
            index = self.pointer
        return self.tape[index % self.tape_size]


def execute(program: str, input_data: InputData = None, max_steps: int = DEFAULT_MAX_STEPS) -> str:
    """
    Run a program once and return its output.

    Pure function: identical arguments always give identical output.

    Args:
        program: Program text
        input_data: Input bytes, see TapeInterpreter.run()
        max_steps: Step budget

    Returns:
        Output text
    """
    return TapeInterpreter(max_steps=max_steps).run(program, input_data)


def output_bytes(output: str) -> bytes:
    """Encode interpreter output as raw bytes."""
    return bytes(ord(ch) for ch in output)
