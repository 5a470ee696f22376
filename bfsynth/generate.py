"""
BFSynth Program Generator

Random program construction under a bracket-balance constraint, plus the
length mix used to seed an initial population.
"""

import random
from typing import Optional

from .core import COMMANDS, LOOP_CLOSE, LOOP_OPEN

# Commands that may be drawn while no loop is open
OPENING_COMMANDS = tuple(c for c in COMMANDS if c != LOOP_CLOSE)

# Length ranges of the initial population mix
SHORT_RANGE = (5, 15)
MEDIUM_RANGE = (16, 40)
LONG_MIN = 41


def random_command(rng: random.Random) -> str:
    """Draw one instruction uniformly from the full alphabet."""
    return COMMANDS[rng.randrange(len(COMMANDS))]


def random_commands(count: int, rng: random.Random) -> str:
    """Draw `count` instructions uniformly from the full alphabet."""
    return ''.join(random_command(rng) for _ in range(count))


def generate_random_program(target_length: int, max_length: int = 100,
                            rng: Optional[random.Random] = None) -> str:
    """
    Generate a random program of roughly `target_length` instructions.

    A loop-close is never drawn while no loop is open. Once the target
    length is reached, one loop-close per open loop is appended for as long
    as the program stays under `max_length`; anything beyond `max_length`
    is cut off, so the result may still hold unmatched loop-opens.

    Args:
        target_length: Number of randomly drawn instructions
        max_length: Hard upper bound on program length
        rng: Random number generator (creates new one if None)

    Returns:
        Program text
    """
    if rng is None:
        rng = random.Random()

    commands = []
    depth = 0

    for _ in range(target_length):
        pool = COMMANDS if depth > 0 else OPENING_COMMANDS
        command = pool[rng.randrange(len(pool))]

        if command == LOOP_OPEN:
            depth += 1
        elif command == LOOP_CLOSE:
            depth -= 1

        commands.append(command)

    while depth > 0 and len(commands) < max_length:
        commands.append(LOOP_CLOSE)
        depth -= 1

    return ''.join(commands[:max_length])


def random_program_length(max_program_length: int, rng: random.Random) -> int:
    """
    Draw a target length from the initial-population length mix.

    20% short (5-15), 60% medium (16-40), 20% long (41 up to
    `max_program_length`).
    """
    category = rng.random()

    if category < 0.2:
        return rng.randint(*SHORT_RANGE)
    elif category < 0.8:
        return rng.randint(*MEDIUM_RANGE)
    else:
        return rng.randint(LONG_MIN, max(LONG_MIN, max_program_length))


def random_refill_length(max_program_length: int, rng: random.Random) -> int:
    """Target length for programs that top up an incomplete generation."""
    return rng.randint(5, min(max_program_length, 50) + 4)
