"""
BFSynth Errors

Exception types raised at the package boundaries: settings updates,
dataset parsing and genome storage. The evolutionary core itself never
raises under valid settings.
"""

from typing import Optional


class BFSynthError(Exception):
    """Base class for all BFSynth errors."""


class SettingsError(BFSynthError, ValueError):
    """GA settings that violate a precondition of the engine."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class DatasetError(BFSynthError, ValueError):
    """A dataset token that is not a decimal byte value."""

    def __init__(self, token: str, position: int):
        super().__init__(f"Invalid byte value {token!r} at position {position} (expected 0-255)")
        self.token = token
        self.position = position


class GenomeDecodeError(BFSynthError, ValueError):
    """A stored genome record that does not match the expected schema."""

    def __init__(self, field: str, message: str, record_id: Optional[str] = None):
        where = f" in record {record_id}" if record_id else ""
        super().__init__(f"Cannot decode field {field!r}{where}: {message}")
        self.field = field
        self.record_id = record_id


class GenomeNotFoundError(BFSynthError, KeyError):
    """Lookup or deletion of a genome id that is not stored."""

    def __init__(self, genome_id: str):
        super().__init__(genome_id)
        self.genome_id = genome_id

    def __str__(self):
        return f"Genome not found: {self.genome_id}"
