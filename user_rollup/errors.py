"""Exception taxonomy for the rollup job.

Only DecodeError is recoverable: the pipeline logs and counts it, then moves
on. Everything else aborts the run before the checkpoint is overwritten.
"""


class RollupError(Exception):
    """Base class for rollup failures."""


class ConfigError(RollupError):
    """Invalid or missing configuration."""


class CheckpointError(RollupError):
    """The persisted checkpoint cannot be trusted."""


class DecodeError(RollupError):
    """A single log line could not be decoded into a record."""

    def __init__(self, reason: str, line_number: int = 0, offset: int = 0):
        super().__init__(f"line {line_number}: {reason}")
        self.reason = reason
        self.line_number = line_number
        self.offset = offset
