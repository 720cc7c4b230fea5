"""Engine configuration."""

from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Options shared by validation and execution.

    Attributes:
        max_depth: Reject queries nested deeper than this (None = unlimited)
        serial_mutations: Execute root mutation fields one after another
        run_expensive_in_thread: Run synchronous resolvers of fields marked
            expensive in a worker thread instead of the event loop
    """
    max_depth: int | None = None
    serial_mutations: bool = True
    run_expensive_in_thread: bool = True

    def __post_init__(self):
        if self.max_depth is not None and self.max_depth < 1:
            raise ValueError("max_depth must be a positive integer")
