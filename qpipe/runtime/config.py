"""
Simulator configuration.

Controls when bulk state transforms fan out across threads, whether caller
contracts are validated, and how measurement randomness is seeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import numpy as np


# States with more qubits than this use threaded bulk transforms
PARALLEL_THRESHOLD = 10


@dataclass
class SimulatorConfig:
    """
    Configuration for a simulation run.

    Attributes:
        parallel_threshold: Qubit count above which bulk transforms are threaded
        multithread: Force threading on or off regardless of the threshold
        max_workers: Worker threads for threaded transforms (None = executor default)
        chunk_size: Minimum amplitudes per worker chunk
        validate: Raise on caller-contract violations instead of passing them through
        seed: Seed for measurement sampling
    """
    parallel_threshold: int = PARALLEL_THRESHOLD
    multithread: Optional[bool] = None
    max_workers: Optional[int] = None
    chunk_size: int = 1 << 12
    validate: bool = False
    seed: Optional[int] = None

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    def should_multithread(self, n: int) -> bool:
        """Decide the threading flag for an ``n``-qubit state."""
        if self.multithread is not None:
            return self.multithread
        return n > self.parallel_threshold

    def make_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    @classmethod
    def single_threaded(cls, **kwargs) -> SimulatorConfig:
        return cls(multithread=False, **kwargs)

    @classmethod
    def multi_threaded(cls, **kwargs) -> SimulatorConfig:
        return cls(multithread=True, **kwargs)
