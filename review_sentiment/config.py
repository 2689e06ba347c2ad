from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from joblib import effective_n_jobs


TRAINERS = ('gd', 'sgd')


@dataclass
class DriverConfig:
    input_path: str = 'imdb_labelled.txt'
    dimension: int = 10000
    train_fraction: float = 0.6
    seed: int = 11
    iterations: int = 1000
    trainer: str = 'gd'  # gd|sgd
    step_size: float = 1.0
    reg_param: float = 0.01
    mini_batch_fraction: float = 1.0
    stratify: bool = False
    skip_malformed: bool = False
    # Execution context
    app_name: str = 'Linear Support Vector Machine (SVM) model'
    n_jobs: int = 4
    prefer: str = 'threads'  # threads|processes
    num_partitions: Optional[int] = None  # defaults to n_jobs
    # Reporting
    outputs_dir: Optional[str] = None
    sample_size: int = 10
    log_level: str = 'INFO'
    progress: bool = True

    def partitions(self) -> int:
        if self.num_partitions:
            return int(self.num_partitions)
        return max(1, effective_n_jobs(self.n_jobs))

    def validate(self) -> 'DriverConfig':
        """Raise ValueError for settings the pipeline cannot run with."""
        if self.dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {self.dimension}")
        if not 0.0 < self.train_fraction < 1.0:
            raise ValueError(f"train_fraction must be in (0, 1), got {self.train_fraction}")
        if self.iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {self.iterations}")
        if not 0.0 < self.mini_batch_fraction <= 1.0:
            raise ValueError(f"mini_batch_fraction must be in (0, 1], got {self.mini_batch_fraction}")
        if self.step_size <= 0:
            raise ValueError(f"step_size must be positive, got {self.step_size}")
        if self.reg_param < 0:
            raise ValueError(f"reg_param must be non-negative, got {self.reg_param}")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")
        if self.num_partitions is not None and self.num_partitions < 1:
            raise ValueError(f"num_partitions must be >= 1, got {self.num_partitions}")
        if self.prefer not in ('threads', 'processes'):
            raise ValueError(f"prefer must be 'threads' or 'processes', got {self.prefer!r}")
        if self.trainer.lower() not in TRAINERS:
            raise ValueError(
                "Unknown trainer '" + self.trainer + "'. Expected one of: " + ', '.join(TRAINERS)
            )
        if self.sample_size < 0:
            raise ValueError(f"sample_size must be >= 0, got {self.sample_size}")
        return self
