from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Any, Callable, List, Optional

import numpy as np
from joblib import Parallel, delayed

from .config import DriverConfig


logger = logging.getLogger("review_sentiment")


class ExecutionContext:
    """Local compute context: a joblib worker pool with an explicit lifecycle.

    Build one with :meth:`create` and release it with :meth:`close`, or use it
    as a context manager. Row-wise work is dispatched per partition through
    :meth:`map_partitions`; results always come back in partition order.
    """

    def __init__(self, app_name: str, n_jobs: int = 4, prefer: str = 'threads',
                 num_partitions: Optional[int] = None):
        self.app_name = app_name
        self.n_jobs = n_jobs
        self.prefer = prefer
        self.num_partitions = num_partitions or 1
        self._stack: Optional[ExitStack] = None
        self._parallel: Optional[Parallel] = None

    @classmethod
    def create(cls, cfg: DriverConfig) -> 'ExecutionContext':
        ctx = cls(cfg.app_name, n_jobs=cfg.n_jobs, prefer=cfg.prefer, num_partitions=cfg.partitions())
        ctx._open()
        return ctx

    def _open(self) -> None:
        stack = ExitStack()
        self._parallel = stack.enter_context(Parallel(n_jobs=self.n_jobs, prefer=self.prefer))
        self._stack = stack
        logger.info("Started context '%s' | n_jobs=%s, prefer=%s, partitions=%d",
                    self.app_name, self.n_jobs, self.prefer, self.num_partitions)

    @property
    def closed(self) -> bool:
        return self._stack is None

    def close(self) -> None:
        if self._stack is None:
            return
        stack, self._stack, self._parallel = self._stack, None, None
        stack.close()
        logger.info("Closed context '%s'", self.app_name)

    def __enter__(self) -> 'ExecutionContext':
        if self.closed:
            self._open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def partition_bounds(self, n_rows: int) -> List[tuple[int, int]]:
        """Contiguous [start, stop) row ranges, at most ``num_partitions`` of them."""
        n_parts = max(1, min(self.num_partitions, n_rows))
        edges = np.linspace(0, n_rows, n_parts + 1).astype(int)
        return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:])]

    def map_partitions(self, func: Callable[..., Any], data, *args: Any) -> List[Any]:
        """Apply ``func(chunk, *args)`` to each row partition of ``data``.

        ``data`` may be a list, a NumPy array or a SciPy sparse matrix; chunks
        are slices of it.
        """
        if self._parallel is None:
            raise RuntimeError(f"context '{self.app_name}' is closed")
        n_rows = data.shape[0] if hasattr(data, 'shape') else len(data)
        if n_rows == 0:
            return []
        bounds = self.partition_bounds(n_rows)
        return self._parallel(delayed(func)(data[a:b], *args) for a, b in bounds)
