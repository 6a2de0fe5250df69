from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from joblib import Parallel, cpu_count, delayed

from .logger import get_logger


class WorkerPool:
    """Explicit joblib worker pool with a start/shutdown lifecycle.

    The underlying ``Parallel`` object is entered once on ``start`` so the
    same workers are reused across every ``map`` call until ``shutdown``.

    Example:
        with WorkerPool(n_jobs=-1) as pool:
            results = pool.map(func, [(a, b), (c, d)])
    """

    def __init__(self, n_jobs: int = -1, backend: str = "loky", verbose: int = 0):
        cpu = cpu_count() or 1
        self.n_jobs = cpu if n_jobs is None or n_jobs < 0 else int(min(max(n_jobs, 1), cpu))
        self.backend = backend
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self._parallel: Optional[Parallel] = None

    @property
    def running(self) -> bool:
        return self._parallel is not None

    def start(self) -> "WorkerPool":
        if self._parallel is not None:
            return self
        self._parallel = Parallel(n_jobs=self.n_jobs, backend=self.backend, verbose=self.verbose)
        self._parallel.__enter__()
        self.logger.info(f"Worker pool started: backend={self.backend}, n_jobs={self.n_jobs}")
        return self

    def shutdown(self) -> None:
        if self._parallel is None:
            return
        self._parallel.__exit__(None, None, None)
        self._parallel = None
        self.logger.info("Worker pool shut down")

    def map(self, func: Callable[..., Any], tasks: Iterable[tuple]) -> list[Any]:
        """Run ``func(*task)`` for every task; results keep task order."""
        if self._parallel is None:
            raise RuntimeError("Call start() before map().")
        return list(self._parallel(delayed(func)(*task) for task in tasks))

    def __enter__(self) -> "WorkerPool":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
