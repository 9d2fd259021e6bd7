"""
Execution strategies for batches of independent tasks.

The orchestrator hands a function and a list of tasks to an ``Executor`` and
gets one ``TaskOutcome`` per task back, in task order. A failing task never
stops the others: its exception is stored in its outcome.

Author: Diego Bengochea
"""

import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from tqdm import tqdm

from shared_utils import get_logger


# Upper bound on worker processes, whatever the machine
MAX_PARALLEL_WORKERS = 7


@dataclass
class TaskOutcome:
    """Result or error of one task."""
    index: int
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_n_workers(n_tasks: int, max_workers: int = MAX_PARALLEL_WORKERS) -> int:
    """
    Number of worker processes for a batch.

    At most one less than the available cores, one per task and ``max_workers``;
    never less than one.
    """
    return max(1, min(multiprocessing.cpu_count() - 1, n_tasks, max_workers))


class Executor:
    """Runs ``fn`` over tasks and returns outcomes in task order."""

    def run(self, fn: Callable[[Any], Any], tasks: Sequence[Any], desc: str = "Processing") -> List[TaskOutcome]:
        raise NotImplementedError


class SequentialExecutor(Executor):
    """Runs tasks one after the other in the calling process."""

    def __init__(self, show_progress: bool = True):
        self.show_progress = show_progress

    def run(self, fn, tasks, desc="Processing"):
        outcomes = []
        for i, task in enumerate(tqdm(tasks, desc=desc, disable=not self.show_progress)):
            try:
                outcomes.append(TaskOutcome(index=i, result=fn(task)))
            except Exception as e:
                outcomes.append(TaskOutcome(index=i, error=e))
        return outcomes


class ParallelExecutor(Executor):
    """
    Runs tasks on a bounded pool of worker processes.

    ``fn`` and the tasks must be picklable. Results are reassembled by task
    index, not by completion order.
    """

    def __init__(self, n_workers: Optional[int] = None, show_progress: bool = True):
        self.n_workers = n_workers
        self.show_progress = show_progress

    def run(self, fn, tasks, desc="Processing"):
        logger = get_logger('masking')
        if not tasks:
            return []

        n_workers = self.n_workers or resolve_n_workers(len(tasks))
        logger.info(f"Using {n_workers} worker processes for {len(tasks)} tasks")

        outcomes: List[Optional[TaskOutcome]] = [None] * len(tasks)
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            futures = {executor.submit(fn, task): i for i, task in enumerate(tasks)}
            for future in tqdm(as_completed(futures), total=len(futures), desc=desc,
                               disable=not self.show_progress):
                i = futures[future]
                try:
                    outcomes[i] = TaskOutcome(index=i, result=future.result())
                except Exception as e:
                    outcomes[i] = TaskOutcome(index=i, error=e)

        return outcomes


def get_executor(parallel: bool, n_tasks: int = 0, show_progress: bool = True) -> Executor:
    """
    Pick the execution strategy.

    Args:
        parallel: Use worker processes
        n_tasks: Number of tasks (bounds the pool size)
        show_progress: Display a progress bar

    Returns:
        Executor: Sequential executor, or a bounded process pool
    """
    if parallel and n_tasks > 1:
        return ParallelExecutor(resolve_n_workers(n_tasks), show_progress=show_progress)
    return SequentialExecutor(show_progress=show_progress)
