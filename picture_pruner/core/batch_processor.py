# core/batch_processor.py

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterator, List, Optional, Sequence

from tqdm import tqdm

from picture_pruner.core.exceptions import AnalysisCancelled


class BatchProcessor:
    """
    Bounded parallel map over files

    Per-file work (hashing, decoding) is I/O heavy and shares no state, so
    a thread pool is enough. `n_workers` caps open file handles. Results
    always come back in input order, so a parallel run and a sequential
    one (`n_workers=1`) give identical output.
    """

    def __init__(self,
                 n_workers: Optional[int] = None,
                 chunk_size: int = 256,
                 show_progress: bool = False):
        self.n_workers = max(1, n_workers or min(8, os.cpu_count() or 1))
        self.chunk_size = max(1, chunk_size)
        self.show_progress = show_progress

    def _chunks(self, items: Sequence[Any]) -> Iterator[Sequence[Any]]:
        for i in range(0, len(items), self.chunk_size):
            yield items[i:i + self.chunk_size]

    def process_files(self,
                      items: Sequence[Any],
                      process_func: Callable[[Any], Any],
                      desc: str = "Processing files",
                      cancel_event: Optional[threading.Event] = None) -> List[Any]:
        """
        Apply process_func to every item

        Work is submitted chunk by chunk; the cancel event is checked
        between chunks so an aborted run stops without waiting for the
        whole batch.
        """
        results: List[Any] = []

        with tqdm(total=len(items), desc=desc, disable=not self.show_progress) as bar:
            if self.n_workers == 1:
                for item in items:
                    if cancel_event is not None and cancel_event.is_set():
                        raise AnalysisCancelled(f"{desc} cancelled")
                    results.append(process_func(item))
                    bar.update(1)
                return results

            with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
                for chunk in self._chunks(items):
                    if cancel_event is not None and cancel_event.is_set():
                        raise AnalysisCancelled(f"{desc} cancelled")
                    for result in executor.map(process_func, chunk):
                        results.append(result)
                        bar.update(1)

        return results
