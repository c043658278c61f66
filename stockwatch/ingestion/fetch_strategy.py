"""Ordered fallback chains over upstream sources."""

import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from stockwatch.config import config
from .models import Dataset


logger = logging.getLogger(__name__)

NO_SOURCE = "none"


@dataclass(frozen=True)
class SourceAttempt:
    """One upstream source in a fallback chain.

    ``fetch`` returns already normalized records; an empty list means the
    source had nothing usable.
    """

    name: str
    fetch: Callable[[], Sequence]
    timeout: float = config.sources.SOURCE_TIMEOUT


class FetchStrategy:
    """Tries a dataset's sources in order until one yields records."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def run(self, dataset_name: str, attempts: List[SourceAttempt]) -> Dataset:
        """Run a fallback chain and wrap the winner in a Dataset.

        Sources run one after another; a failure or timeout counts as an
        empty result. When every source comes back empty the dataset is
        empty, which is a valid outcome rather than an error.
        """
        for attempt in attempts:
            records = self._try(dataset_name, attempt)
            if records:
                logger.info(f"{dataset_name}: {len(records)} records from {attempt.name}")
                return Dataset(
                    name=dataset_name,
                    records=tuple(records),
                    fetched_at=self.clock(),
                    source_used=attempt.name,
                )
            logger.info(f"{dataset_name}: {attempt.name} returned no records, trying next source")

        logger.error(f"{dataset_name}: all {len(attempts)} sources exhausted without data")
        return Dataset(
            name=dataset_name,
            records=(),
            fetched_at=self.clock(),
            source_used=NO_SOURCE,
        )

    def _try(self, dataset_name: str, attempt: SourceAttempt) -> Optional[Sequence]:
        # Each attempt gets its own daemon thread, so a source that hangs past
        # its timeout never holds up the ones after it
        future = Future()

        def work():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(attempt.fetch())
            except Exception as e:
                future.set_exception(e)

        threading.Thread(target=work, name=f"source-{attempt.name}", daemon=True).start()

        try:
            return future.result(timeout=attempt.timeout)
        except FutureTimeoutError:
            # The worker keeps running; its result is discarded
            future.cancel()
            logger.warning(f"{dataset_name}: {attempt.name} timed out after {attempt.timeout}s")
        except Exception as e:
            logger.warning(f"{dataset_name}: {attempt.name} failed: {e}")
        return None
