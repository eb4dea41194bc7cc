"""Translation engine — batches, worker pool, rate limiting and retries."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from .providers import ProviderAdapter, ProviderError, ProviderResponseError, ThrottledError
from .rate_limiter import SlidingWindowRateLimiter

log = logging.getLogger(__name__)


def split_batches(texts: dict, size: int) -> list[dict]:
    """Split an ordered map into consecutive chunks of at most *size* keys."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    items = list(texts.items())
    return [dict(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class BatchOutcome:
    """Result of one batch: translated texts, or the error that ended it."""
    index: int
    texts: dict
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TranslationJobError(Exception):
    """A batch failed, so the whole job failed."""

    def __init__(self, batch_index: int, batch_count: int, cause: Exception):
        super().__init__(f"Batch {batch_index + 1}/{batch_count} failed: {cause}")
        self.batch_index = batch_index
        self.batch_count = batch_count
        self.cause = cause


class BatchTranslationEngine:
    """Translates a {key: text} map through one provider.

    Batches run on a thread pool sized by the provider's concurrency limit.
    If the provider has a per-minute cost cap, every worker goes through the
    same sliding-window limiter before it sends a request.
    """

    def __init__(self, provider: ProviderAdapter,
                 progress: Optional[Callable[[int, int], None]] = None,
                 sleep=time.sleep, limiter: Optional[SlidingWindowRateLimiter] = None):
        self.provider = provider
        self.config = provider.config
        self.progress = progress
        self._sleep = sleep
        if limiter is None and self.config.max_cost_per_minute:
            limiter = SlidingWindowRateLimiter(self.config.max_cost_per_minute, sleep=sleep)
        self.limiter = limiter

    def translate(self, texts: dict,
                  progress: Optional[Callable[[int, int], None]] = None) -> dict:
        """Translate every value in *texts*; raises TranslationJobError on failure."""
        if not texts:
            return {}
        report = progress or self.progress

        batches = split_batches(texts, self.config.batch_size)
        total = len(texts)
        count = len(batches)
        workers = max(1, min(self.config.max_concurrency, count))
        log.info("Translating %d text(s) in %d batch(es) via %s (%d worker(s))",
                 total, count, self.config.name, workers)

        outcomes = []
        processed = 0
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._run_batch, i, b, count) for i, b in enumerate(batches)]
            failed = False
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                outcome = future.result()
                outcomes.append(outcome)
                if not outcome.ok:
                    if not failed:
                        # Let in-flight batches finish, but start no new ones
                        failed = True
                        for f in futures:
                            f.cancel()
                    continue
                processed += len(outcome.texts)
                if report:
                    report(processed, total)

        errors = sorted((o for o in outcomes if not o.ok), key=lambda o: o.index)
        if errors:
            first = errors[0]
            log.error("Translation job failed at batch %d/%d: %s",
                      first.index + 1, count, first.error)
            raise TranslationJobError(first.index, count, first.error) from first.error

        merged = {}
        for outcome in sorted(outcomes, key=lambda o: o.index):
            merged.update(outcome.texts)
        log.info("Translated %d text(s)", len(merged))
        return merged

    def _run_batch(self, index: int, batch: dict, count: int) -> BatchOutcome:
        """Send one batch, retrying only when the provider throttles us."""
        max_attempts = max(1, self.config.max_attempts)
        attempt = 0
        while True:
            attempt += 1
            sample = None
            if self.limiter is not None:
                sample = self.limiter.acquire(self.provider.estimate_cost(batch))
            try:
                log.debug("Batch %d/%d: %d text(s), attempt %d",
                          index + 1, count, len(batch), attempt)
                result = self.provider.translate_batch(batch)
            except ThrottledError as e:
                if attempt >= max_attempts:
                    log.warning("Batch %d/%d still throttled after %d attempt(s)",
                                index + 1, count, attempt)
                    return BatchOutcome(index, {}, e)
                wait = self.config.retry_base_wait * attempt
                log.warning("Batch %d/%d throttled (attempt %d/%d), retrying in %.1fs",
                            index + 1, count, attempt, max_attempts, wait)
                self._sleep(wait)
                continue
            except (ProviderError, ValueError, OSError) as e:
                return BatchOutcome(index, {}, e)
            except Exception as e:
                # Anything else still ends this batch, never the pool
                log.exception("Batch %d/%d: unexpected error from %s",
                              index + 1, count, self.config.name)
                return BatchOutcome(index, {}, e)

            if sample is not None and result.cost is not None:
                self.limiter.record_actual(sample, result.cost)
            if set(result.texts) != set(batch):
                return BatchOutcome(index, {}, ProviderResponseError(
                    f"Batch {index + 1} came back with different keys"))
            return BatchOutcome(index, result.texts)


class TranslationWorker(QObject):
    """Runs one translation job off the GUI thread.

    Move it to a QThread (or use ``start_thread``) and connect the signals;
    ``finished`` carries the merged translations, ``error`` the job error.
    """

    progress = pyqtSignal(int, int)     # processed, total
    finished = pyqtSignal(dict)         # key -> translation
    error = pyqtSignal(str)

    def __init__(self, engine: BatchTranslationEngine, texts: dict, parent=None):
        super().__init__(parent)
        self.engine = engine
        self.texts = texts
        self._thread = None

    def run(self):
        try:
            result = self.engine.translate(self.texts, progress=self.progress.emit)
        except (TranslationJobError, ValueError) as e:
            self.error.emit(str(e))
            return
        self.finished.emit(result)

    def start_thread(self) -> QThread:
        """Move this worker onto a new QThread and start it."""
        thread = QThread()
        self.moveToThread(thread)
        thread.started.connect(self.run)
        self.finished.connect(thread.quit)
        self.error.connect(thread.quit)
        self._thread = thread
        thread.start()
        return thread
