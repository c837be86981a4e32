from typing import Optional
import logging
import time

from tqdm import tqdm


class ProgressMonitor:
    """tqdm bar over fit units (assets or pairs) that also counts failed fits"""

    def __init__(self, total: int, desc: str = "Fitting",
                 logger: Optional[logging.Logger] = None,
                 disable: bool = False,
                 log_every: int = 10):
        self.logger = logger or logging.getLogger('progress')
        self.pbar = tqdm(total=total, desc=desc, unit='unit', disable=disable)
        self.total = total
        self.done = 0
        self.failures = 0
        self.log_every = log_every
        self.start_time = time.time()
        self.description = desc

    def update(self, unit: str = "", failures: int = 0):
        """Mark one unit finished, with the number of fits that failed inside it"""
        self.done += 1
        self.failures += failures
        self.pbar.update(1)
        if failures:
            self.pbar.set_postfix(failed=self.failures)

        if unit:
            self.logger.debug(f"{self.description}: {unit} done ({failures} failed fits)")

        if self.log_every and self.done % self.log_every == 0:
            elapsed = time.time() - self.start_time
            fraction = self.done / self.total if self.total else 1.0
            eta = elapsed / fraction * (1 - fraction) if fraction > 0 else 0

            self.logger.info(
                f"{self.description}: {self.done}/{self.total} units "
                f"({fraction * 100:.1f}%), {self.failures} failed fits, "
                f"elapsed {elapsed:.1f}s, ETA {eta:.1f}s"
            )

    def close(self):
        self.pbar.close()
        self.logger.info(
            f"Completed {self.description}: {self.done} units, {self.failures} failed fits "
            f"in {time.time() - self.start_time:.1f} seconds"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
