"""
Cross-invocation upload pacing.

The time of the last successful upload is kept in a small text file so
that separate runs of the tool (cron jobs, shell loops) keep a minimum
distance between uploads. There is no locking: two runs started at the
same moment may both pass the gate.
"""

import os
import time
from pathlib import Path
from typing import Callable, Optional, Union

from tgupload.errors import RateStateReadError, StateWriteError
from tgupload.observability.logging import get_logger, log_event


logger = get_logger(__name__)


class RateGate:
    """Enforce a minimum interval between successful uploads."""

    def __init__(
        self,
        state_path: Union[str, Path],
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.state_path = Path(state_path).expanduser()
        self._clock = clock
        self._sleep = sleep

    def last_upload(self) -> Optional[int]:
        """
        Read the last successful upload timestamp.

        Returns:
            Unix timestamp in seconds, or None when no upload was recorded

        Raises:
            RateStateReadError: If the file exists but is unreadable or
                does not hold an integer
        """
        try:
            raw = self.state_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise RateStateReadError(f"failed to read last upload timestamp {self.state_path}: {e}")

        try:
            return int(raw.strip())
        except ValueError:
            raise RateStateReadError(
                f"failed to parse last upload timestamp in {self.state_path}: {raw[:32]!r}"
            )

    def wait(self, min_interval: float) -> float:
        """
        Block until min_interval seconds passed since the last upload.

        Returns:
            Seconds slept (0 when no wait was needed)
        """
        if min_interval <= 0:
            return 0.0

        last = self.last_upload()
        if last is None:
            return 0.0

        elapsed = self._clock() - last
        if elapsed >= min_interval:
            return 0.0

        remaining = min_interval - elapsed
        log_event(
            logger=logger,
            event="rate_gate_waited",
            message=f"Waiting {remaining:.1f}s before upload",
            details={"min_interval": min_interval, "elapsed": round(elapsed, 3)},
        )
        self._sleep(remaining)
        return remaining

    def commit(self) -> int:
        """
        Record now as the last successful upload.

        Atomic write: tmp -> fsync -> rename, so a crash never leaves a
        half-written timestamp behind.

        Returns:
            The timestamp written

        Raises:
            StateWriteError: If the directory or file cannot be written
        """
        now = int(self._clock())
        tmp_path = self.state_path.with_name(self.state_path.name + ".tmp")
        try:
            self.state_path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                f.write(str(now))
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(self.state_path)
        except OSError as e:
            # Clean up temp file on failure
            if tmp_path.exists():
                tmp_path.unlink()
            raise StateWriteError(f"failed to write last upload timestamp {self.state_path}: {e}")

        log_event(
            logger=logger,
            event="state_committed",
            message="Recorded upload time",
            details={"timestamp": now},
        )
        return now
