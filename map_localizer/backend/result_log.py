"""
Append-only pose log.

CSV with header `id,x,y,z,yaw,pitch,roll`, one row per processed scan,
flushed after every row. Write failures are logged as warnings and counted;
they never stop localization.
"""

import csv
import logging
import os
from typing import Optional, TextIO

from map_localizer.backend.frame_composer import PoseRecord
from map_localizer.common import constants

_logger = logging.getLogger(__name__)


class ResultLog:
    def __init__(self, path: str):
        """
        Args:
            path: Output CSV path; empty disables the log
        """
        self.path = path
        self.rows_written = 0
        self.write_failures = 0
        self._file: Optional[TextIO] = None
        self._writer = None
        if not path:
            _logger.info("Result log disabled (empty result_save_path)")
            return
        try:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._file = open(path, "w", newline="", encoding="utf-8")
            self._file.write(constants.RESULT_LOG_HEADER + "\n")
            self._file.flush()
            self._writer = csv.writer(self._file, lineterminator="\n")
            _logger.info(f"saving results to {path}")
        except OSError as e:
            self.write_failures += 1
            self._file = None
            _logger.warning(f"Failed to open result log {path}: {e}")

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def append(self, record: PoseRecord) -> bool:
        """Write one row. Returns False if the row was not written."""
        if self._file is None:
            return False
        try:
            self._writer.writerow(record.as_row())
            self._file.flush()
        except OSError as e:
            self.write_failures += 1
            _logger.warning(f"Failed to write frame {record.frame_index} to {self.path}: {e}")
            return False
        self.rows_written += 1
        return True

    def close(self) -> None:
        if self._file is None:
            return
        try:
            self._file.flush()
            self._file.close()
            _logger.info(f"Result log saved: {self.path} ({self.rows_written} rows)")
        except OSError as e:
            self.write_failures += 1
            _logger.warning(f"Failed to close result log {self.path}: {e}")
        finally:
            self._file = None
            self._writer = None
