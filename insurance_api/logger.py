# insurance_api/logger.py
import itertools
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from .config import Settings
from .records import RawRecord

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

log = logging.getLogger("insurance-api")

_instance_ids = itertools.count()


def setup_logging(level: str = "INFO") -> None:
    """Console logging for the process, same layout as the flat log files."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _file_logger(name: str, path: Path) -> logging.Logger:
    # Names are unique per PredictionLog, so closing one instance never
    # detaches another one's handler. FileHandler takes its own lock around
    # every emit, so concurrent requests never interleave partial lines.
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


class PredictionLog:
    """
    Append-only flat files for predictions, startup and errors.

    Write failures are reported through the process logger and never raised.
    """

    def __init__(self, settings: Settings):
        self.enabled = settings.logging_enabled
        self.log_dir = Path(settings.log_dir)
        self.prediction_path = self.log_dir / settings.prediction_log
        self.error_path = self.log_dir / settings.error_log
        self._predictions: Optional[logging.Logger] = None
        self._errors: Optional[logging.Logger] = None
        if self.enabled:
            self._init_files()

    def _init_files(self) -> None:
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            key = f"{self.log_dir.resolve()}.{next(_instance_ids)}"
            self._predictions = _file_logger(f"insurance-api.predictions.{key}", self.prediction_path)
            self._errors = _file_logger(f"insurance-api.errors.{key}", self.error_path)
        except OSError as e:
            log.warning("Failed to initialize logging in %s: %s", self.log_dir, e)
            self.enabled = False

    @staticmethod
    def _now() -> str:
        return datetime.now().strftime(TIMESTAMP_FORMAT)

    def _write(self, target: Optional[logging.Logger], line: str) -> None:
        if not self.enabled or target is None:
            return
        try:
            target.info(line)
        except Exception as e:
            log.warning("Failed to write log entry: %s", e)

    def log_prediction(self, record: RawRecord, prediction: float, variant: str) -> None:
        line = (
            f"{self._now()} | Model: {variant} | Prediction: ${prediction:.2f} | "
            f"Age: {record.age:g} | BMI: {float(record.bmi):.1f} | "
            f"Smoker: {record.smoker} | Region: {record.region}"
        )
        self._write(self._predictions, line)

    def log_error(self, message: str, context: str = "Unknown") -> None:
        self._write(self._errors, f"{self._now()} | Context: {context} | Error: {message}")

    def log_startup(self, loaded: Iterable[str]) -> None:
        self._write(
            self._predictions,
            f"{self._now()} | Application started | Models loaded: {', '.join(loaded)}",
        )

    def close(self) -> None:
        for target in (self._predictions, self._errors):
            if target is None:
                continue
            for handler in list(target.handlers):
                target.removeHandler(handler)
                handler.close()
