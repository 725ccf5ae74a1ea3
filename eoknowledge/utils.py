"""
Utility functions and helpers for the application.
"""

import hashlib
import json
import logging
import logging.handlers
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence
from functools import wraps
import time

from eoknowledge.config import settings


# ============================================================================
# Logging Setup
# ============================================================================

def setup_logging(name: str = __name__, level: Optional[int] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Calling it again for the same name only adjusts the level, so handlers
    are never stacked.

    Args:
        name: Logger name (typically __name__)
        level: Explicit logging level overriding settings.log_level

    Returns:
        logging.Logger: Configured logger
    """
    if level is None:
        level = getattr(logging, settings.log_level)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_format = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    # File handler
    if settings.log_to_file:
        logs_dir = Path(settings.logs_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = logs_dir / f"eoknowledge_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
        )
        file_handler.setLevel(level)
        file_format = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger


logger = logging.getLogger(__name__)


# ============================================================================
# Decorators
# ============================================================================

def timeit(func):
    """Decorator to measure function execution time."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start
        logger.info(f"{func.__name__} took {elapsed:.2f}s")
        return result
    return wrapper


# ============================================================================
# JSON and Data Utilities
# ============================================================================

def save_json(data: Any, filepath: Path, indent: int = 2) -> None:
    """
    Save data to JSON file.

    Args:
        data: Data to save
        filepath: Path to output file
        indent: JSON indentation level
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)
    logger.info(f"Saved JSON to {filepath}")


def load_json(filepath: Path) -> Any:
    """
    Load data from JSON file.

    Args:
        filepath: Path to JSON file

    Returns:
        Loaded JSON data
    """
    with open(filepath, "r", encoding="utf-8") as f:
        return json.load(f)


# ============================================================================
# String Utilities
# ============================================================================

def normalize_text(text: Optional[str]) -> str:
    """
    Normalize text for comparison: lowercase, no punctuation, single spaces.

    Args:
        text: Original text

    Returns:
        Normalized text ('' for empty input)
    """
    if not text:
        return ""
    text = re.sub(r"[^\w\s]", "", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def content_digest(*parts: str) -> str:
    """SHA-1 hex digest of the given parts joined by a unit separator."""
    joined = "\x1f".join(parts)
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()


# ============================================================================
# Progress and Reporting
# ============================================================================

class ProgressTracker:
    """Track progress of batch operations."""

    def __init__(self, total: int, name: str = "Processing"):
        self.total = total
        self.name = name
        self.current = 0
        self.start_time = datetime.now()

    def update(self, increment: int = 1, message: Optional[str] = None):
        """Update progress."""
        self.current += increment
        elapsed = (datetime.now() - self.start_time).total_seconds()
        rate = self.current / elapsed if elapsed > 0 else 0
        remaining = (self.total - self.current) / rate if rate > 0 else 0

        percentage = (self.current / self.total) * 100 if self.total else 100.0
        suffix = f" - {message}" if message else ""
        logger.info(
            f"{self.name}: {self.current}/{self.total} ({percentage:.1f}%) - "
            f"Rate: {rate:.1f} items/s - ETA: {remaining:.0f}s{suffix}"
        )

    def finish(self):
        """Mark as finished."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        logger.info(f"{self.name} completed in {elapsed:.1f}s")


# ============================================================================
# Confidence Score Aggregation
# ============================================================================

def aggregate_confidence_scores(scores: Sequence[float]) -> float:
    """
    Mean of multiple confidence scores.

    Args:
        scores: Confidence scores (0-1)

    Returns:
        Arithmetic mean, or 0.0 when there are no scores
    """
    if not scores:
        return 0.0
    return sum(scores) / len(scores)
