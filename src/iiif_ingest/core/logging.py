from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Client libraries are chatty at DEBUG; keep them at WARNING unless asked twice.
_NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "PIL")


def level_for_verbosity(verbosity: int, *, base: int = logging.WARNING) -> int:
    level = base - (10 * max(0, verbosity))
    return max(logging.DEBUG, level)


def configure_logging(verbosity: int = 0, *, base: int = logging.WARNING) -> None:
    level = level_for_verbosity(verbosity, base=base)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT, _DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)

    noisy_level = logging.DEBUG if verbosity >= 3 else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
