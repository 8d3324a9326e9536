import logging
import sys
from typing import Union

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = {"authorization", "cookie", "password"}

# attributes every LogRecord has; anything else came in through ``extra=``
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _redact(value):
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _redact(v) for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


class RedactFilter(logging.Filter):
    """Blank out credentials passed as structured fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in list(vars(record)):
            if key in _RECORD_ATTRS:
                continue
            if key.lower() in SENSITIVE_KEYS:
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, _redact(getattr(record, key)))
        return True


class StructuredFormatter(logging.Formatter):
    """Plain text line followed by the record's extra fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and v is not None}
        if not fields:
            return line
        pairs = " ".join(f"{k}={v!r}" if isinstance(v, str) else f"{k}={v}" for k, v in sorted(fields.items()))
        head, sep, rest = line.partition("\n")
        return f"{head} {pairs}{sep}{rest}"


def setup_logging(level: Union[str, int] = logging.INFO) -> None:
    """Configure the root logger. Call once, before the app starts serving."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        StructuredFormatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(RedactFilter())
    root.addHandler(handler)

    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in ("sqlalchemy.engine", "uvicorn.access"):
        logging.getLogger(name).setLevel(noisy_level)

    logging.captureWarnings(True)
