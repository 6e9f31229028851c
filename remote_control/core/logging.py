import logging
import sys

# attributes every LogRecord has; anything else came in through `extra=`
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "extra"}


class SafeExtraFormatter(logging.Formatter):
    """
    Formatter that never breaks when a record was logged without `extra`.
    Fields passed via `extra={...}` are collected into `%(extra)s`.
    """

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "extra"):
            record.extra = {k: v for k, v in vars(record).items() if k not in _RESERVED}
        return super().format(record)


def setup_logging(level: str = "INFO", process_name: str = "host") -> None:
    handler = logging.StreamHandler(sys.stdout)

    formatter = SafeExtraFormatter(
        fmt=f"%(asctime)s | %(levelname)s | {process_name} | %(name)s | %(message)s | %(extra)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)
