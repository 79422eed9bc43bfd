"""Runtime services shared by the pipeline components."""

from .observability import configure_logging, get_logger, log_context, timed

__all__ = ["configure_logging", "get_logger", "log_context", "timed"]
