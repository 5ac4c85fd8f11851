from inbox_placement.core.logging import configure_logging, sanitize_for_log

__all__ = ["configure_logging", "sanitize_for_log"]
