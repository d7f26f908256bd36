"""Reader wiring over the core use cases.

This package provides:
- LogReader: group / stream / event access for one group and time window
- open_reader: CloudWatch-backed reader as an async context manager
"""

from loro.orchestration.reader import LogReader, open_reader

__all__ = [
    "LogReader",
    "open_reader",
]
