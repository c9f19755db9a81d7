"""lograil: structured logging rail with health scoring."""

from lograil.entry import Interactions, LogEntry, SemanticMetadata
from lograil.logger import Logger, new_logger
from lograil.parsing import ParseResult, parse_log_file

__all__ = [
    "Interactions",
    "LogEntry",
    "Logger",
    "ParseResult",
    "SemanticMetadata",
    "new_logger",
    "parse_log_file",
]
