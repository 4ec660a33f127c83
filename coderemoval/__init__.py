"""Marker-based conditional code removal."""

from .config import FormattingOptions, MarkerConfig, MarkerFamily, MarkerSet, RemoveCodeOptions
from .editor import COMMANDS, Document, Edit, EditOutcome, Selection, run_command
from .errors import ConfigurationError, RemovalError, UnbalancedMarkerError
from .gate import EnvironmentContext, should_strip
from .scanner import MarkerIssue, Region, RegionKind, find_issues, scan
from .stripper import StripResult, strip
from .transform import FileSystemHost, MemoryHost, TransformResult, run_batch, transform

__all__ = [
    "COMMANDS",
    "ConfigurationError",
    "Document",
    "Edit",
    "EditOutcome",
    "EnvironmentContext",
    "FileSystemHost",
    "FormattingOptions",
    "MarkerConfig",
    "MarkerFamily",
    "MarkerIssue",
    "MarkerSet",
    "MemoryHost",
    "Region",
    "RegionKind",
    "RemovalError",
    "RemoveCodeOptions",
    "Selection",
    "StripResult",
    "TransformResult",
    "UnbalancedMarkerError",
    "find_issues",
    "run_batch",
    "run_command",
    "scan",
    "should_strip",
    "strip",
    "transform",
]
