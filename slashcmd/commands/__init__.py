"""Custom command discovery, caching and expansion."""
from .cache import CommandCache
from .discovery import CommandRepository, load_directory, merge_definitions
from .expansion import ExpansionEngine, ExpansionStage, substitute_arguments
from .models import (
    CommandDefinition,
    CommandMetadata,
    CommandScope,
    CommandSummary,
    PreviewReport,
    infer_namespace,
)
from .parser import ParsedTemplate, parse, parse_file
from .registry import CommandRegistry, parse_invocation

__all__ = [
    "CommandCache",
    "CommandDefinition",
    "CommandMetadata",
    "CommandRegistry",
    "CommandRepository",
    "CommandScope",
    "CommandSummary",
    "ExpansionEngine",
    "ExpansionStage",
    "ParsedTemplate",
    "PreviewReport",
    "infer_namespace",
    "load_directory",
    "merge_definitions",
    "parse",
    "parse_file",
    "parse_invocation",
    "substitute_arguments",
]
