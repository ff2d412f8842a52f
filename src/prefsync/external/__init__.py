"""External commands declared in the configuration."""
from .runner import (
    CommandJob,
    ExecMode,
    ExternalCommandRunner,
    build_job,
    missing_binaries,
    substitute,
)

__all__ = [
    "CommandJob",
    "ExecMode",
    "ExternalCommandRunner",
    "build_job",
    "missing_binaries",
    "substitute",
]
