"""Error types and error reporting for the git source backend."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, Sequence


class SmGitError(Exception):
    """Base class for all errors raised by smgit."""


class ProcessSpawnError(SmGitError):
    """The git binary could not be launched."""

    def __init__(self, executable: str, reason: Exception):
        self.executable = executable
        self.reason = reason
        super().__init__(f"Unable to launch '{executable}': {reason}")


class CommandError(SmGitError):
    """A git command failed or printed a fatal diagnostic."""

    def __init__(self, args: Sequence[str], output: str, returncode: Optional[int] = None):
        self.args_list = list(args)
        self.output = output
        self.returncode = returncode
        super().__init__(f"Git error: {output}")


class PreconditionError(SmGitError):
    """An operation was refused because its preconditions do not hold."""


class RefResolutionError(SmGitError):
    """A ref could not be resolved as an exact ref, branch, tag or version selector."""


class ErrorCategory(Enum):
    """Categories of errors for structured error reporting."""
    PROCESS = "process"
    GIT_COMMAND = "git_command"
    PRECONDITION = "precondition"
    REF_RESOLUTION = "ref_resolution"
    CONFIGURATION = "configuration"
    FILE_IO = "file_io"
    SYSTEM = "system"


# Message patterns git prints for conditions that callers interpret
PERMISSION_DENIED = re.compile(
    r"Permission to \S+ denied|permission denied|not allowed to push|"
    r"access denied|403 Forbidden|You are not allowed|"
    r"could not read Username|terminal prompts disabled|Authentication failed",
    re.IGNORECASE,
)
UNQUALIFIED_DESTINATION = re.compile(r"unable to push to unqualified destination")
REMOTE_REF_MISSING = re.compile(r"remote ref does not exist")
NOT_EXPORTED = re.compile(r"remote error: access denied or repository not exported")
UNKNOWN_REVISION = re.compile(
    r"unknown revision|bad revision|ambiguous argument|malformed object name|"
    r"no such commit|not a valid object name|Needed a single revision",
    re.IGNORECASE,
)
PATHSPEC_MISMATCH = re.compile(r"did not match any file\(s\) known to git|pathspec '.*' did not match")
FATAL_MARKER = re.compile(r"^fatal:", re.MULTILINE)


@dataclass
class ErrorResponse:
    """Standardized error response reported for a failed plugin call."""
    error: str
    error_code: str
    message: str
    timestamp: str
    category: str
    status_code: int = 500
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error response to dictionary format."""
        result = {
            "error": self.error,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
            "category": self.category,
            "status_code": self.status_code,
        }
        if self.context:
            result["context"] = self.context
        return result


class ErrorHandler:
    """Turns exceptions raised by plugin operations into error responses."""

    def __init__(self):
        self.logger = logging.getLogger('smgit.error_handler')

    def handle(self, error: Exception, context: Dict[str, Any] = None) -> ErrorResponse:
        context = context or {}

        if isinstance(error, ProcessSpawnError):
            category = ErrorCategory.PROCESS
            error_code = "GIT_NOT_AVAILABLE"
            message = str(error)
        elif isinstance(error, CommandError):
            category = ErrorCategory.GIT_COMMAND
            if PERMISSION_DENIED.search(error.output) or NOT_EXPORTED.search(error.output):
                error_code = "GIT_ACCESS_DENIED"
            elif UNKNOWN_REVISION.search(error.output) or PATHSPEC_MISMATCH.search(error.output):
                error_code = "GIT_UNKNOWN_REF"
            else:
                error_code = "GIT_COMMAND_FAILED"
            message = error.output.strip() or str(error)
        elif isinstance(error, PreconditionError):
            category = ErrorCategory.PRECONDITION
            error_code = "PRECONDITION_FAILED"
            message = str(error)
        elif isinstance(error, RefResolutionError):
            category = ErrorCategory.REF_RESOLUTION
            error_code = "REF_NOT_FOUND"
            message = str(error)
        elif isinstance(error, ValueError):
            category = ErrorCategory.CONFIGURATION
            error_code = "INVALID_CONFIGURATION"
            message = str(error)
        elif isinstance(error, OSError):
            category = ErrorCategory.FILE_IO
            error_code = "FILE_IO_ERROR"
            message = f"File system error: {error}"
        else:
            category = ErrorCategory.SYSTEM
            error_code = "UNEXPECTED_ERROR"
            message = f"Unexpected error: {error}"

        response = ErrorResponse(
            error=type(error).__name__,
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=category.value,
            context=context,
        )

        self.logger.error(
            message,
            extra={'operation': context.get('operation', 'plugin'), 'error_code': error_code}
        )
        return response


# Global error handler instance
error_handler = ErrorHandler()
