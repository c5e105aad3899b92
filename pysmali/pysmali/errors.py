"""Error types for the smali reader and writer."""

from __future__ import annotations


class SmaliError(Exception):
    """Base error for everything raised by pysmali."""

    def __init__(self, error_code: str, message: str, details: dict[str, str] | None = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{error_code}] {message}")


class SmaliParseError(SmaliError):
    """Raised when smali text cannot be turned into a model.

    ``line`` is 1-based and ``source_line`` is the offending text, when known.
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, str] | None = None,
        *,
        line: int | None = None,
        source_line: str | None = None,
    ):
        self.line = line
        self.source_line = source_line
        self.reason = message
        details = dict(details or {})
        if line is not None:
            details["line"] = str(line)
            message = f"line {line}: {message}"
        if source_line is not None:
            details["text"] = source_line
        super().__init__(error_code, message, details)

    def with_location(self, line: int, source_line: str | None = None) -> SmaliParseError:
        """Return a copy of this error pinned to a source line.

        Errors that already carry a location are returned unchanged.
        """
        if self.line is not None:
            return self
        details = {k: v for k, v in self.details.items() if k not in ("line", "text")}
        return type(self)(
            self.error_code,
            self.reason,
            details,
            line=line,
            source_line=source_line,
        )


class SmaliStructureError(SmaliParseError):
    """Raised when a directive appears where it is not allowed or a block is left open."""


class SmaliSyntaxError(SmaliParseError):
    """Raised for malformed literals, operands, descriptors and unknown opcodes."""


class SmaliTrailingInputError(SmaliParseError):
    """Raised when a fragment has content left over after its last instruction."""


class SmaliIOError(SmaliError):
    """Raised when a smali file or directory cannot be read or written."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__("IO_ERROR", message, {"path": path} if path is not None else None)
