"""Custom exceptions for depsentinel."""


class DepSentinelError(Exception):
    """Base exception for all depsentinel errors."""


class ProjectNotFoundError(DepSentinelError):
    """Raised when the project path to analyze does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Project path not found: {path}")


class ManifestNotFoundError(DepSentinelError):
    """Raised when a project holds no manifest any parser understands."""

    def __init__(self, path: str, ecosystem: str | None = None):
        self.path = path
        self.ecosystem = ecosystem
        where = f" for ecosystem '{ecosystem}'" if ecosystem else ""
        super().__init__(f"No dependency manifest found{where} in {path}")


class ManifestParseError(DepSentinelError):
    """Raised by a parser when a manifest file cannot be understood.

    The scanner records it on the ManifestFile and carries on with the
    remaining files.
    """

    def __init__(self, path: str, message: str, line: int | None = None):
        self.path = path
        self.line = line
        self.message = message
        location = f"{path}:{line}" if line is not None else path
        super().__init__(f"{location}: {message}")


class UnsupportedEcosystemError(DepSentinelError):
    """Raised when a caller names an ecosystem depsentinel does not know."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unsupported ecosystem: {name}")
