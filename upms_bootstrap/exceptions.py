"""Bootstrap-specific exceptions."""


class BootstrapError(Exception):
    """Base exception for bootstrap failures."""

    pass


class PreconditionError(BootstrapError):
    """Raised when the environment is not fit to bootstrap at all."""

    pass


class ProjectDirectoryNotFoundError(PreconditionError):
    """Raised when the project directory does not exist."""

    pass


class ConfigFileNotFoundError(PreconditionError):
    """Raised when the configuration file (or its template) is missing."""

    pass


class DependencyTimeoutError(BootstrapError):
    """Raised when a dependency never became reachable."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"{name} did not accept connections within {timeout:g}s")
        self.dependency = name
        self.timeout = timeout
