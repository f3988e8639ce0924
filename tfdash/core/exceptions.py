"""Domain exceptions shared by the template, deployment and schedule modules."""
from typing import Optional


class TfDashError(Exception):
    """Base class for domain errors. ``status_code`` is used by the API error handler."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TfDashError):
    """Raised when a requested record does not exist."""

    status_code = 404


class TemplateInUse(TfDashError):
    """Raised when modifying or deleting a template referenced by a deployment."""

    status_code = 409


class NameExhausted(TfDashError):
    """Raised when no free deployment name is found within max_name_attempts suffixes."""

    status_code = 409

    def __init__(self, name: str, attempts: int):
        super().__init__(f"Unable to generate unique deployment name for '{name}' after {attempts} attempts")
        self.name = name
        self.attempts = attempts


class RenderError(TfDashError):
    """Raised when a template body cannot be rendered (e.g. unbalanced block braces)."""

    status_code = 400


class MissingVariable(RenderError):
    def __init__(self, name: str):
        super().__init__(f"Missing required variable: {name}")
        self.name = name


class InvalidVariableValue(RenderError):
    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid value for variable '{name}': {reason}")
        self.name = name


class WorkspaceError(TfDashError):
    """Raised when the per-deployment workspace cannot be created or written."""


class LaunchError(TfDashError):
    """Raised when the provisioning binary cannot be started at all."""

    def __init__(self, stage: str, reason: str):
        super().__init__(f"Failed to launch terraform {stage}: {reason}")
        self.stage = stage


class StageFailure(TfDashError):
    """A stage ran but did not succeed."""

    def __init__(self, stage: str, exit_code: Optional[int], message: Optional[str] = None):
        super().__init__(message or f"terraform {stage} failed with exit code {exit_code}")
        self.stage = stage
        self.exit_code = exit_code


class StageTimeout(StageFailure):
    def __init__(self, stage: str, exit_code: Optional[int] = None):
        super().__init__(stage, exit_code, f"terraform {stage} exceeded its deadline and was terminated")


class StageCancelled(StageFailure):
    def __init__(self, stage: str, exit_code: Optional[int] = None):
        super().__init__(stage, exit_code, f"terraform {stage} was cancelled")
