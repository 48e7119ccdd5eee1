"""Exception types raised by kubefoundry."""

from __future__ import annotations


class KubeFoundryError(Exception):
    """Base class for kubefoundry failures."""


class ValidationError(KubeFoundryError, ValueError):
    """A request failed validation. Carries every field-level message."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid deployment configuration: " + "; ".join(self.errors))


class UnknownProvider(KubeFoundryError, LookupError):
    def __init__(self, provider_id: str, available: list[str] | None = None):
        self.provider_id = provider_id
        msg = f"Unknown provider: {provider_id!r}"
        if available is not None:
            msg += f". Available: {available}"
        super().__init__(msg)


class UnknownModel(KubeFoundryError, LookupError):
    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Unknown model: {model_id!r}")


class CapacityUnknown(KubeFoundryError):
    """Cluster GPU capacity could not be determined."""


class CliUnavailable(KubeFoundryError):
    """The helm binary is missing or not runnable."""


class StepFailure(KubeFoundryError):
    """A provisioning step exited non-zero."""

    def __init__(self, step: str, stderr: str = ""):
        self.step = step
        self.stderr = stderr
        super().__init__(f"Step {step!r} failed: {stderr.strip() or 'no output'}")


class StructuralManifestInvalid(KubeFoundryError):
    """A synthesized manifest failed its structural self-check."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Generated manifest is invalid: " + "; ".join(self.errors))
