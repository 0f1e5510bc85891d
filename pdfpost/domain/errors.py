from __future__ import annotations


class DomainError(Exception):
    pass


class ConfigurationError(DomainError):
    pass


class DomainInvariantError(DomainError):
    pass


class InfrastructureError(DomainError):
    pass


class StepFailedError(DomainError):
    pass
