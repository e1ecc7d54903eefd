"""
Exception hierarchy for cluster reconciliation.
"""

from typing import Optional


class ClusterctlError(Exception):
    """
    Base class for all clusterctl exceptions
    """

    def __init__(self, message, cause=None):
        super().__init__(message, cause)
        self.message = message
        self.cause = cause

    def __repr__(self):
        return self.message

    def __str__(self):
        return self.message


class ConfigurationError(ClusterctlError):
    """
    Thrown when static configuration is inconsistent, e.g. a cycle in the
    resource dependency graph or an invalid cluster name.
    """


class InspectionError(ClusterctlError):
    """
    Thrown when reading the current state of a resource failed. Aborts the
    whole reconciliation before a plan is built.
    """

    def __init__(self, kind, cluster_name: str, cause=None):
        reason = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to inspect {kind.label} for cluster [{cluster_name}]{reason}", cause)
        self.kind = kind
        self.cluster_name = cluster_name


class ProviderError(ClusterctlError):
    """
    Thrown by a resource provider when a call against the control plane failed.
    """

    def __init__(self, message, kind=None, resource_name: Optional[str] = None, cause=None):
        super().__init__(message, cause)
        self.kind = kind
        self.resource_name = resource_name
        self.attempts = 0


class TransientError(ProviderError):
    """
    A retryable provider error, e.g. a just-created dependency is not visible yet.
    """


class PermanentError(ProviderError):
    """
    A non-retryable provider error, e.g. invalid input, quota or conflict.
    """


class WaitTimeoutError(ClusterctlError):
    """
    Thrown when a resource did not reach the awaited lifecycle within the wait bound.
    """


class UserAborted(ClusterctlError):
    """
    Thrown when the operator declined the confirmation prompt.
    """
