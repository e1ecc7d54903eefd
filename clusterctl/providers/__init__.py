"""
Resource provider implementations.
"""

from .aws import AwsProvider, classify_error

__all__ = ["AwsProvider", "classify_error"]
