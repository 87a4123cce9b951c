"""
Credentials Layer.

This package resolves login identities from the session cache, the 1Password
CLI, or interactive prompts.
"""

from .onepassword import OnePasswordProvider, ProviderCredentials, ProviderReference
from .prompt import Prompter
from .resolver import CredentialResolver

__all__ = [
    "CredentialResolver",
    "OnePasswordProvider",
    "Prompter",
    "ProviderCredentials",
    "ProviderReference",
]
