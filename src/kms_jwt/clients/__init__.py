"""
Remote signer implementations.

This package contains implementations of the RemoteSigner protocol, the
clients that hold private keys on behalf of the KMS signing methods.
"""

from .google_kms import GoogleKMSClient

__all__ = ["GoogleKMSClient"]
