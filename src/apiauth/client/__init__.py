"""Client side: request signing and the signed HTTP consumer."""

from apiauth.client.consumer import Consumer, ConsumerResponse
from apiauth.client.signer import Credential, CredentialKind, SignedRequest, Signer, sign

__all__ = [
    "Consumer",
    "ConsumerResponse",
    "Credential",
    "CredentialKind",
    "SignedRequest",
    "Signer",
    "sign",
]
