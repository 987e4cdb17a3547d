from .signing import (
    SignatureScheme,
    Ed25519Scheme,
    SchemeRegistry,
    Ed25519TreeHeadSigner,
    key_id_for,
    load_public_key_pem,
)

__all__ = [
    "SignatureScheme",
    "Ed25519Scheme",
    "SchemeRegistry",
    "Ed25519TreeHeadSigner",
    "key_id_for",
    "load_public_key_pem",
]
