from .signer import JwtSigner, Signer

__all__ = ["JwtSigner", "Signer"]
