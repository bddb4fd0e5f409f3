from .service import Verifier

__all__ = ["Verifier"]
