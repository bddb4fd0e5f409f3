"""
Token lifecycle service package.

Issues, refreshes, verifies and revokes authentication tokens derived from
third-party identity provider credentials:

- app.issuer: Token containers from provider credentials and refresh tokens.
- app.verifier: Verification against authorization requirements, revocation.
- app.main: Assembly of both services from configuration.

Design notes:
- Package import has no side effects; no network calls at import time.
- Use the shared/ utilities for logging, metrics, configuration and errors.
- The core only sees the signer, revocation store and resolver interfaces.
"""
