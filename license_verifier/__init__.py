"""
License Verifier — batch verification of driver-license records.

Architecture: Format detection → Input loading → Registry call (with backoff) → Flattening → Streamed report
Philosophy:  One request at a time. Never lose a row that was already verified.
"""

__version__ = "1.0.0"
