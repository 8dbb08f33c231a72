#!/usr/bin/env python3
"""Exceptions raised by the verifiable encryption scheme"""


class VerEncError(Exception):
    """Base class of the errors of the scheme"""


class KeyGenError(VerEncError):
    """Raised when prime sampling exhausted its budget of attempts"""


class WitnessOutOfRange(VerEncError):
    """Raised when the witness is not in `[0, B)`, before any proof work"""


class DecryptionError(VerEncError):
    """Raised when a ciphertext cannot be decrypted"""


class InvalidCiphertext(DecryptionError):
    """Raised when a ciphertext is malformed

    Either its elements are not in the expected subgroup of Z_n², or the
    recovered value is not a plaintext from `[0, n)`.
    """


class ProofError(VerEncError):
    """Raised when the verification of a cryptographic proof fails"""


class TranscriptMismatch(ProofError):
    """Raised when the challenge or one of the verification equations does
    not hold; which one is deliberately not reported"""


class RangeViolation(ProofError):
    """Raised when the response for the witness exceeds the allowed bound"""
