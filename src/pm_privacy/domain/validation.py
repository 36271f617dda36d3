"""Structural checks on proof submissions.

Only the encoding is validated here; cryptographic validity is the
external verifier's job.
"""
import re
from collections.abc import Sequence

from src.pm_crypto.field import is_field_hex

PUBLIC_INPUT_COUNT = 4
_PROOF_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")


def structural_error(proof: str, public_inputs: Sequence[str]) -> str | None:
    """Return a reason string if the submission is malformed, else None."""
    if not proof or not _PROOF_HEX_RE.match(proof):
        return "proof must be a non-empty hex string"
    if len(public_inputs) != PUBLIC_INPUT_COUNT:
        return f"expected {PUBLIC_INPUT_COUNT} public inputs, got {len(public_inputs)}"
    for position, value in enumerate(public_inputs):
        if not is_field_hex(value):
            return f"public input {position} is not a 32-byte field value"
    return None
