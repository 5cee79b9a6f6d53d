"""
reference.py — Client reference formatting and parsing.

Client reference format: <portfolio code><alpha><sequence>
    portfolio code : positive integer, no leading zeros   (1, 2, … 10)
    alpha          : one uppercase letter A–Z
    sequence       : zero-padded to a fixed width          (001 … 999)

e.g.  1A001, 2B002, 10M999
"""

import re
import string
from functools import lru_cache
from typing import NamedTuple, Optional

from utils.errors import FormatError

DEFAULT_WIDTH = 3
ALPHABET = string.ascii_uppercase


class ReferenceTriple(NamedTuple):
    portfolio_code: int
    alpha: str
    sequence: int

    def to_dict(self):
        return self._asdict()


def max_sequence(width: int = DEFAULT_WIDTH) -> int:
    """Highest sequence a reference of this width can carry (999 for width 3)."""
    return 10 ** width - 1


@lru_cache(maxsize=8)
def _pattern(width: int):
    return re.compile(rf"([1-9][0-9]*)([A-Z])([0-9]{{{width}}})")


def format_client_ref(portfolio_code: int, alpha: str, sequence: int, width: int = DEFAULT_WIDTH) -> str:
    """
    Render (1, "A", 1) as "1A001".
    Raises FormatError for anything parse_client_ref() would not accept back.
    """
    if isinstance(portfolio_code, bool) or not isinstance(portfolio_code, int) or portfolio_code < 1:
        raise FormatError("Portfolio code must be a positive integer.", portfolio_code=portfolio_code)
    if not isinstance(alpha, str) or len(alpha) != 1 or alpha not in ALPHABET:
        raise FormatError("Alpha must be a single letter A-Z.", alpha=alpha)
    if isinstance(sequence, bool) or not isinstance(sequence, int) or not 1 <= sequence <= max_sequence(width):
        raise FormatError(
            f"Sequence must be between 1 and {max_sequence(width)}.", sequence=sequence
        )
    return f"{portfolio_code}{alpha}{sequence:0{width}d}"


def parse_client_ref(ref: str, width: int = DEFAULT_WIDTH) -> ReferenceTriple:
    """
    Strict inverse of format_client_ref().
    No trimming or case folding: " 1a001" is rejected, not repaired.
    """
    if not isinstance(ref, str):
        raise FormatError("Client reference must be a string.", client_ref=repr(ref))

    match = _pattern(width).fullmatch(ref)
    if not match:
        raise FormatError(f"Malformed client reference: {ref!r}", client_ref=ref)

    sequence = int(match.group(3))
    if sequence == 0:
        raise FormatError(f"Sequence cannot be zero: {ref!r}", client_ref=ref)

    return ReferenceTriple(int(match.group(1)), match.group(2), sequence)


def is_valid_client_ref(ref, width: int = DEFAULT_WIDTH) -> bool:
    try:
        parse_client_ref(ref, width)
    except FormatError:
        return False
    return True


def extract_portfolio_code(ref, width: int = DEFAULT_WIDTH) -> Optional[int]:
    """Portfolio code of a reference, or None if the reference is malformed."""
    try:
        return parse_client_ref(ref, width).portfolio_code
    except FormatError:
        return None


def next_alpha(alpha: str) -> Optional[str]:
    """Letter after `alpha`, or None after Z."""
    position = ALPHABET.index(alpha)
    if position + 1 >= len(ALPHABET):
        return None
    return ALPHABET[position + 1]
