#!/usr/bin/env python3
"""
Logic World Save Errors
=======================

Error taxonomy shared by the parser and serializer.

Every error raised while reading or writing a save carries a context chain:
the list of records/fields that were being processed when it happened. The
chain is built with the `context()` helper as the error propagates outwards,
so the rendered message reads from the outermost step to the failing field:

    reading component #3 -> reading custom data: payload for MHG.Switch is 2 bytes, need 4
"""

from contextlib import contextmanager
from typing import List


class SaveFormatError(ValueError):
    """Base class for every structural save error."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.context: List[str] = []

    def add_context(self, what: str):
        # Innermost first; rendered outermost first
        self.context.append(what)

    @property
    def chain(self) -> List[str]:
        return list(reversed(self.context))

    def __str__(self):
        if not self.context:
            return self.message
        return f"{' -> '.join(self.chain)}: {self.message}"


# =============================================================================
# Magic / tag validation
# =============================================================================

class _LiteralMismatch(SaveFormatError):
    label = "literal"

    def __init__(self, expected, observed, offset: int):
        super().__init__(f"invalid {self.label} at offset 0x{offset:X}: "
                         f"expected {expected!r}, found {observed!r}")
        self.expected = expected
        self.observed = observed
        self.offset = offset


class HeaderMismatch(_LiteralMismatch):
    label = "header"


class FooterMismatch(_LiteralMismatch):
    label = "footer"


class UnsupportedFormatVersion(_LiteralMismatch):
    label = "save format version"


class UnsupportedSaveType(_LiteralMismatch):
    label = "save type"


# =============================================================================
# Stream / primitive errors
# =============================================================================

class UnexpectedEof(SaveFormatError):
    def __init__(self, offset: int, wanted: int, got: int):
        super().__init__(f"unexpected end of stream at offset 0x{offset:X}: "
                         f"wanted {wanted} bytes, got {got}")
        self.offset = offset
        self.wanted = wanted
        self.got = got


class InvalidUtf8Text(SaveFormatError):
    def __init__(self, offset: int, reason: str):
        super().__init__(f"text at offset 0x{offset:X} is not valid UTF-8: {reason}")
        self.offset = offset


class InvalidTextLength(SaveFormatError):
    def __init__(self, offset: int, length: int):
        super().__init__(f"negative text length {length} at offset 0x{offset:X}")
        self.offset = offset
        self.length = length


class FieldOutOfRange(SaveFormatError):
    """A value does not fit the wire width it is written with."""


# =============================================================================
# Record errors
# =============================================================================

class UnknownPegType(SaveFormatError):
    def __init__(self, tag: int, offset: int):
        super().__init__(f"invalid peg type {tag} at offset 0x{offset:X} (expected 1 or 2)")
        self.tag = tag
        self.offset = offset


class MissingTypeMapping(SaveFormatError):
    def __init__(self, key):
        kind = "id" if isinstance(key, int) else "name"
        super().__init__(f"component type {kind} {key!r} missing from type dictionary")
        self.key = key


class InvalidCustomData(SaveFormatError):
    pass


class TypeIdsExhausted(SaveFormatError):
    pass


@contextmanager
def context(what: str):
    """Append `what` to the chain of any SaveFormatError leaving the block."""
    try:
        yield
    except SaveFormatError as e:
        e.add_context(what)
        raise
