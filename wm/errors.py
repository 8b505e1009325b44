# wm/errors.py

"""
Exception hierarchy for the wm toolkit.
"""


class WmError(Exception):
    """
    Base class for all wm errors.
    """


class ParseError(WmError):
    """
    An input file could not be parsed at all.
    """


class CaptureFormatError(ParseError):
    """
    The leading section header of a capture is not a pcapng section header.
    """


class NoFixesError(ParseError):
    """
    A GPS log yielded zero valid position fixes.
    """


class WorkingSetFrozenError(WmError):
    """
    An observation was added to a WorkingSet after it was frozen.
    """


class NoUsableInputError(WmError):
    """
    Not a single session contributed observations to the run.
    """
