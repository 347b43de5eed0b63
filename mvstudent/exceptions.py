"""Exceptions raised by mvstudent."""

import inspect
import os


class FactorizationError(ArithmeticError):
    """
    A scale matrix, or a block extracted from one, failed Cholesky factorization.

    This is a numerical failure, not a usage error: it can occur for
    mathematically positive definite matrices because of finite precision
    arithmetic. Callers may catch it and retry with different inputs.

    Configuration errors (bad shapes, bad indices) raise ``ValueError`` or
    ``IndexError`` instead. ``numpy.linalg.LinAlgError`` derives from
    ``ValueError``, so this class does not derive from it.
    """


def find_stack_level() -> int:
    """
    Stack level of the first frame outside the mvstudent package.

    Passed as ``stacklevel`` to :func:`warnings.warn` so that a warning
    points at the user's call, however many package frames sit between.
    """
    pkg_dir = os.path.dirname(os.path.abspath(__file__)) + os.sep
    frame = inspect.currentframe()
    level = 0
    try:
        while frame is not None and os.path.abspath(frame.f_code.co_filename).startswith(pkg_dir):
            frame = frame.f_back
            level += 1
    finally:
        del frame
    return level
