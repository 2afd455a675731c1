"""
Small helpers shared by the front end and the runtime.
"""

from contextlib import contextmanager
import sys


# Host frames left free for the driver and library code around a unit
BASE_FRAMES = 1000


@contextmanager
def recursion_headroom(frames: int):
    """
    Raise the host recursion limit to at least `frames + BASE_FRAMES` for
    the body, restoring the previous limit afterwards.

    The parser and the interpreter are recursive, and their own depth
    limits (nesting depth, call depth) are what bound them; the host limit
    only has to sit above those.
    """
    needed = frames + BASE_FRAMES
    previous = sys.getrecursionlimit()
    if needed > previous:
        sys.setrecursionlimit(needed)
    try:
        yield
    finally:
        if needed > previous:
            sys.setrecursionlimit(previous)
