"""
Reporter for mutewatch
"""

import sys
from typing import Optional, TextIO

MUTED = "MUTED"
UNMUTED = "UNMUTED"
NO_DEFAULT = "No default source"


def transition_line(old_muted: Optional[bool], new_muted: Optional[bool]) -> Optional[str]:
    """
    Line to print for a change in the default source's mute flag.
    None means nothing changed (including no default before and after).
    """
    if old_muted == new_muted:
        return None
    if new_muted is None:
        return NO_DEFAULT
    return MUTED if new_muted else UNMUTED


class Reporter:
    """Writes transition lines to stdout (or the given stream)"""

    def __init__(self, out: Optional[TextIO] = None):
        self.out = out

    def report(self, old_muted: Optional[bool], new_muted: Optional[bool]) -> Optional[str]:
        line = transition_line(old_muted, new_muted)
        if line is not None:
            print(line, file=self.out if self.out is not None else sys.stdout, flush=True)
        return line
