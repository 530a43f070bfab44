"""
Terminal output for lesswatch.
Turns channel events into lines on stderr and raw compiler output on stdout.
"""

import sys
from typing import Optional, TextIO, BinaryIO

from .core.channel import EventKind, NotificationChannel, NotificationEvent
from .core.options import Options


PREFIX = "lesswatch"
BELL = "\a"


def format_line(message: str, bell: bool = False) -> str:
    line = f"[{PREFIX}] {message}"
    if bell:
        line += BELL
    return line


class Reporter:
    """Subscribes to a channel and prints what it carries.

    Outside watch mode an error ends the process with status 1.
    """

    def __init__(self, options: Options, err: Optional[TextIO] = None, out: Optional[BinaryIO] = None):
        self.options = options
        self._err = err
        self._out = out

    @property
    def err(self) -> TextIO:
        return self._err or sys.stderr

    @property
    def out(self) -> BinaryIO:
        return self._out or sys.stdout.buffer

    def attach(self, channel: NotificationChannel) -> "Reporter":
        channel.subscribe(EventKind.ERROR, self.on_error)
        channel.subscribe(EventKind.WARNING, self.on_warning)
        channel.subscribe(EventKind.LOG_LINE, self.on_log_line)
        return self

    def on_error(self, event: NotificationEvent) -> None:
        print(format_line(event.message, bell=self.options.bell), file=self.err, flush=True)
        if not self.options.watch:
            sys.exit(1)

    def on_warning(self, event: NotificationEvent) -> None:
        print(format_line(event.message), file=self.err, flush=True)

    def on_log_line(self, event: NotificationEvent) -> None:
        self.out.write(event.data)
        self.out.flush()
