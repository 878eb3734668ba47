# vaultrelay/ui/console.py

import sys
import threading
from typing import Callable, Iterable, Optional, TextIO

from rich.console import Console
from rich.markup import escape

from vaultrelay.models.message import Message

QUIT_COMMAND = "/quit"


class ConsoleUI:
    """
    Line-based chat front end.

    Typed lines go to `outgoing` (emit); decrypted messages arrive through
    on_message and are rendered as they come. /quit or end of input ends run().
    """

    def __init__(self, outgoing: Callable[[str], None], console: Optional[Console] = None,
                 stdin: Optional[TextIO] = None):
        self._outgoing = outgoing
        self.console = console if console is not None else Console()
        self._stdin = stdin if stdin is not None else sys.stdin
        self._lock = threading.Lock()

    def render(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.console.print(f"[bold cyan]{escape(message.sender)}[/]: {escape(message.body)}")

    def on_message(self, message: Message) -> None:
        with self._lock:
            self.render([message])

    def notice(self, text: str) -> None:
        self.console.print(f"[dim]{escape(text)}[/]")

    def emit(self, text: str) -> None:
        self._outgoing(text)

    def run(self) -> None:
        for line in self._stdin:
            text = line.rstrip("\r\n")
            if text.strip() == QUIT_COMMAND:
                break
            if text.strip():
                self.emit(text)
