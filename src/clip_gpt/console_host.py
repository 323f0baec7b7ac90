from __future__ import annotations

import sys
from typing import TextIO

import pyperclip
from loguru import logger


class ConsoleHost:
    """Host adapter for the interactive console: prints replies and copies them to the clipboard."""

    def __init__(self, out: TextIO | None = None, *, copy_to_clipboard: bool = True):
        self._out = out or sys.stdout
        self._copy_to_clipboard = copy_to_clipboard
        self.last_copied: str | None = None

    def show_text(self, text: str, *, preview: bool = True) -> None:
        self._out.write(f"assistant> {text}\n")
        self._out.flush()

    def show_success(self) -> None:
        self._out.write("✓\n")
        self._out.flush()

    def copy_text(self, text: str) -> None:
        self.last_copied = text
        if not self._copy_to_clipboard:
            return
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as ex:
            logger.warning(f"Clipboard unavailable: {ex}")


class ScriptHost:
    """Host adapter for shell-script extensions: the result is written to stdout.

    The calling application takes care of copying or pasting what is printed.
    """

    def __init__(self, out: TextIO | None = None):
        self._out = out or sys.stdout

    def show_text(self, text: str, *, preview: bool = True) -> None:
        self._out.write(text)
        self._out.flush()

    def show_success(self) -> None:
        pass

    def copy_text(self, text: str) -> None:
        pass
