"""
CommandRegistry - named handlers for control commands

Command names are lowercase identifiers (start, cancel, export_log). The
control plane looks them up here; anything not registered is refused with
CommandNotAvailableError before a handler runs.

Threading: registration happens at setup, lookups from the paho thread.
A lock guards the table so late registrations stay consistent.
"""

import re
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set

CommandHandler = Callable[[Dict[str, Any]], None]

_COMMAND_NAME = re.compile(r"^[a-z][a-z0-9_]*$")


class CommandNotAvailableError(Exception):
    """No handler is registered under the requested name."""

    def __init__(self, command: str, available: Set[str]):
        self.command = command
        self.available = available
        listed = ", ".join(sorted(available)) or "none"
        super().__init__(f"Unknown command '{command}' (registered: {listed})")


@dataclass(frozen=True)
class RegisteredCommand:
    name: str
    handler: CommandHandler
    description: str


class CommandRegistry:
    """
    Table of control commands.

    Handlers receive the decoded payload dict (empty when the caller passed
    none), so a command can take parameters later without a new signature.

    Example:
        registry = CommandRegistry()
        registry.register('cancel', service.handle_cancel, "Stop tracking")
        registry.execute('cancel', {'command': 'cancel'})
    """

    def __init__(self):
        self._table: Dict[str, RegisteredCommand] = {}
        self._lock = threading.Lock()

    def register(self, command: str, handler: CommandHandler, description: str) -> None:
        """
        Raises:
            ValueError: Name is not a lowercase identifier or is taken
        """
        if not _COMMAND_NAME.match(command or ""):
            raise ValueError(f"Invalid command name: '{command}'")

        with self._lock:
            if command in self._table:
                raise ValueError(f"Command '{command}' already registered")
            self._table[command] = RegisteredCommand(command, handler, description)

    def execute(self, command: str, command_data: Optional[Dict[str, Any]] = None) -> None:
        """Run the handler for command with the given payload."""
        with self._lock:
            entry = self._table.get(command)
            if entry is None:
                raise CommandNotAvailableError(command, set(self._table))

        entry.handler(command_data or {})

    def is_available(self, command: str) -> bool:
        with self._lock:
            return command in self._table

    @property
    def available_commands(self) -> Set[str]:
        with self._lock:
            return set(self._table)

    def get_help(self) -> Dict[str, str]:
        """Command name to description."""
        with self._lock:
            return {name: entry.description for name, entry in self._table.items()}

    def __len__(self) -> int:
        return len(self._table)
