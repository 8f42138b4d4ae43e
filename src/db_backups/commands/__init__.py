"""External command execution and PostgreSQL client tools.

Usage:
    from db_backups.commands import CommandRunner, SubprocessRunner, PostgresTools
"""

from db_backups.commands.postgres import PostgresTools, quote_ident, quote_literal
from db_backups.commands.runner import CommandResult, CommandRunner, SubprocessRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "SubprocessRunner",
    "PostgresTools",
    "quote_ident",
    "quote_literal",
]
