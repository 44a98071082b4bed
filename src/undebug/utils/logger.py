"""Terminal-safe output and logging setup for the command line.

Detects terminal encoding and provides ASCII alternatives for the Unicode
icons the CLI prints, so non-UTF-8 Windows consoles do not crash on them.
"""
import sys
import locale
import logging

from rich.logging import RichHandler


# Unicode to ASCII icon mapping for non-UTF-8 terminals
ICON_MAP = {
    # Status icons
    '✓': '[OK]',
    '✔': '[OK]',
    '✗': '[FAIL]',
    '✘': '[FAIL]',
    '⚠': '[WARN]',

    # Diff/progress arrows
    '→': '->',
    '←': '<-',
    '⇒': '=>',

    # Symbols
    '…': '...',
    '•': '*',
}

LOG_FORMAT = "%(message)s"


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding capability.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if hasattr(sys.stdout, 'encoding') and sys.stdout.encoding:
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (LookupError, ValueError):
        return 'ascii'


def is_utf8_capable() -> bool:
    return detect_terminal_encoding() in ('utf-8', 'utf8', 'utf_8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents if terminal doesn't support UTF-8.

    Args:
        text: Text potentially containing Unicode icons

    Returns:
        str: Sanitized text safe for current terminal
    """
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)

    return sanitized


def configure_logging(verbose: bool = False, console=None):
    """Route the package's log records through a Rich handler.

    Library modules only create loggers; the CLI calls this once at startup.

    Args:
        verbose: Log DEBUG records when True, WARNING and above otherwise
        console: Rich console to render on (default: a new stderr console)
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(
        console=console,
        show_path=verbose,
        show_time=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    package_logger = logging.getLogger("undebug")
    package_logger.handlers = [handler]
    package_logger.setLevel(level)
    package_logger.propagate = False
