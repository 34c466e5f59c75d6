"""
Logging with colorlog console output and rich terminal panels.
Every record carries a correlation id (the inspection being processed)
and the component that emitted it.
"""

import logging
import re
import sys
import uuid
from pathlib import Path
from typing import Dict, Iterable, Optional

import colorlog
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Global console for rich output
console = Console()

# Correlation context shared by all loggers
_request_context = {}


def get_request_id() -> str:
    """Get or create the correlation id for the current context."""
    if "request_id" not in _request_context:
        _request_context["request_id"] = str(uuid.uuid4())[:8]
    return _request_context["request_id"]


def set_request_id(request_id: str):
    """Set correlation id for the current context."""
    _request_context["request_id"] = request_id


def clear_request_id():
    """Clear correlation id from context."""
    _request_context.clear()


class SensitiveDataFilter(logging.Filter):
    """Mask credentials that may leak into log messages."""

    SENSITIVE_PATTERNS = [
        ("Bearer ", "Bearer ***MASKED***"),
        ("api_key=", "api_key=***MASKED***"),
        ("API_KEY=", "API_KEY=***MASKED***"),
        ("token=", "token=***MASKED***"),
        ("password=", "password=***MASKED***"),
    ]

    def filter(self, record):
        if hasattr(record, "msg") and record.msg:
            msg = str(record.msg)
            for pattern, replacement in self.SENSITIVE_PATTERNS:
                if pattern in msg:
                    regex = rf"({re.escape(pattern)})([a-zA-Z0-9_.-]+)"
                    msg = re.sub(regex, replacement, msg)
            record.msg = msg
        return True


class ContextFilter(logging.Filter):
    """Add correlation id and component name to log records."""

    def __init__(self, component: str = "SYSTEM"):
        super().__init__()
        self.component = component

    def filter(self, record):
        record.request_id = get_request_id()
        record.component = self.component
        return True


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Optional[Path] = None,
    component: str = None
) -> logging.Logger:
    """
    Setup logger with colorlog formatting.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for JSON-line logging
        component: Component tag shown in every line

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    comp = component or name.split(".")[-1].upper()

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))

    console_formatter = colorlog.ColoredFormatter(
        fmt=(
            "%(log_color)s[%(asctime)s.%(msecs)03d] "
            "%(levelname)-8s "
            "%(white)s[%(request_id)s] "
            "%(cyan)s[%(component)s] "
            "%(message_log_color)s%(message)s"
        ),
        datefmt="%Y-%m-%d %H:%M:%S",
        log_colors={
            "DEBUG": "blue",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "red,bg_white",
        },
        secondary_log_colors={
            "message": {
                "DEBUG": "white",
                "INFO": "white",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            }
        },
        reset=True,
        style="%"
    )

    console_handler.setFormatter(console_formatter)
    console_handler.addFilter(ContextFilter(comp))
    console_handler.addFilter(SensitiveDataFilter())
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)

        file_formatter = logging.Formatter(
            fmt=(
                '{"timestamp":"%(asctime)s.%(msecs)03d",'
                '"level":"%(levelname)s",'
                '"request_id":"%(request_id)s",'
                '"component":"%(component)s",'
                '"logger":"%(name)s",'
                '"message":"%(message)s"}'
            ),
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        file_handler.addFilter(ContextFilter(comp))
        file_handler.addFilter(SensitiveDataFilter())
        logger.addHandler(file_handler)

    return logger


def print_banner():
    """Print CLI startup banner."""
    banner = """
╔══════════════════════════════════════════════════════════╗
║                                                          ║
║   ⚡  ELECTRICAL INSPECTION REPORTS                      ║
║   Field data validation & versioned report export        ║
║                                                          ║
╚══════════════════════════════════════════════════════════╝
"""
    console.print(banner, style="bold cyan")


def print_validation_table(
    missing_fields: Iterable[str],
    critical_errors: Iterable[str],
    title: str = "Validação do Relatório"
):
    """
    Print final-report diagnostics in a table.

    Critical entries are listed first and highlighted in red.
    """
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Severidade", width=12)
    table.add_column("Pendência", style="dim")

    for error in critical_errors:
        table.add_row("[red]CRÍTICO[/red]", error)
    for entry in missing_fields:
        table.add_row("[yellow]PENDENTE[/yellow]", entry)

    console.print(table)


def print_summary_panel(title: str, content: Dict[str, object], style: str = "green"):
    """
    Print summary information in a panel.

    Args:
        title: Panel title
        content: Dict of key-value pairs to display
        style: Panel border style (green, yellow, red, cyan)
    """
    text = "\n".join([f"[bold]{k}:[/bold] {v}" for k, v in content.items()])
    panel = Panel(text, title=title, border_style=style, expand=False)
    console.print(panel)


def print_error(error_type: str, message: str, details: Optional[str] = None):
    """Print error message in formatted panel."""
    content = f"[bold red]{error_type}[/bold red]\n\n{message}"
    if details:
        content += f"\n\n[dim]{details}[/dim]"

    panel = Panel(
        content,
        title="❌ Error",
        border_style="red",
        expand=False
    )
    console.print(panel)
