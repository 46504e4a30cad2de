"""Console output: colors, banners and logging setup."""

import logging
import socket
from typing import Optional

from upms_bootstrap.config import Settings


# ANSI color codes
class Color:
    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    CYAN = '\033[36m'
    WHITE = '\033[37m'
    GRAY = '\033[90m'


def colorize(text: str, color: str, enabled: bool = True) -> str:
    """Apply color to text if colors are enabled."""
    if not enabled:
        return text
    return f"{color}{text}{Color.RESET}"


class ColorFormatter(logging.Formatter):
    """Prefix records with a level symbol and tint warnings and errors."""

    SYMBOLS = {
        logging.DEBUG: ('·', Color.GRAY),
        logging.INFO: ('•', Color.WHITE),
        logging.WARNING: ('⚠️ ', Color.YELLOW),
        logging.ERROR: ('❌', Color.RED),
        logging.CRITICAL: ('❌', Color.RED + Color.BOLD),
    }

    def __init__(self, fmt: str, color_enabled: bool = True):
        super().__init__(fmt)
        self.color_enabled = color_enabled

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        symbol, color = self.SYMBOLS.get(record.levelno, ('•', Color.WHITE))
        if record.levelno <= logging.INFO:
            return f"{symbol} {message}"
        return colorize(f"{symbol} {message}", color, self.color_enabled)


def configure_logging(settings: Settings, color_enabled: bool = True, verbose: bool = False) -> None:
    """Configure root logging once for the whole bootstrap run."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    if not settings.dev_mode:
        logging.basicConfig(
            level=level,
            format='{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}',
            force=True,
        )
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        ColorFormatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s", color_enabled)
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)


def print_step(number: int, title: str, color_enabled: bool = True) -> None:
    """Print a numbered step header."""
    print(colorize(f"⚙️  Step {number}: {title}", Color.CYAN + Color.BOLD, color_enabled), flush=True)


def print_banner(settings: Settings, color_enabled: bool = True) -> None:
    """Print startup banner."""
    print(f"\n{colorize('=' * 60, Color.CYAN, color_enabled)}")
    print(colorize(f"  UPMS bootstrap - {settings.project_path}", Color.CYAN + Color.BOLD, color_enabled))
    print(f"{colorize('=' * 60, Color.CYAN, color_enabled)}\n", flush=True)


def _get_local_ip() -> Optional[str]:
    """Get the machine's local network IP address."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(('8.8.8.8', 80))
            return s.getsockname()[0]
    except OSError:
        return None


def print_ready_banner(settings: Settings, color_enabled: bool = True) -> None:
    """Print ready banner with the server URL."""
    port = settings.server_port
    print(f"\n{colorize('=' * 60, Color.GREEN, color_enabled)}")
    print(colorize('  🚀 UPMS is ready!', Color.GREEN + Color.BOLD, color_enabled))
    print(colorize('=' * 60, Color.GREEN, color_enabled))
    print(f"  {colorize('Server:', Color.BOLD, color_enabled)} http://localhost:{port}")
    if settings.server_host == '0.0.0.0':
        local_ip = _get_local_ip()
        if local_ip:
            print(f"  {colorize('Server (network):', Color.BOLD, color_enabled)} http://{local_ip}:{port}")
    print(f"\n  {colorize('Press Ctrl+C to stop', Color.GRAY, color_enabled)}")
    print(f"{colorize('=' * 60, Color.GREEN, color_enabled)}\n", flush=True)
