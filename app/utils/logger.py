import json
import os
import sys
from datetime import datetime
from typing import Optional
from enum import Enum

class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"

# SUCCESS sits with INFO so it is hidden whenever INFO is
LEVEL_ORDER = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.SUCCESS: 20,
    LogLevel.WARNING: 30,
    LogLevel.ERROR: 40,
}

class Colors:
    """ANSI color codes for console output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    BRIGHT_BLACK = '\033[90m'
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_CYAN = '\033[96m'
    WHITE = '\033[37m'

class InkwellLogger:
    """Console logger for the Inkwell backend with colorized, single-line output"""

    def __init__(self, service_name: str = "INKWELL", enable_colors: Optional[bool] = None,
                 min_level: Optional[str] = None):
        self.service_name = service_name.upper()
        if enable_colors is None:
            enable_colors = "NO_COLOR" not in os.environ and sys.stdout.isatty()
        self.enable_colors = enable_colors

        level_name = (min_level or os.getenv("LOG_LEVEL", "DEBUG")).upper()
        self.min_level = LogLevel[level_name] if level_name in LogLevel.__members__ else LogLevel.DEBUG

        self.level_colors = {
            LogLevel.DEBUG: Colors.BRIGHT_CYAN,
            LogLevel.INFO: Colors.BRIGHT_BLUE,
            LogLevel.WARNING: Colors.BRIGHT_YELLOW,
            LogLevel.ERROR: Colors.BRIGHT_RED,
            LogLevel.SUCCESS: Colors.BRIGHT_GREEN,
        }

        self.level_emojis = {
            LogLevel.DEBUG: "🔍",
            LogLevel.INFO: "ℹ️",
            LogLevel.WARNING: "⚠️",
            LogLevel.ERROR: "❌",
            LogLevel.SUCCESS: "✅",
        }

    def _get_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S.%f")[:-3]

    def _colorize(self, text: str, color: str) -> str:
        if not self.enable_colors:
            return text
        return f"{color}{text}{Colors.RESET}"

    def is_enabled_for(self, level: LogLevel) -> bool:
        return LEVEL_ORDER[level] >= LEVEL_ORDER[self.min_level]

    def _format_message(self, level: LogLevel, message: str, context: Optional[str] = None) -> str:
        """Format: [TIMESTAMP] 🔍 [SERVICE/CONTEXT] [LEVEL] Message"""
        emoji = self.level_emojis.get(level, "")
        level_color = self.level_colors.get(level, Colors.WHITE)

        service_context = self.service_name
        if context:
            service_context += f"/{context.upper()}"

        timestamp_text = self._colorize(f"[{self._get_timestamp()}]", Colors.DIM)
        service_text = self._colorize(f"[{service_context}]", Colors.BRIGHT_BLACK)
        level_text = self._colorize(f"[{level.value}]", level_color + Colors.BOLD)

        return f"{timestamp_text} {emoji} {service_text} {level_text} {message}"

    @staticmethod
    def _format_value(value) -> str:
        if isinstance(value, (dict, list, tuple, set)):
            if isinstance(value, set):
                value = sorted(value, key=str)
            value_str = json.dumps(value, default=str, separators=(',', ':'))
            if len(value_str) > 100:
                value_str = value_str[:100] + "..."
            return value_str
        return str(value)

    def _log(self, level: LogLevel, message: str, context: Optional[str] = None, **kwargs):
        if not self.is_enabled_for(level):
            return

        formatted_message = self._format_message(level, message, context)

        if kwargs:
            extras = [f"{key}={self._format_value(value)}" for key, value in kwargs.items()]
            formatted_message += self._colorize(f" | {', '.join(extras)}", Colors.DIM)

        print(formatted_message, file=sys.stdout)
        sys.stdout.flush()

    def debug(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.ERROR, message, context, **kwargs)

    def success(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.SUCCESS, message, context, **kwargs)

    def exception(self, message: str, error: BaseException, context: Optional[str] = None, **kwargs):
        """Log an error together with the exception type and message"""
        self._log(LogLevel.ERROR, message, context,
                  error_type=type(error).__name__, error=str(error), **kwargs)


# Global logger instances for different services
post_logger = InkwellLogger("POST")
file_logger = InkwellLogger("FILE")
comment_logger = InkwellLogger("COMMENT")
storage_logger = InkwellLogger("STORAGE")
db_logger = InkwellLogger("DATABASE")
api_logger = InkwellLogger("API")

def get_logger(service_name: str) -> InkwellLogger:
    """Get a logger instance for a specific service"""
    return InkwellLogger(service_name)
