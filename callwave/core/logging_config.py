# callwave/core/logging_config.py
"""
Logging configuration for callwave.
Provides file-based logging with rotation, plus a dedicated log file for
outbound voice API traffic (batch submit / batch status / conversation fetch).
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional


# Create logs directory
LOGS_DIR = Path(__file__).parent.parent.parent / "logs"

# Log files
ERROR_LOG_FILE = LOGS_DIR / "error.log"
DEBUG_LOG_FILE = LOGS_DIR / "debug.log"
VOICE_API_LOG_FILE = LOGS_DIR / "voice_api.log"

SENSITIVE_KEYS = ('xi-api-key', 'x-api-key', 'authorization', 'api_key', 'token', 'secret', 'password', 'key')


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        levelname = record.levelname
        record.levelname = f"{log_color}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_logging(app_name: str = "callwave", level: str = "INFO"):
    """
    Setup logging with console and rotating file handlers.

    Creates three log files:
    - error.log: Only ERROR and CRITICAL messages
    - debug.log: All DEBUG and above messages
    - voice_api.log: Requests/responses exchanged with the voice API
    """
    LOGS_DIR.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # ═══════════════════════════════════════════════════════════
    # Console Handler - with colors
    # ═══════════════════════════════════════════════════════════
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(ColoredFormatter('%(levelname)s | %(name)s | %(message)s'))
    root_logger.addHandler(console_handler)

    # ═══════════════════════════════════════════════════════════
    # ERROR Log File - Rotating, only errors
    # ═══════════════════════════════════════════════════════════
    error_handler = logging.handlers.RotatingFileHandler(
        ERROR_LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(error_handler)

    # ═══════════════════════════════════════════════════════════
    # DEBUG Log File - Rotating, all messages
    # ═══════════════════════════════════════════════════════════
    debug_handler = logging.handlers.RotatingFileHandler(
        DEBUG_LOG_FILE,
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    debug_handler.setLevel(logging.DEBUG)
    debug_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)-30s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(debug_handler)

    # ═══════════════════════════════════════════════════════════
    # Voice API Log File - outbound calls to the voice provider
    # ═══════════════════════════════════════════════════════════
    voice_handler = logging.handlers.RotatingFileHandler(
        VOICE_API_LOG_FILE,
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    voice_handler.setLevel(logging.DEBUG)
    voice_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    voice_logger = get_voice_api_logger()
    voice_logger.addHandler(voice_handler)
    voice_logger.setLevel(logging.DEBUG)
    voice_logger.propagate = True  # Also send to root handlers

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger("callwave.logging")
    logger.info(f"{'='*60}")
    logger.info(f"Logging initialized for {app_name}")
    logger.info(f"Log directory: {LOGS_DIR}")
    logger.info(f"{'='*60}")

    return root_logger


def get_voice_api_logger():
    """Get logger specifically for voice API traffic"""
    return logging.getLogger("voice_api")


# ═══════════════════════════════════════════════════════════
# Helper functions for detailed logging
# ═══════════════════════════════════════════════════════════

def mask_secrets(data: Optional[dict]) -> Optional[dict]:
    """Return a shallow copy of ``data`` with sensitive values hidden"""
    if not data:
        return data
    return {
        k: ('***HIDDEN***' if str(k).lower() in SENSITIVE_KEYS else v)
        for k, v in data.items()
    }


def log_api_request(logger, method: str, endpoint: str, data: Any = None, headers: dict = None):
    """Log outgoing API request details"""
    logger.debug(f"🌐 API REQUEST: {method} {endpoint}")
    if headers:
        logger.debug(f"Headers: {mask_secrets(headers)}")
    if data:
        logger.debug(f"Request Data: {data}")


def log_api_response(logger, status_code: int, response_data: Any, error: Exception = None):
    """Log API response details"""
    logger.debug(f"📥 API RESPONSE: Status {status_code}")
    if error:
        logger.error(f"❌ Error: {error} ({type(error).__name__})")
    else:
        logger.debug(f"Response Data: {response_data}")
