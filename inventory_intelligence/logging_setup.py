import logging
import logging.handlers
import traceback
from datetime import datetime
from pathlib import Path

from inventory_intelligence.config import config

class Logger:
    """Logging manager for the Inventory Intelligence engine.

    Every named logger writes to its own rotating file under the LOGGING
    directory (``forecast_job.log``, ``batch.log``...) and, when enabled,
    to the console. Loggers do not propagate, so each line is written once.
    """

    _instance = None
    _loggers = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        settings = config.log_config
        self._level = getattr(logging, str(settings['level']).upper(), logging.INFO)
        self._formatter = logging.Formatter(settings['format'])
        self._console = settings['console_output']
        self._max_bytes = settings['max_size_mb'] * 1024 * 1024
        self._backup_count = settings['backup_count']

        self._log_dir = Path(settings['directory'])
        self._log_dir.mkdir(parents=True, exist_ok=True)

        root = logging.getLogger()
        root.setLevel(self._level)
        root.handlers = self._console_handlers()

        self._initialized = True
        self._app_logger = self.get_logger('app')

    def _console_handlers(self):
        if not self._console:
            return []
        handler = logging.StreamHandler()
        handler.setFormatter(self._formatter)
        return [handler]

    def _file_handler(self, name):
        handler = logging.handlers.RotatingFileHandler(
            self._log_dir / f"{name}.log",
            maxBytes=self._max_bytes,
            backupCount=self._backup_count
        )
        handler.setFormatter(self._formatter)
        return handler

    def get_logger(self, name):
        """Get (creating on first use) the logger with the given name."""
        if name not in self._loggers:
            named = logging.getLogger(name)
            named.setLevel(self._level)
            named.handlers = [self._file_handler(name)] + self._console_handlers()
            named.propagate = False
            self._loggers[name] = named
        return self._loggers[name]

    def log_exception(self, logger_name, exception, message=None):
        """Log an exception and the current stack trace.

        Args:
            logger_name: Logger name
            exception: Exception object
            message: Optional context prefix
        """
        target = self.get_logger(logger_name)
        target.error(f"{message}: {exception}" if message else str(exception))
        target.error(traceback.format_exc())

    @property
    def app_logger(self):
        return self._app_logger

    def batch_start_log(self, process_name, additional_info=None):
        """Log the start of a batch process.

        Returns:
            Record to hand back to batch_end_log
        """
        record = {
            'process_name': process_name,
            'start_time': datetime.now(),
            'additional_info': additional_info
        }

        batch_logger = self.get_logger('batch')
        batch_logger.info(f"Starting batch process: {process_name}")
        if additional_info:
            batch_logger.info(f"Process info: {additional_info}")

        return record

    def batch_end_log(self, log_info, success=True, result_info=None):
        """Log the outcome and duration of a batch process.

        Returns:
            Duration of the process
        """
        end_time = datetime.now()
        duration = end_time - log_info.get('start_time', end_time)
        process_name = log_info.get('process_name', 'Unknown')

        batch_logger = self.get_logger('batch')
        outcome = "Completed" if success else "Failed"
        (batch_logger.info if success else batch_logger.error)(
            f"{outcome} batch process: {process_name} in {duration}"
        )
        if result_info:
            batch_logger.info(f"Process results: {result_info}")

        return duration

# Global logger instance
logger = Logger()

def get_logger(name):
    """Get a logger with the specified name."""
    return logger.get_logger(name)

def log_exception(logger_name, exception, message=None):
    """Log an exception with stack trace."""
    logger.log_exception(logger_name, exception, message)
