import os
import sys
import datetime

from customdeb.modules.config import config

DEFAULT_LOG_DIR = os.path.expanduser("~/.cache/customdeb")


class Logger:
    """Log em texto: console (stderr, colorido) + arquivo.

    Execuções concluídas também vão para o arquivo de histórico
    (``to_history=True``).
    """

    LEVELS = {
        "debug": 10,
        "info": 20,
        "success": 25,
        "warning": 30,
        "error": 40,
    }

    LOG_COLORS = {
        "DEBUG": "\033[90m",    # Cinza
        "INFO": "\033[94m",     # Azul
        "SUCCESS": "\033[92m",  # Verde
        "WARNING": "\033[93m",  # Amarelo
        "ERROR": "\033[91m",    # Vermelho
        "RESET": "\033[0m"
    }

    def __init__(self, name="customdeb"):
        self.name = name
        self.log_file = config.get("logging", "log_file",
                                   fallback=os.path.join(DEFAULT_LOG_DIR, "customdeb.log"))
        self.history_file = config.get("logging", "history_file",
                                       fallback=os.path.join(DEFAULT_LOG_DIR, "history.log"))
        self.color_output = config.getboolean("logging", "color_output", fallback=True)
        self.log_to_file = config.getboolean("logging", "log_to_file", fallback=True)
        self.log_to_console = config.getboolean("logging", "log_to_console", fallback=True)

        level_str = config.get("logging", "level", fallback="info").lower()
        self.min_level = self.LEVELS.get(level_str, 20)

    def _write_file(self, filepath, message):
        if not self.log_to_file:
            return
        try:
            os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)
            with open(filepath, "a", encoding="utf-8") as f:
                f.write(message + "\n")
        except OSError as e:
            print(f"Logger: failed to write log file {filepath}: {e}", file=sys.stderr)

    def _format(self, level, message):
        timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return f"[{timestamp}] [{self.name}] [{level}] {message}"

    def _log_to_console(self, formatted, level):
        if not self.log_to_console:
            return
        if self.color_output:
            color = self.LOG_COLORS.get(level, "")
            formatted = f"{color}{formatted}{self.LOG_COLORS['RESET']}"
        print(formatted, file=sys.stderr)

    def log(self, level, message, *, to_history=False):
        level = level.upper()
        if self.LEVELS.get(level.lower(), 0) < self.min_level:
            return

        formatted = self._format(level, message)
        self._log_to_console(formatted, level)
        self._write_file(self.log_file, formatted)
        if to_history:
            self._write_file(self.history_file, formatted)

    def debug(self, message):
        self.log("DEBUG", message)

    def info(self, message):
        self.log("INFO", message)

    def success(self, message, *, to_history=False):
        self.log("SUCCESS", message, to_history=to_history)

    def warning(self, message):
        self.log("WARNING", message)

    def error(self, message):
        self.log("ERROR", message)
