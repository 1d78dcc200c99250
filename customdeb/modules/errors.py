# customdeb/modules/errors.py
"""Exceções do customdeb. Todo erro é fatal para a execução corrente."""


class CustomdebError(Exception):
    pass


class UsageError(CustomdebError):
    pass


class ParseError(CustomdebError):
    def __init__(self, message, lineno=None):
        self.lineno = lineno
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)


class ValidationError(CustomdebError):
    pass


class OwnerResolutionError(CustomdebError):
    pass


class ExternalToolError(CustomdebError):
    def __init__(self, command, returncode=None, stderr=""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            message = f"Command could not be started: {' '.join(self.command)}"
        else:
            message = f"Command failed ({returncode}): {' '.join(self.command)}"
        if stderr:
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class VersionMismatchError(CustomdebError):
    pass
