# customdeb/modules/privilege.py
"""
Elevação de privilégio: mudar dono de arquivos exige root.

O processo se re-executa uma única vez sob o wrapper configurado (sudo por
padrão). O filho recebe CUSTOMDEB_ELEVATED=1; se mesmo assim não for root a
execução falha, sem nova tentativa.
"""

from __future__ import annotations
import os
import sys
import subprocess
from typing import List, Optional

from customdeb.modules import logger as _logger
from customdeb.modules.config import config
from customdeb.modules.errors import UsageError

ELEVATED_ENV = "CUSTOMDEB_ELEVATED"


def is_root() -> bool:
    return os.geteuid() == 0


def elevation_command(argv: List[str], wrapper: Optional[str] = None) -> List[str]:
    wrapper = wrapper or config.get("privilege", "wrapper", fallback="sudo")
    # o wrapper pode limpar o ambiente; o marcador vai via env(1)
    return [wrapper, "env", f"{ELEVATED_ENV}=1", sys.executable, "-m", "customdeb"] + list(argv)


def ensure_privileges(argv: List[str], wrapper: Optional[str] = None,
                      environ=None) -> Optional[int]:
    """Retorna None se já somos root; senão o código de saída do filho elevado."""
    environ = os.environ if environ is None else environ
    if is_root():
        return None
    if environ.get(ELEVATED_ENV):
        raise UsageError("privilege elevation failed: still not running as root")

    command = elevation_command(argv, wrapper)
    log = _logger.Logger("privilege")
    log.info(f"Re-running with elevated privileges: {command[0]}")
    env = dict(environ)
    env[ELEVATED_ENV] = "1"
    try:
        return subprocess.call(command, env=env)
    except OSError as e:
        raise UsageError(f"cannot run privilege wrapper {command[0]!r}: {e}")
