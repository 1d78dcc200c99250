# customdeb/modules/tools.py
"""
Ferramentas externas usadas pelo customdeb.

Cada chamada recebe uma lista de argumentos (nunca uma string de shell).
Falha de qualquer comando gera ExternalToolError; não há retry.

  fetch            apt-get download (com cache local por nome de arquivo)
  extract          dpkg-deb -x
  extract_metadata dpkg-deb -e
  repack           dpkg-deb --build
  resolve_user     pwd
  resolve_group    grp
  checksum         md5 (formato DEBIAN/md5sums)
"""

from __future__ import annotations
import os
import re
import grp
import pwd
import time
import shutil
import hashlib
import tempfile
import subprocess
from datetime import datetime
from typing import List, Optional

from customdeb.modules import logger as _logger
from customdeb.modules.errors import ExternalToolError

BUILT_RE = re.compile(r"building package '[^']+' in '(?P<path>[^']+)'")
PRINT_URIS_RE = re.compile(r"^'(?P<uri>[^']+)'\s+(?P<filename>\S+)\s")


class CommandResult:
    """Estrutura de resultado de um comando executado"""

    def __init__(self, command, returncode, stdout, stderr, duration):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.duration = duration
        self.timestamp = datetime.now().isoformat()

    def ok(self):
        return self.returncode == 0

    def to_dict(self):
        return {
            "command": self.command,
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration": self.duration,
            "timestamp": self.timestamp,
        }


class Tools:
    def __init__(self, scratch_dir: Optional[str] = None):
        self.scratch_dir = scratch_dir
        self.log = _logger.Logger("tools")
        self.history: List[dict] = []

    def run(self, command: List[str], cwd=None) -> CommandResult:
        """Executa o comando e retorna o resultado; código != 0 é erro."""
        self.log.debug(f"Running: {' '.join(command)} (cwd={cwd})")
        start = time.time()
        try:
            proc = subprocess.run(
                command,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise ExternalToolError(command, None, str(e))
        result = CommandResult(command, proc.returncode, proc.stdout, proc.stderr,
                               time.time() - start)
        self.history.append(result.to_dict())
        if not result.ok():
            raise ExternalToolError(command, result.returncode, result.stderr)
        return result

    # -------------------------------
    # Download
    # -------------------------------
    def archive_filename(self, package: str) -> str:
        res = self.run(["apt-get", "download", "--print-uris", package])
        for line in res.stdout.splitlines():
            m = PRINT_URIS_RE.match(line.strip())
            if m:
                return os.path.basename(m.group("filename"))
        raise ExternalToolError(["apt-get", "download", "--print-uris", package], 0,
                                f"no archive found for package {package}")

    def fetch(self, package: str, cache_dir: str) -> str:
        """Baixa a versão mais recente de package para cache_dir.

        O cache é indexado pelo nome do arquivo; um arquivo já presente é
        reutilizado e nunca sobrescrito.
        """
        os.makedirs(cache_dir, exist_ok=True)
        filename = self.archive_filename(package)
        cached = os.path.join(cache_dir, filename)
        if os.path.exists(cached):
            self.log.info(f"Using cached archive {cached}")
            return cached

        download_dir = tempfile.mkdtemp(prefix="customdeb-download-", dir=self.scratch_dir)
        try:
            self.log.info(f"Downloading {package}...")
            self.run(["apt-get", "download", package], cwd=download_dir)
            downloaded = os.path.join(download_dir, filename)
            if not os.path.exists(downloaded):
                debs = sorted(f for f in os.listdir(download_dir) if f.endswith(".deb"))
                if len(debs) != 1:
                    raise ExternalToolError(["apt-get", "download", package], 0,
                                            f"expected one archive in {download_dir}, found {debs}")
                downloaded = os.path.join(download_dir, debs[0])
                cached = os.path.join(cache_dir, debs[0])
            if not os.path.exists(cached):
                shutil.move(downloaded, cached)
            return cached
        finally:
            shutil.rmtree(download_dir, ignore_errors=True)

    # -------------------------------
    # dpkg-deb
    # -------------------------------
    def extract(self, archive_path: str, dest_dir: str):
        self.run(["dpkg-deb", "-x", archive_path, dest_dir])

    def extract_metadata(self, archive_path: str, dest_subdir: str):
        self.run(["dpkg-deb", "-e", archive_path, dest_subdir])

    def repack(self, tree_dir: str, output_dir: str, fallback_name: Optional[str] = None) -> str:
        os.makedirs(output_dir, exist_ok=True)
        res = self.run(["dpkg-deb", "--build", tree_dir, output_dir])
        m = BUILT_RE.search(res.stdout)
        if m:
            return os.path.abspath(m.group("path"))
        if fallback_name:
            return os.path.abspath(os.path.join(output_dir, fallback_name))
        raise ExternalToolError(["dpkg-deb", "--build", tree_dir, output_dir], 0,
                                "could not determine the name of the built archive")

    # -------------------------------
    # Usuários / grupos
    # -------------------------------
    @staticmethod
    def resolve_user(name: str) -> Optional[int]:
        try:
            return pwd.getpwnam(name).pw_uid
        except KeyError:
            return None

    @staticmethod
    def resolve_group(name: str) -> Optional[int]:
        try:
            return grp.getgrnam(name).gr_gid
        except KeyError:
            return None

    # -------------------------------
    # Checksums
    # -------------------------------
    @staticmethod
    def checksum(path: str) -> str:
        h = hashlib.md5()
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(8192), b""):
                h.update(chunk)
        return h.hexdigest()
