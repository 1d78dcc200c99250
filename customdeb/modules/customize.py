# customdeb/modules/customize.py
"""
customize.py - executa uma personalização completa de um pacote.

Etapas (estritamente sequenciais):

  Start -> DirectiveLoaded -> PackageAcquired -> Extracted -> MetadataRead
  -> PackageNameVerified -> FilesOverlaid -> OperationsApplied
  -> MetadataReconciled -> Repacked -> Done

Qualquer falha aborta a execução. A árvore de trabalho é sempre uma cópia
descartável: o arquivo original nunca é alterado.
"""

from __future__ import annotations
import os
import shutil
import tempfile
from typing import Optional

from customdeb.modules import logger as _logger
from customdeb.modules import schema as _schema
from customdeb.modules.config import config
from customdeb.modules.errors import CustomdebError, UsageError, ValidationError
from customdeb.modules.metadata import METADATA_DIR, MetadataReconciler, read_control
from customdeb.modules.patch import PatchEngine, overlay_files
from customdeb.modules.tools import Tools

STATES = (
    "Start",
    "DirectiveLoaded",
    "PackageAcquired",
    "Extracted",
    "MetadataRead",
    "PackageNameVerified",
    "FilesOverlaid",
    "OperationsApplied",
    "MetadataReconciled",
    "Repacked",
    "Done",
)


class Customizer:
    def __init__(self,
                 tools: Optional[Tools] = None,
                 cache_dir: Optional[str] = None,
                 output_dir: Optional[str] = None,
                 scratch_dir: Optional[str] = None,
                 keep_scratch: Optional[bool] = None):
        self.scratch_dir = scratch_dir or config.get("paths", "scratch_dir", fallback=None)
        self.tools = tools or Tools(scratch_dir=self.scratch_dir)
        self.cache_dir = os.path.abspath(
            cache_dir or config.get("paths", "cache_dir", fallback="/var/cache/customdeb"))
        self.output_dir = os.path.abspath(
            output_dir or config.get("paths", "output_dir", fallback="."))
        if keep_scratch is None:
            keep_scratch = config.getboolean("run", "keep_scratch", fallback=False)
        self.keep_scratch = keep_scratch
        self.log = _logger.Logger("customize")
        self.state = STATES[0]

    def _advance(self, state: str):
        current = STATES.index(self.state)
        if STATES.index(state) <= current:
            raise RuntimeError(f"invalid transition {self.state} -> {state}")
        self.log.debug(f"{self.state} -> {state}")
        self.state = state

    def run(self, directive_path: str, archive: Optional[str] = None) -> str:
        """Aplica o arquivo de diretivas e retorna o caminho do novo pacote."""
        self.state = STATES[0]
        try:
            return self._run(directive_path, archive)
        except (CustomdebError, OSError) as e:
            self.log.error(f"Failed after {self.state}: {e}")
            raise

    def _run(self, directive_path, archive):
        directives = _schema.load_directives(directive_path)
        header = directives.header
        self.log.info(f"Loaded {len(directives.operations)} operation(s) for {header.package}")
        self._advance("DirectiveLoaded")

        if archive:
            archive = os.path.abspath(archive)
            if not os.path.isfile(archive):
                raise UsageError(f"package archive not found: {archive}")
        else:
            archive = self.tools.fetch(header.package, self.cache_dir)
        self._advance("PackageAcquired")

        workdir = tempfile.mkdtemp(prefix="customdeb-work-", dir=self.scratch_dir)
        tree = os.path.join(workdir, "tree")
        try:
            self.log.info(f"Extracting {archive}")
            self.tools.extract(archive, tree)
            self.tools.extract_metadata(archive, os.path.join(tree, METADATA_DIR))
            self._advance("Extracted")

            control = read_control(tree)
            self._advance("MetadataRead")

            if control["Package"] != header.package:
                raise ValidationError(
                    f"directive is for package {header.package!r} "
                    f"but the archive contains {control['Package']!r}")
            self._advance("PackageNameVerified")

            files_dir = directives.files_dir
            if files_dir:
                if not os.path.isdir(files_dir):
                    raise UsageError(f"Files directory not found: {files_dir}")
                copied = overlay_files(files_dir, tree, self.log)
                self.log.info(f"Copied {copied} file(s) from {files_dir}")
            self._advance("FilesOverlaid")

            PatchEngine(tree, self.tools).apply(directives.operations)
            self._advance("OperationsApplied")

            new_version = MetadataReconciler(tree, self.tools).reconcile(control, header)
            self._advance("MetadataReconciled")

            upstream = new_version.split(":", 1)[-1]
            fallback = f"{header.package}_{upstream}_{control.get('Architecture', 'all')}.deb"
            result = self.tools.repack(tree, self.output_dir, fallback)
            self._advance("Repacked")
        finally:
            if self.keep_scratch:
                self.log.info(f"Keeping work directory {workdir}")
            else:
                shutil.rmtree(workdir, ignore_errors=True)

        self._advance("Done")
        self.log.success(f"{header.package} {new_version} built: {result}", to_history=True)
        return result
