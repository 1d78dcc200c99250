# customdeb/modules/patch.py
"""
Aplicação das operações de arquivo sobre a árvore extraída do pacote.

As operações são aplicadas na ordem do arquivo de diretivas. Para cada uma:
  1. conteúdo (Content) substitui o arquivo inteiro; sem Content um arquivo
     inexistente é criado vazio
  2. dono (Owner) "usuario grupo", numérico ou resolvido por nome
  3. permissão (Permission) octal, aplicada exatamente
Qualquer erro interrompe a execução inteira.
"""

from __future__ import annotations
import os
import shutil
from typing import List, Optional

from customdeb.modules import logger as _logger
from customdeb.modules.errors import OwnerResolutionError, ValidationError
from customdeb.modules.schema import Operation


def render_content(value: str) -> str:
    """Remove uma linha em branco inicial e garante exatamente um \\n final."""
    if value.startswith("\n"):
        value = value[1:]
    return value.rstrip("\n") + "\n"


def contained_path(root: str, relpath: str) -> str:
    """Resolve relpath dentro de root; caminhos que escapam da árvore são erro."""
    real_root = os.path.realpath(root)
    target = os.path.realpath(os.path.join(real_root, relpath))
    if os.path.commonpath([real_root, target]) != real_root:
        raise ValidationError(f"{relpath} resolves outside of the package tree")
    return target


class PatchEngine:
    def __init__(self, root: str, tools, logger: Optional[_logger.Logger] = None):
        self.root = root
        self.tools = tools
        self.log = logger or _logger.Logger("patch")

    def apply(self, operations: List[Operation]):
        for op in operations:
            self.apply_one(op)

    def apply_one(self, op: Operation):
        target = contained_path(self.root, op.path)
        self.log.info(f"Patching /{op.path} ({op.describe()})")

        if op.content is not None:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, "w", encoding="utf-8") as fh:
                fh.write(render_content(op.content))
        elif not os.path.lexists(target):
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, "a", encoding="utf-8"):
                pass

        if op.owner:
            uid, gid = self.resolve_owner(*op.owner)
            os.chown(target, uid, gid)

        if op.permission is not None:
            os.chmod(target, op.permission)

    def resolve_owner(self, user: str, group: str):
        uid = int(user) if user.isdigit() else self.tools.resolve_user(user)
        if uid is None:
            raise OwnerResolutionError(f"unknown user {user!r}")
        gid = int(group) if group.isdigit() else self.tools.resolve_group(group)
        if gid is None:
            raise OwnerResolutionError(f"unknown group {group!r}")
        return uid, gid


def overlay_files(files_dir: str, root: str, logger: Optional[_logger.Logger] = None) -> int:
    """Copia o conteúdo de files_dir sobre a árvore.

    Um link simbólico já existente no destino é substituído, nunca seguido.
    Retorna o número de arquivos copiados.
    """
    log = logger or _logger.Logger("patch")
    copied = 0
    for src_root, dirs, files in os.walk(files_dir):
        rel_root = os.path.relpath(src_root, files_dir)
        for name in sorted(dirs):
            if os.path.islink(os.path.join(src_root, name)):
                files.append(name)
                dirs.remove(name)
        for name in sorted(dirs):
            os.makedirs(contained_path(root, os.path.join(rel_root, name)), exist_ok=True)
        for name in sorted(files):
            src = os.path.join(src_root, name)
            rel = os.path.normpath(os.path.join(rel_root, name))
            dest = os.path.join(contained_path(root, rel_root), name)
            if os.path.isdir(dest) and not os.path.islink(dest):
                raise ValidationError(f"/{rel}: overlay file would replace a directory")
            if os.path.islink(dest) or (os.path.islink(src) and os.path.lexists(dest)):
                os.unlink(dest)
            shutil.copy2(src, dest, follow_symlinks=False)
            log.debug(f"Overlay /{rel}")
            copied += 1
    return copied
