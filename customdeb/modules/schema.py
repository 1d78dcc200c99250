# customdeb/modules/schema.py
"""
Validação das stanzas de diretivas.

A primeira stanza é o cabeçalho (Header); as demais são operações sobre
arquivos (Operation). Cada tipo tem um conjunto fixo de campos; campo
desconhecido ou obrigatório ausente é sempre fatal.
"""

from __future__ import annotations
import os
import re
from typing import List, Optional, Tuple

from customdeb.modules import directive as _directive
from customdeb.modules.errors import ValidationError

DEFAULT_MOD_VERSION = "0"
DEFAULT_CHANGES = "Modified with customdeb."

OCTAL_RE = re.compile(r"^[0-7]{1,4}$")
# sufixo anexado à revisão Debian: sem "-", ":" ou "_"
MOD_VERSION_RE = re.compile(r"^[A-Za-z0-9.+~]+$")


def _check_fields(kind: str, stanza, allowed, required):
    unknown = [name for name in stanza if name not in allowed]
    if unknown:
        raise ValidationError(f"{kind}: unknown field(s): {', '.join(unknown)}")
    missing = [name for name in required if name not in stanza]
    if missing:
        raise ValidationError(f"{kind}: missing required field(s): {', '.join(missing)}")


class Header:
    FIELDS = ("Package", "Mod-Version", "Changes", "Files")
    REQUIRED = ("Package",)

    def __init__(self, package: str, mod_version: str = DEFAULT_MOD_VERSION,
                 changes: str = DEFAULT_CHANGES, files: Optional[str] = None):
        self.package = package
        self.mod_version = mod_version
        self.changes = changes
        self.files = files

    @classmethod
    def from_stanza(cls, stanza) -> "Header":
        _check_fields("header", stanza, cls.FIELDS, cls.REQUIRED)
        package = stanza["Package"].strip()
        if not package:
            raise ValidationError("header: Package must not be empty")
        mod_version = stanza.get("Mod-Version", "").strip() or DEFAULT_MOD_VERSION
        if not MOD_VERSION_RE.match(mod_version):
            raise ValidationError(f"header: invalid Mod-Version {mod_version!r}")
        changes = stanza.get("Changes", "").strip("\n") or DEFAULT_CHANGES
        files = stanza.get("Files", "").strip() or None
        return cls(package, mod_version, changes, files)


class Operation:
    FIELDS = ("File", "Owner", "Permission", "Content")
    REQUIRED = ("File",)

    def __init__(self, path: str, content: Optional[str] = None,
                 permission: Optional[int] = None,
                 owner: Optional[Tuple[str, str]] = None):
        self.path = path
        self.content = content
        self.permission = permission
        self.owner = owner

    @classmethod
    def from_stanza(cls, stanza) -> "Operation":
        _check_fields("operation", stanza, cls.FIELDS, cls.REQUIRED)
        raw_path = stanza["File"].strip()
        path = raw_path[1:] if raw_path.startswith(os.sep) else raw_path
        if not path:
            raise ValidationError(f"operation: invalid File {raw_path!r}")

        permission = None
        if "Permission" in stanza:
            value = stanza["Permission"].strip()
            if not OCTAL_RE.match(value):
                raise ValidationError(f"operation {path}: Permission must be octal, got {value!r}")
            permission = int(value, 8)

        owner = None
        if "Owner" in stanza:
            tokens = stanza["Owner"].split()
            if len(tokens) != 2:
                raise ValidationError(
                    f"operation {path}: Owner must be 'user group', got {stanza['Owner']!r}")
            owner = (tokens[0], tokens[1])

        return cls(path, stanza.get("Content"), permission, owner)

    def describe(self) -> str:
        parts = []
        if self.content is not None:
            parts.append("content")
        if self.owner:
            parts.append(f"owner={self.owner[0]}:{self.owner[1]}")
        if self.permission is not None:
            parts.append(f"mode={self.permission:o}")
        return ", ".join(parts) or "touch"


class Directives:
    def __init__(self, header: Header, operations: List[Operation], base_dir: str = "."):
        self.header = header
        self.operations = operations
        self.base_dir = base_dir

    @property
    def files_dir(self) -> Optional[str]:
        """Diretório de overlay (Files), relativo ao arquivo de diretivas."""
        if not self.header.files:
            return None
        return os.path.normpath(os.path.join(self.base_dir, os.path.expanduser(self.header.files)))


def validate(stanzas, base_dir: str = ".") -> Directives:
    if not stanzas:
        raise ValidationError("no header stanza")
    header = Header.from_stanza(stanzas[0])
    operations = []
    for index, stanza in enumerate(stanzas[1:], start=1):
        try:
            operations.append(Operation.from_stanza(stanza))
        except ValidationError as e:
            raise ValidationError(f"stanza {index}: {e}")
    return Directives(header, operations, base_dir)


def load_directives(path: str) -> Directives:
    stanzas = _directive.parse_file(path)
    return validate(stanzas, os.path.dirname(os.path.abspath(path)))
