# customdeb/modules/metadata.py
"""
metadata.py - mantém os metadados do pacote coerentes após as modificações.

 - nova versão: <Version>.customdeb<Mod-Version>
 - nova entrada no topo de usr/share/doc/<pkg>/changelog.Debian.gz,
   verificada relendo o arquivo gravado
 - DEBIAN/control com a nova versão (e Installed-Size recalculado)
 - DEBIAN/md5sums recalculado para todos os arquivos regulares
"""

from __future__ import annotations
import os
import gzip
import email.utils
from typing import Optional

from debian.changelog import Changelog
from debian.deb822 import Deb822
from debian.debian_support import Version

from customdeb.modules import logger as _logger
from customdeb.modules.config import config
from customdeb.modules.errors import ValidationError, VersionMismatchError
from customdeb.modules.patch import contained_path

VERSION_SUFFIX = "customdeb"
METADATA_DIR = "DEBIAN"
DEFAULT_MAINTAINER = "customdeb <root@localhost>"
CHANGELOG_NAMES = ("changelog.Debian.gz", "changelog.gz")


def compute_version(version: str, mod_version: str = "0") -> str:
    return f"{version}.{VERSION_SUFFIX}{mod_version or '0'}"


def read_control(tree: str) -> Deb822:
    path = os.path.join(tree, METADATA_DIR, "control")
    with open(path, "r", encoding="utf-8") as fh:
        control = Deb822(fh)
    for field in ("Package", "Version"):
        if not control.get(field):
            raise ValidationError(f"control file {path} has no {field} field")
    return control


def write_control(tree: str, control: Deb822):
    path = os.path.join(tree, METADATA_DIR, "control")
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(control.dump())


def default_maintainer() -> str:
    maintainer = config.get("changelog", "maintainer")
    if maintainer:
        return maintainer
    name = os.environ.get("DEBFULLNAME")
    email_addr = os.environ.get("DEBEMAIL")
    if name and email_addr:
        return f"{name} <{email_addr}>"
    return DEFAULT_MAINTAINER


def format_changes(message: str):
    """Formata a mensagem como item de changelog: '  * linha', '    linha'."""
    lines = message.strip("\n").split("\n")
    changes = [""]
    changes.append(f"  * {lines[0].strip()}")
    for line in lines[1:]:
        changes.append(f"    {line}" if line.strip() else "")
    changes.append("")
    return changes


class MetadataReconciler:
    def __init__(self, tree: str, tools, maintainer: Optional[str] = None,
                 distribution: Optional[str] = None, urgency: Optional[str] = None,
                 logger: Optional[_logger.Logger] = None):
        self.tree = tree
        self.tools = tools
        self.maintainer = maintainer or default_maintainer()
        self.distribution = distribution or config.get("changelog", "distribution",
                                                       fallback="UNRELEASED")
        self.urgency = urgency or config.get("changelog", "urgency", fallback="medium")
        self.log = logger or _logger.Logger("metadata")

    def reconcile(self, control: Deb822, header) -> str:
        """Aplica versão, changelog, control e md5sums. Retorna a nova versão."""
        new_version = compute_version(control["Version"], header.mod_version)
        try:
            Version(new_version)
        except ValueError as e:
            raise ValidationError(f"invalid package version {new_version!r}: {e}")
        self.log.info(f"New version: {new_version}")

        changelog_path = self.changelog_path(control["Package"])
        self.append_changelog(changelog_path, control["Package"], new_version, header.changes)
        self.verify_changelog(changelog_path, new_version)

        control["Version"] = new_version
        if "Installed-Size" in control:
            control["Installed-Size"] = str(self.installed_size())
        write_control(self.tree, control)

        self.write_md5sums()
        return new_version

    # ------------------------
    # Changelog
    # ------------------------
    def changelog_path(self, package: str) -> str:
        doc_dir = os.path.join("usr", "share", "doc", package)
        for name in CHANGELOG_NAMES:
            candidate = contained_path(self.tree, os.path.join(doc_dir, name))
            if os.path.isfile(candidate):
                return candidate
        return contained_path(self.tree, os.path.join(doc_dir, CHANGELOG_NAMES[0]))

    def _read_changelog(self, path: str) -> Changelog:
        if not os.path.exists(path):
            return Changelog()
        with gzip.open(path, "rb") as fh:
            data = fh.read()
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            # changelogs antigos em latin-1; regravado em utf-8
            self.log.warning(f"{path} is not valid UTF-8, reading it as Latin-1")
            text = data.decode("latin-1")
        try:
            return Changelog(text, strict=False)
        except ValueError as e:
            raise ValidationError(f"cannot parse changelog {path}: {e}")

    def append_changelog(self, path: str, package: str, version: str, message: str):
        changelog = self._read_changelog(path)
        changelog.new_block(
            package=package,
            version=version,
            distributions=self.distribution,
            urgency=self.urgency,
            changes=format_changes(message),
            author=self.maintainer,
            date=email.utils.formatdate(localtime=True),
        )
        is_new = not os.path.exists(path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with gzip.open(path, "wt", encoding="utf-8") as fh:
            fh.write(str(changelog))
        if is_new:
            os.chmod(path, 0o644)
        self.log.debug(f"Changelog entry {version} written to {path}")

    def verify_changelog(self, path: str, expected: str):
        blocks = list(self._read_changelog(path))
        found = str(blocks[0].version) if blocks else None
        if found != expected:
            raise VersionMismatchError(
                f"changelog {path} declares version {found}, expected {expected}")

    # ------------------------
    # DEBIAN/md5sums e Installed-Size
    # ------------------------
    def _payload_entries(self):
        for root, dirs, files in os.walk(self.tree):
            if root == self.tree and METADATA_DIR in dirs:
                dirs.remove(METADATA_DIR)
            dirs.sort()
            for name in sorted(files):
                path = os.path.join(root, name)
                yield path, os.path.relpath(path, self.tree).replace(os.sep, "/")

    def write_md5sums(self):
        lines = []
        for path, rel in self._payload_entries():
            if os.path.islink(path) or not os.path.isfile(path):
                continue
            lines.append(f"{self.tools.checksum(path)}  {rel}\n")
        lines.sort(key=lambda line: line.split("  ", 1)[1])
        md5sums = os.path.join(self.tree, METADATA_DIR, "md5sums")
        with open(md5sums, "w", encoding="utf-8") as fh:
            fh.writelines(lines)
        os.chmod(md5sums, 0o644)
        self.log.debug(f"md5sums updated with {len(lines)} entries")

    def installed_size(self) -> int:
        """Tamanho instalado em KiB, no estilo do dpkg-gencontrol."""
        total = 0
        for root, dirs, files in os.walk(self.tree):
            if root == self.tree and METADATA_DIR in dirs:
                dirs.remove(METADATA_DIR)
            total += len(dirs)
            for name in files:
                path = os.path.join(root, name)
                if os.path.islink(path) or not os.path.isfile(path):
                    total += 1
                else:
                    total += (os.path.getsize(path) + 1023) // 1024
        return total
