# customdeb/modules/cli.py
"""
CLI do customdeb.

Uso:
  customdeb [opções] <arquivo-de-diretivas> [pacote.deb]

Sem pacote.deb a versão mais recente do pacote é baixada (apt-get download)
para o diretório de cache. O novo pacote é gravado no diretório de saída.

  customdeb foo.ctrl                      # baixa foo e aplica foo.ctrl
  customdeb foo.ctrl foo_1.0_all.deb      # usa o .deb local
  customdeb --check foo.ctrl              # só valida e mostra as diretivas
"""

from __future__ import annotations
import argparse
import sys
import traceback
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from customdeb import __version__
from customdeb.modules import logger as _logger
from customdeb.modules import privilege as _privilege
from customdeb.modules import schema as _schema
from customdeb.modules.config import config
from customdeb.modules.customize import Customizer
from customdeb.modules.errors import CustomdebError

LOG = _logger.Logger("cli")


def make_console(no_color: bool, quiet: bool, stderr: bool = False) -> Console:
    if no_color:
        return Console(color_system=None, force_terminal=False, markup=False,
                       quiet=quiet, stderr=stderr)
    return Console(quiet=quiet, stderr=stderr)


def print_panel(console: Console, title: str, text: str, style: str = "green"):
    console.print(Panel(text, title=title, style=style))


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="customdeb",
        description="Apply a directive file to a Debian binary package and build a modified copy.",
    )
    ap.add_argument("directive", help="directive file")
    ap.add_argument("archive", nargs="?", help="local .deb to modify (downloaded when omitted)")
    ap.add_argument("--output-dir", help="directory receiving the new package")
    ap.add_argument("--cache-dir", help="download cache directory")
    ap.add_argument("--keep-scratch", action="store_true", default=None,
                    help="keep the work directory after the run")
    ap.add_argument("--no-elevate", action="store_true",
                    help="do not re-run under the privilege wrapper")
    ap.add_argument("--check", action="store_true",
                    help="only parse and validate the directive file")
    ap.add_argument("--no-color", action="store_true")
    ap.add_argument("--quiet", action="store_true")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def show_directives(console: Console, directives: _schema.Directives):
    header = directives.header
    tbl = Table(title=f"Package: {header.package}")
    tbl.add_column("Key", style="bold")
    tbl.add_column("Value", overflow="fold")
    tbl.add_row("Mod-Version", header.mod_version)
    tbl.add_row("Changes", header.changes)
    tbl.add_row("Files", directives.files_dir or "-")
    console.print(tbl)

    ops = Table(title="Operations")
    ops.add_column("#", justify="right")
    ops.add_column("File", style="bold")
    ops.add_column("Owner")
    ops.add_column("Permission")
    ops.add_column("Content", overflow="fold")
    for index, op in enumerate(directives.operations, start=1):
        ops.add_row(
            str(index),
            "/" + op.path,
            " ".join(op.owner) if op.owner else "-",
            f"{op.permission:o}" if op.permission is not None else "-",
            f"{len(op.content.splitlines())} line(s)" if op.content is not None else "-",
        )
    console.print(ops)


def main(argv: Optional[List[str]] = None, elevate: Optional[bool] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = build_argparser().parse_args(argv)
    console = make_console(args.no_color, args.quiet)
    # erros saem mesmo com --quiet
    err_console = make_console(args.no_color, quiet=False, stderr=True)

    try:
        if args.check:
            directives = _schema.load_directives(args.directive)
            show_directives(console, directives)
            print_panel(console, "check", f"{args.directive} is valid")
            return 0

        if elevate is None:
            elevate = not args.no_elevate and config.getboolean("privilege", "elevate", fallback=True)
        if elevate:
            code = _privilege.ensure_privileges(argv)
            if code is not None:
                return code

        customizer = Customizer(
            cache_dir=args.cache_dir,
            output_dir=args.output_dir,
            keep_scratch=args.keep_scratch,
        )
        result = customizer.run(args.directive, args.archive)
        print_panel(console, "customdeb", f"New package: {result}")
        return 0
    except (CustomdebError, OSError) as e:
        err_console.print(f"customdeb: {e}", style="red", markup=False, soft_wrap=True)
        LOG.debug(traceback.format_exc())
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
