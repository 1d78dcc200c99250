# customdeb/modules/directive.py
"""
directive.py - leitura do arquivo de diretivas (formato estilo deb822).

Formato:
 - campos ``Nome: valor``; o nome não tem espaços nem começa com ``#``
 - linha iniciada por espaço/tab continua o valor do campo anterior; o
   primeiro caractere de espaço é removido e as linhas são unidas com ``\\n``
 - uma continuação contendo apenas ``.`` vira uma linha vazia no valor
 - ``#`` inicia comentário até o fim da linha; ``##`` é um ``#`` literal
 - uma ou mais linhas em branco separam stanzas; linhas só de comentário
   são descartadas
 - um campo repetido na mesma stanza é ParseError (não abre nova stanza)

Exemplo:

    Package: foo
    Mod-Version: 1

    File: /etc/foo.conf
    Content:
     [main]
     .
     enabled=true   # comentário
    Permission: 644
"""

from __future__ import annotations
import re
from typing import Dict, List

from customdeb.modules.errors import ParseError

FIELD_RE = re.compile(r"^(?P<name>[^\s:#][^\s:]*):(?P<value>.*)$")

Stanza = Dict[str, str]


def strip_comment(line: str):
    """Remove o comentário da linha. Retorna (texto, havia_comentario)."""
    out = []
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "#":
            if line[i + 1:i + 2] == "#":
                out.append("#")
                i += 2
                continue
            return "".join(out).rstrip(), True
        out.append(ch)
        i += 1
    return "".join(out), False


def parse_text(text: str) -> List[Stanza]:
    """Converte o texto de diretivas em uma lista ordenada de stanzas."""
    stanzas: List[Stanza] = []
    current: Stanza = {}
    field = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line, had_comment = strip_comment(raw.rstrip("\r"))

        if not line.strip():
            if had_comment:
                # linha só de comentário
                continue
            if current:
                stanzas.append(current)
                current = {}
            field = None
            continue

        if line[0] in " \t":
            if field is None:
                raise ParseError("continuation line without a preceding field", lineno)
            piece = line[1:]
            if piece == ".":
                piece = ""
            current[field] = current[field] + "\n" + piece
            continue

        m = FIELD_RE.match(line)
        if not m:
            raise ParseError(f"malformed line: {raw.strip()!r}", lineno)
        name = m.group("name")
        if name in current:
            raise ParseError(f"duplicate field {name!r} in stanza", lineno)
        current[name] = m.group("value").strip()
        field = name

    if current:
        stanzas.append(current)
    if not stanzas:
        raise ParseError("directive file is empty")
    return stanzas


def parse_file(path: str) -> List[Stanza]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"cannot read directive file {path}: {e}")
    return parse_text(text)


def _escape(text: str) -> str:
    return text.replace("#", "##")


def dump_stanza(stanza: Stanza) -> str:
    """Serializa uma stanza de volta para o formato de diretivas.

    Linhas que contenham só espaços ou só ``.`` não têm representação e
    voltam como linha vazia.
    """
    out = []
    for name, value in stanza.items():
        lines = value.split("\n")
        first = _escape(lines[0])
        out.append(f"{name}: {first}" if first else f"{name}:")
        for line in lines[1:]:
            out.append(" " + _escape(line) if line else " .")
    return "\n".join(out) + "\n"


def dump_stanzas(stanzas: List[Stanza]) -> str:
    return "\n".join(dump_stanza(s) for s in stanzas)
