"""Extract plain text from a CV stored as DOCX, with a plain-text fallback."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Iterator
from xml.etree import ElementTree

log = logging.getLogger(__name__)

_DOCUMENT_XML = "word/document.xml"
_FALLBACK_ENCODINGS = ("windows-1252", "iso-8859-1")


class CVParseError(Exception):
    """Raised when a CV file cannot be found or read as text."""


def is_valid_docx(path: str | Path) -> bool:
    """Return True when the file starts with the ZIP signature."""
    try:
        with open(path, "rb") as handle:
            header = handle.read(4)
    except OSError:
        return False
    return header.startswith(b"PK")


def read_as_plain_text(path: str | Path) -> str:
    """Read a file as text, trying UTF-8 first and then single-byte encodings."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise CVParseError(f"could not read {path}: {exc}") from exc

    for encoding in ("utf-8", *_FALLBACK_ENCODINGS):
        try:
            content = data.decode(encoding)
        except UnicodeDecodeError:
            continue
        if content.strip():
            log.info("read CV as plain text", extra={"encoding": encoding, "chars": len(content)})
            return content

    raise CVParseError(f"could not read {path} with any encoding")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ElementTree.Element, name: str) -> Iterator[ElementTree.Element]:
    return (child for child in element if _local(child.tag) == name)


def _paragraph_runs(paragraph: ElementTree.Element) -> Iterator[str]:
    for run in _children(paragraph, "r"):
        text = "".join(t.text or "" for t in _children(run, "t"))
        if text:
            yield text


def _extract_text(root: ElementTree.Element) -> str:
    parts: list[str] = []
    bodies = list(_children(root, "body"))

    for body in bodies:
        for paragraph in _children(body, "p"):
            line = "".join(_paragraph_runs(paragraph)).strip()
            if line:
                parts.append(line)

    for body in bodies:
        for table in _children(body, "tbl"):
            for row in _children(table, "tr"):
                cells = []
                for cell in _children(row, "tc"):
                    text = "".join(
                        run for p in _children(cell, "p") for run in _paragraph_runs(p)
                    ).strip()
                    if text:
                        cells.append(text)
                if cells:
                    parts.append(" | ".join(cells))

    return "\n".join(parts)


def parse_cv_docx(path: str | Path) -> str:
    """Return the text of a DOCX CV; falls back to reading the file as plain text."""
    path = Path(path)
    if not path.exists():
        raise CVParseError(f"cv file not found: {path}")

    if not is_valid_docx(path):
        log.warning("file does not appear to be valid DOCX, trying plain text", extra={"path": str(path)})
        return read_as_plain_text(path)

    try:
        archive = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as exc:
        log.warning("DOCX open failed, trying plain text", extra={"error": str(exc)})
        return read_as_plain_text(path)

    with archive:
        if _DOCUMENT_XML not in archive.namelist():
            log.warning("no word/document.xml found, trying plain text")
            return read_as_plain_text(path)
        try:
            xml_bytes = archive.read(_DOCUMENT_XML)
        except (zipfile.BadZipFile, OSError, RuntimeError) as exc:
            raise CVParseError(f"open document.xml: {exc}") from exc

    try:
        root = ElementTree.fromstring(xml_bytes)
    except ElementTree.ParseError as exc:
        log.warning("XML decode failed, trying plain text", extra={"error": str(exc)})
        return read_as_plain_text(path)

    full_text = _extract_text(root)
    if not full_text.strip():
        log.warning("DOCX parsing produced empty text, trying plain text")
        return read_as_plain_text(path)

    log.info("parsed CV as DOCX", extra={"chars": len(full_text)})
    return full_text