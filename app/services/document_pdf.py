from __future__ import annotations

import textwrap
from typing import Iterable

from app import models
from app.services.documents import PENDING_HASH, client_ref_for, format_eur, split_paragraphs

A4_POINTS = (595, 842)
_MAX_BODY_LINES = 48
_WRAP_WIDTH = 95


def _pdf_text(value: str) -> str:
    """Latin-1 literal string with the three PDF delimiters escaped."""

    text = str(value).encode("latin-1", errors="replace").decode("latin-1")
    for char in ("\\", "(", ")"):
        text = text.replace(char, "\\" + char)
    return f"({text})"


def _text_block(x: int, y: int, size: int, leading: int, rows: Iterable[str]) -> list[str]:
    ops = ["BT", f"/F1 {size} Tf", f"{leading} TL", f"{x} {y} Td"]
    for i, row in enumerate(rows):
        ops.append(f"{_pdf_text(row)} Tj" if i == 0 else f"T* {_pdf_text(row)} Tj")
    ops.append("ET")
    return ops


def render_text_pdf(title: str, body: Iterable[str], footer: Iterable[str] = ()) -> bytes:
    """One A4 page of Helvetica text; identical inputs give identical bytes."""

    width, height = A4_POINTS
    ops = _text_block(50, height - 50, 14, 22, [title])
    ops += _text_block(50, height - 72, 10, 14, body)
    footer = list(footer)
    if footer:
        ops += _text_block(50, 30 + 10 * (len(footer) - 1), 8, 10, footer)
    content = ("\n".join(ops) + "\n").encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        (
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {width} {height}] "
            "/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>"
        ).encode("ascii"),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Length %d >>\nstream\n" % len(content) + content + b"endstream",
    ]

    out = bytearray(b"%PDF-1.4\n")
    xref = ["0000000000 65535 f "]
    for number, body_bytes in enumerate(objects, start=1):
        xref.append(f"{len(out):010d} 00000 n ")
        out += b"%d 0 obj\n" % number + body_bytes + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(xref)}\n".encode("ascii")
    out += "".join(entry + "\n" for entry in xref).encode("ascii")
    out += f"trailer\n<< /Size {len(xref)} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode("ascii")
    return bytes(out)

def contract_pdf_bytes(contract: models.Contract) -> bytes:
    """Plain-text PDF rendition of a stored contract."""

    meta = contract.meta or {}
    piece = contract.masterpiece
    lines: list[str] = [
        f"Document Ref: {contract.doc_ref}",
        f"Client Ref: {client_ref_for(contract.user)}",
        f"Version: v{contract.version}.0   Status: {contract.status.value}",
    ]
    if piece is not None:
        lines.extend(
            [
                "",
                f"{piece.title} (serial {piece.serial_id})",
                f"Valuation: {format_eur(piece.valuation)}",
            ]
        )
    if meta.get("balance_due") is not None:
        lines.append(f"Balance Due: {format_eur(meta.get('balance_due'))}")
    lines.append("")
    for paragraph in split_paragraphs(str(meta.get("body") or "")):
        lines.extend(textwrap.wrap(paragraph, width=_WRAP_WIDTH) or [""])
        lines.append("")

    footer = [f"Blockchain hash: {(piece.blockchain_hash if piece else None) or PENDING_HASH}"]
    if contract.signed_at is not None:
        footer.append(f"Signed: {contract.signed_at.isoformat(timespec='seconds')}")

    return render_text_pdf(contract.title, lines[:_MAX_BODY_LINES], footer)
