"""Document rendering for deposit agreements, invoices, certificates and VIP terms.

Rendering is a pure function of its inputs: it never touches the database and
never allocates references. Callers pass the reference and date they want
printed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import Any, Protocol

DESCRIPTION_EXCERPT_CHARS = 180
PENDING_HASH = "PENDING_VERIFICATION"

DEFAULT_TITLES: dict[str, str] = {
    "deposit": "Deposit Agreement",
    "invoice": "Final Invoice",
    "certificate": "Certificate of Authenticity",
    "vip": "Private Client Agreement",
    "resale": "Resale Agreement",
    "purchase": "Purchase Agreement",
}


@dataclass(frozen=True)
class DocumentOptions:
    doc_ref: str
    issued_on: date
    version: int = 1
    title: str | None = None
    client_ref: str | None = None
    balance_due: float | None = None
    escrow_enabled: bool = False


@dataclass(frozen=True)
class RenderedDocument:
    title: str
    html: str


class DocumentRenderer(Protocol):
    def render(
        self,
        doc_type: str,
        body: str,
        buyer: Any,
        masterpiece: Any,
        options: DocumentOptions,
    ) -> RenderedDocument: ...


def client_ref_for(user: Any) -> str:
    name = str(getattr(user, "name", "") or "")
    return f"CL-{user.id}-{name[:3].upper()}"


def format_eur(amount: float | None) -> str:
    return f"{float(amount or 0):,.2f} EUR"


def split_paragraphs(body: str) -> list[str]:
    return [p.strip() for p in (body or "").split("\n\n") if p.strip()]


class HtmlDocumentRenderer:
    """Default renderer producing a self-contained HTML fragment."""

    signatory = "Atelier Director"

    def render(
        self,
        doc_type: str,
        body: str,
        buyer: Any,
        masterpiece: Any,
        options: DocumentOptions,
    ) -> RenderedDocument:
        title = options.title or DEFAULT_TITLES.get(doc_type, doc_type.title())
        client_ref = options.client_ref or client_ref_for(buyer)
        description = str(getattr(masterpiece, "description", "") or "")
        excerpt = description[:DESCRIPTION_EXCERPT_CHARS]
        if len(description) > DESCRIPTION_EXCERPT_CHARS:
            excerpt += "..."

        if doc_type == "invoice":
            summary = (
                '<div class="balance-due"><span>Balance Due</span>'
                f"<strong>{escape(format_eur(options.balance_due))}</strong></div>"
            )
        else:
            status = getattr(masterpiece, "status", "")
            status = getattr(status, "value", status)
            summary = f'<div class="status"><span>Status</span><strong>{escape(str(status)).upper()}</strong></div>'

        paragraphs = "".join(
            f"<p>{escape(p).replace(chr(10), '<br>')}</p>" for p in split_paragraphs(body)
        )

        escrow_note = ""
        if options.escrow_enabled:
            escrow_note = (
                '<div class="escrow">Funds for this transaction are held in escrow. '
                "The buyer has a 48-hour inspection period after delivery before "
                "release to the atelier.</div>"
            )

        blockchain_hash = getattr(masterpiece, "blockchain_hash", None) or PENDING_HASH
        buyer_name = str(getattr(buyer, "name", "") or "")

        html = "\n".join(
            [
                f'<article class="vault-document vault-document--{escape(doc_type)}">',
                "<header>",
                f"<h1>{escape(title)}</h1>",
                "<dl>",
                f"<dt>Document Ref</dt><dd>{escape(options.doc_ref)}</dd>",
                f"<dt>Client Ref</dt><dd>{escape(client_ref)}</dd>",
                f"<dt>Version</dt><dd>v{int(options.version)}.0</dd>",
                f"<dt>Date</dt><dd>{options.issued_on.strftime('%B %d, %Y')}</dd>",
                "</dl>",
                "</header>",
                '<section class="asset">',
                f"<h2>{escape(str(getattr(masterpiece, 'title', '') or ''))}</h2>",
                f"<div>Serial: {escape(str(getattr(masterpiece, 'serial_id', '') or ''))}</div>",
                f"<p>{escape(excerpt)}</p>",
                f"<div>Materials: {escape(str(getattr(masterpiece, 'materials', '') or ''))}</div>",
                f"<div>Gemstones: {escape(str(getattr(masterpiece, 'gemstones', '') or ''))}</div>",
                f"<div>Total Valuation: {escape(format_eur(getattr(masterpiece, 'valuation', 0)))}</div>",
                summary,
                "</section>",
                f'<section class="body">{paragraphs}</section>',
                escrow_note,
                '<section class="signatures">',
                f"<div>For the Atelier: {escape(self.signatory)}</div>",
                f"<div>Client: {escape(buyer_name)}</div>",
                "</section>",
                f"<footer>Blockchain hash: {escape(blockchain_hash)}</footer>",
                "</article>",
            ]
        )
        return RenderedDocument(title=title, html=html)


default_renderer = HtmlDocumentRenderer()
