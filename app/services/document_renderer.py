"""Credential document rendering (single landscape PDF page, ReportLab).

Pure transformation: CredentialView in, PDF bytes out.  No store access,
so a failed render can be retried freely and never touches the
credential.  The canvas is built with ``invariant=1``, which pins the
creation date and document id, so one renderer version produces the
same bytes for the same view.

Layout, top to bottom:

    issuer name / optional subtitle
    heading ("Certificate of Completion")
    "This certifies that"  recipient name
    "has successfully completed the course"  course title
    course description (omitted when empty, at most three lines)
    issue date (and validity end, when the credential has one)
    two unlabeled signature lines
    footer: verification code, verification URL, QR code
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

import qrcode
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, LETTER, landscape
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from app.core.metrics import RENDER_DURATION, RENDER_FAILURES
from app.models.credential import CredentialView

logger = logging.getLogger(__name__)

PageSize = Literal["A4", "LETTER"]

_PAGE_SIZES = {"A4": A4, "LETTER": LETTER}

_CUSTOM_FONT = "CredentialSans"

MAX_DESCRIPTION_LINES = 3


class RenderError(RuntimeError):
    """The document could not be produced.

    Retryable; the credential itself is untouched.
    """


@dataclass(frozen=True, slots=True)
class RenderConfig:
    """Fixed set of layout options.  Unknown keys are a TypeError, not a typo
    silently ignored at render time."""

    subtitle: str = ""
    heading: str = "Certificate of Completion"
    page_size: PageSize = "A4"
    accent_color: str = "#1E40AF"
    border_color: str = "#3B82F6"
    text_color: str = "#1F2937"
    muted_color: str = "#64748B"
    rule_color: str = "#CBD5E1"
    include_qr: bool = True
    compress: bool = True
    font_path: str | None = None  # TTF used for all text; Helvetica when None


def format_date(moment: datetime) -> str:
    return f"{moment:%B} {moment.day}, {moment.year}"


class DocumentRenderer:
    media_type = "application/pdf"

    def __init__(self, config: RenderConfig) -> None:
        if config.page_size not in _PAGE_SIZES:
            raise ValueError(
                f"page_size must be A4|LETTER (got {config.page_size!r})"
            )
        self._config = config
        self._fonts: tuple[str, str] | None = None

    @property
    def config(self) -> RenderConfig:
        return self._config

    def filename(self, view: CredentialView) -> str:
        return f"certificate-{view.credential.verification_code}.pdf"

    def render(self, view: CredentialView) -> bytes:
        with RENDER_DURATION.time():
            try:
                return self._render(view)
            except RenderError:
                RENDER_FAILURES.inc()
                raise
            except Exception as exc:
                RENDER_FAILURES.inc()
                logger.exception(
                    "Render failed",
                    extra={"credential_id": str(view.credential.id)},
                )
                raise RenderError(f"could not render credential: {exc}") from exc

    # ------------------------------------------------------------------

    def _load_fonts(self) -> tuple[str, str]:
        """(regular, bold) font names, registering the custom TTF once."""
        if self._fonts is not None:
            return self._fonts
        if self._config.font_path is None:
            self._fonts = ("Helvetica", "Helvetica-Bold")
            return self._fonts
        try:
            pdfmetrics.registerFont(TTFont(_CUSTOM_FONT, self._config.font_path))
        except Exception as exc:
            raise RenderError(
                f"font asset {self._config.font_path!r} could not be loaded"
            ) from exc
        self._fonts = (_CUSTOM_FONT, _CUSTOM_FONT)
        return self._fonts

    def _render(self, view: CredentialView) -> bytes:
        cfg = self._config
        regular, bold = self._load_fonts()
        credential = view.credential

        buf = io.BytesIO()
        page_w, page_h = landscape(_PAGE_SIZES[cfg.page_size])
        c = canvas.Canvas(
            buf,
            pagesize=(page_w, page_h),
            invariant=1,
            pageCompression=1 if cfg.compress else 0,
        )
        c.setTitle(f"{cfg.heading}: {view.course.title}")
        c.setAuthor(view.issuer_name)
        c.setSubject(f"Verification code {credential.verification_code}")

        # --- Borders ---
        c.setStrokeColor(colors.HexColor(cfg.border_color))
        c.setLineWidth(2)
        c.rect(30, 30, page_w - 60, page_h - 60)
        c.setLineWidth(0.75)
        c.rect(40, 40, page_w - 80, page_h - 80)

        text_width = page_w - 200

        # --- Title block ---
        _centred(c, page_w, view.issuer_name, bold, 24, cfg.accent_color, page_h - 80)
        if cfg.subtitle:
            _centred(
                c, page_w, cfg.subtitle, regular, 13, cfg.muted_color, page_h - 102
            )
        _centred(c, page_w, cfg.heading, bold, 36, cfg.text_color, page_h - 165)

        # --- Recipient ---
        _centred(
            c, page_w, "This certifies that", regular, 15, cfg.muted_color,
            page_h - 210,
        )
        _fitted(
            c, page_w, view.recipient.name, bold, 28, cfg.accent_color,
            page_h - 250, text_width,
        )

        # --- Course ---
        _centred(
            c, page_w, "has successfully completed the course", regular, 15,
            cfg.muted_color, page_h - 285,
        )
        _fitted(
            c, page_w, view.course.title, bold, 22, cfg.text_color,
            page_h - 320, text_width,
        )

        description = view.course.description.strip()
        if description:
            lines = simpleSplit(description, regular, 11, page_w - 240)
            if len(lines) > MAX_DESCRIPTION_LINES:
                lines = lines[:MAX_DESCRIPTION_LINES]
                lines[-1] = _truncate(lines[-1], regular, 11, page_w - 240)
            y = page_h - 345
            for line in lines:
                _centred(c, page_w, line, regular, 11, cfg.muted_color, y)
                y -= 15

        # --- Dates (fixed distance from the bottom edge) ---
        _centred(
            c, page_w, f"Issued on {format_date(credential.issued_at)}", regular, 14,
            cfg.muted_color, 172,
        )
        if credential.valid_until is not None:
            _centred(
                c, page_w, f"Valid until {format_date(credential.valid_until)}",
                regular, 11, cfg.muted_color, 156,
            )

        # --- Signature placeholders ---
        sig_width = 200
        left_x = 150
        right_x = page_w - left_x - sig_width
        c.setStrokeColor(colors.HexColor(cfg.rule_color))
        c.setLineWidth(1)
        c.line(left_x, 118, left_x + sig_width, 118)
        c.line(right_x, 118, right_x + sig_width, 118)

        # --- Verification footer ---
        _centred(
            c, page_w, f"Verification code: {credential.verification_code}", regular,
            9, cfg.muted_color, 72,
        )
        _centred(
            c, page_w, f"Verify at: {view.verification_url}", regular, 9,
            cfg.border_color, 59,
        )

        if cfg.include_qr:
            qr_size = 72
            c.drawImage(
                ImageReader(_qr_png(view.verification_url)),
                page_w - 52 - qr_size,
                52,
                width=qr_size,
                height=qr_size,
            )

        c.showPage()
        c.save()
        return buf.getvalue()


def _centred(
    c: canvas.Canvas,
    page_w: float,
    text: str,
    font: str,
    size: float,
    color: str,
    y: float,
) -> None:
    c.setFillColor(colors.HexColor(color))
    c.setFont(font, size)
    c.drawCentredString(page_w / 2, y, text)


def _fitted(
    c: canvas.Canvas,
    page_w: float,
    text: str,
    font: str,
    size: float,
    color: str,
    y: float,
    max_width: float,
    min_size: float = 12,
) -> None:
    """Draw centred, shrinking the font (then truncating) to fit max_width."""
    while size > min_size and pdfmetrics.stringWidth(text, font, size) > max_width:
        size -= 1
    _centred(c, page_w, _truncate(text, font, size, max_width), font, size, color, y)


def _truncate(text: str, font: str, size: float, max_width: float) -> str:
    if pdfmetrics.stringWidth(text, font, size) <= max_width:
        return text
    while text and pdfmetrics.stringWidth(text + "...", font, size) > max_width:
        text = text[:-1]
    return text.rstrip() + "..."


def _qr_png(url: str) -> io.BytesIO:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=6,
        border=2,
    )
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return buf
