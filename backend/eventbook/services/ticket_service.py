"""
PDF ticket rendering with ReportLab and a QR code for venue check-in.
"""

from dataclasses import dataclass
from datetime import datetime
from io import BytesIO

import qrcode
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from eventbook.core.metrics import tickets_generated


@dataclass(frozen=True)
class TicketData:
    reservation_id: int
    event_id: int
    event_title: str
    event_date: datetime
    event_location: str
    status: str
    number_of_seats: int
    booked_at: datetime
    holder_name: str
    holder_email: str

    @property
    def qr_payload(self) -> str:
        return f"RESERVATION:{self.reservation_id}:{self.event_id}"

    @property
    def short_code(self) -> str:
        return f"R{self.reservation_id:08d}"


def _qr_image(payload: str) -> ImageReader:
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)
    return ImageReader(buffer)


def _wrap(c: canvas.Canvas, text: str, font: str, size: int, max_width: float) -> list[str]:
    words = text.split()
    if not words:
        return [""]
    lines = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if c.stringWidth(candidate, font, size) < max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def render_ticket(ticket: TicketData) -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    dark = HexColor("#1a1a1a")
    muted = HexColor("#666666")
    light = HexColor("#999999")

    # Header
    c.setFillColor(dark)
    c.setFont("Helvetica-Bold", 28)
    c.drawCentredString(width / 2, height - 30 * mm, "EVENT TICKET")
    c.setStrokeColor(HexColor("#333333"))
    c.setLineWidth(2)
    c.line(20 * mm, height - 36 * mm, width - 20 * mm, height - 36 * mm)

    # Event information
    y = height - 50 * mm
    c.setFont("Helvetica-Bold", 20)
    for line in _wrap(c, ticket.event_title, "Helvetica-Bold", 20, width - 40 * mm):
        c.drawCentredString(width / 2, y, line)
        y -= 8 * mm

    c.setFillColor(muted)
    c.setFont("Helvetica", 12)
    c.drawCentredString(width / 2, y, ticket.event_date.strftime("%A, %B %d, %Y"))
    y -= 6 * mm
    c.drawCentredString(width / 2, y, ticket.event_date.strftime("%H:%M"))
    y -= 6 * mm
    c.drawCentredString(width / 2, y, ticket.event_location)
    y -= 16 * mm

    # Reservation details (left) and attendee (right)
    left, right = 25 * mm, 110 * mm
    c.setFillColor(HexColor("#333333"))
    c.setFont("Helvetica-Bold", 10)
    c.drawString(left, y, "RESERVATION DETAILS")
    c.drawString(right, y, "ATTENDEE INFORMATION")

    details = [
        ("Reservation ID:", ticket.short_code),
        ("Status:", ticket.status),
        ("Number of Seats:", str(ticket.number_of_seats)),
        ("Booking Date:", ticket.booked_at.strftime("%Y-%m-%d")),
    ]
    attendee = [("Name:", ticket.holder_name), ("Email:", ticket.holder_email)]

    row_y = y - 7 * mm
    for label, value in details:
        c.setFont("Helvetica", 9)
        c.setFillColor(muted)
        c.drawString(left, row_y, label)
        c.setFont("Helvetica-Bold", 9)
        c.setFillColor(HexColor("#22c55e") if label == "Status:" else dark)
        c.drawString(left + 30 * mm, row_y, value)
        row_y -= 6 * mm

    row_y = y - 7 * mm
    for label, value in attendee:
        c.setFont("Helvetica", 9)
        c.setFillColor(muted)
        c.drawString(right, row_y, label)
        c.setFont("Helvetica-Bold", 9)
        c.setFillColor(dark)
        c.drawString(right + 15 * mm, row_y, value)
        row_y -= 6 * mm

    # QR code
    qr_size = 45 * mm
    qr_y = y - 40 * mm - qr_size
    c.drawImage(_qr_image(ticket.qr_payload), (width - qr_size) / 2, qr_y, qr_size, qr_size)
    c.setFont("Helvetica", 8)
    c.setFillColor(light)
    c.drawCentredString(width / 2, qr_y - 6 * mm, "Scan this QR code at the venue for quick check-in")

    # Footer
    footer_y = qr_y - 18 * mm
    c.setStrokeColor(HexColor("#e5e5e5"))
    c.setLineWidth(1)
    c.line(20 * mm, footer_y, width - 20 * mm, footer_y)
    c.drawCentredString(width / 2, footer_y - 6 * mm, "This is your official event ticket. Please present it at the venue.")
    c.drawCentredString(
        width / 2, footer_y - 11 * mm, "For questions, contact the event organizer or visit our support page."
    )

    c.showPage()
    c.save()
    tickets_generated.inc()
    return buffer.getvalue()
