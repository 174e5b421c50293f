"""
MJML Email Templates
Booking emails rendered with MJML for responsive, cross-client compatibility
"""

from typing import Optional

from .config import FRONTEND_URL

# Brand colors - Purple/Charcoal scheme
THEME = {
    "primary": "#9146ff",
    "primary_dark": "#7c3aed",
    "primary_light": "#ede9fe",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#141414",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#10b981",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

BRAND_NAME = "Love4Detailing"
LOGO_URL = f"{FRONTEND_URL}/logo.png"


def format_price(price_pence: int) -> str:
    return f"£{price_pence / 100:.2f}"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image src="{LOGO_URL}" alt="{BRAND_NAME}" width="140px" href="{FRONTEND_URL}" padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © {BRAND_NAME}. Mobile car detailing that comes to you.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _booking_summary_rows(data: dict) -> str:
    rows = [
        ("Reference", data["booking_reference"]),
        ("Date", data["booking_date"]),
        ("Time", data["booking_time"]),
        ("Vehicle", data.get("vehicle_description") or "To be confirmed"),
        ("Location", data.get("service_location") or "To be confirmed"),
        ("Total", format_price(data["total_price_pence"])),
        ("Payment", (data.get("payment_method") or "cash").replace("_", " ").title()),
    ]
    cells = "".join(
        f"""
        <tr>
          <td style="padding: 6px 0; color: {THEME['text_muted']};">{label}</td>
          <td style="padding: 6px 0; text-align: right; font-weight: 600;">{value}</td>
        </tr>"""
        for label, value in rows
    )
    return f"""
    <mj-table font-size="15px" color="{THEME['text_primary']}" padding="8px 0 24px 0">
      {cells}
    </mj-table>
    """


def booking_confirmation_template(data: dict) -> str:
    """Customer confirmation MJML template"""
    account_notice = ""
    if data.get("account_created"):
        account_notice = f"""
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      We've created an account for {data['customer_email']} so you can manage this booking
      and collect reward points. Use "forgot password" on the sign-in page to set a password.
    </mj-text>
    """

    content = f"""
    <mj-text>
      Hi {data['customer_name']},
    </mj-text>

    <mj-text>
      Thanks for booking with {BRAND_NAME}. Your detailing appointment is confirmed.
    </mj-text>

    {_booking_summary_rows(data)}

    {account_notice}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Need to change something? Call us on {data['admin_phone']} or reply to {data['admin_email']}.
    </mj-text>
    """

    return get_base_template(
        title="Your booking is confirmed",
        preview_text=f"Booking {data['booking_reference']} on {data['booking_date']}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/dashboard/bookings",
        cta_label="View My Booking",
    )


def admin_new_booking_template(data: dict) -> str:
    """Admin notification for a new booking"""
    content = f"""
    <mj-text>
      A new booking has been placed by {data['customer_name']} ({data['customer_email']}
      {', ' + data['customer_phone'] if data.get('customer_phone') else ''}).
    </mj-text>

    {_booking_summary_rows(data)}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Notes: {data.get('notes') or 'None'}
    </mj-text>
    """

    return get_base_template(
        title="New booking received",
        preview_text=f"{data['customer_name']} booked {data['booking_date']} {data['booking_time']}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/admin/bookings",
        cta_label="Open Admin Dashboard",
    )


def booking_cancelled_template(data: dict) -> str:
    """Customer cancellation MJML template"""
    content = f"""
    <mj-text>
      Hi {data['customer_name']},
    </mj-text>

    <mj-text>
      Your booking {data['booking_reference']} on {data['booking_date']} at {data['booking_time']}
      has been cancelled.
    </mj-text>

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Reason: {data.get('reason') or 'Not specified'}
    </mj-text>

    <mj-text>
      We'd love to see you again. You can pick a new slot at any time.
    </mj-text>
    """

    return get_base_template(
        title="Your booking has been cancelled",
        preview_text=f"Booking {data['booking_reference']} cancelled",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/booking",
        cta_label="Book Again",
    )


def booking_rescheduled_template(data: dict) -> str:
    """Customer notice that a booking moved to a new slot"""
    content = f"""
    <mj-text>
      Hi {data['customer_name']},
    </mj-text>

    <mj-text>
      Your booking {data['booking_reference']} has moved from {data['previous_date']} at
      {data['previous_time']} to the new time below.
    </mj-text>

    {_booking_summary_rows(data)}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Reason: {data.get('reason') or 'Customer request'}
    </mj-text>
    """

    return get_base_template(
        title="Your booking has been rescheduled",
        preview_text=f"Booking {data['booking_reference']} now on {data['booking_date']}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/dashboard/bookings",
        cta_label="View My Booking",
    )
