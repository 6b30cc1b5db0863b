"""
Email Templates
HTML bodies for transactional emails
"""

from typing import Optional

from app.config import get_settings

settings = get_settings()

HEADER_COLORS = {
    "success": "#4CAF50",
    "info": "#2196F3",
    "warning": "#FF9800",
    "danger": "#E53935",
}


def render_base_template(title: str, content: str, tone: str = "info", footer_text: str = "") -> str:
    """Wrap content in the shared PetSync layout"""
    color = HEADER_COLORS.get(tone, HEADER_COLORS["info"])
    footer = footer_text or f"Sent by {settings.APP_NAME}"
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; background-color: #f5f5f5; margin: 0; padding: 0;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background-color: #ffffff; border-radius: 8px; overflow: hidden;">
            <div style="background-color: {color}; color: #ffffff; padding: 24px; text-align: center;">
                <h1 style="margin: 0; font-size: 24px;">{title}</h1>
            </div>
            <div style="padding: 24px;">
                {content}
            </div>
        </div>
        <div style="text-align: center; padding: 24px; color: #6c757d; font-size: 13px;">
            <p>{footer}</p>
        </div>
    </div>
</body>
</html>
"""


def _rows(rows: list[tuple[str, Optional[str]]]) -> str:
    lines = [
        f'<p style="margin: 4px 0;"><strong>{label}:</strong> {value}</p>'
        for label, value in rows if value
    ]
    return (
        '<div style="background-color: #f8f9fa; border-radius: 8px; padding: 16px; margin: 16px 0;">'
        + "".join(lines)
        + "</div>"
    )


OTP_PURPOSES = {
    "login": ("Your login code", "Use this code to sign in to your account."),
    "register": ("Verify your email", "Use this code to finish creating your account."),
    "password_reset": ("Reset your password", "Use this code to choose a new password."),
    "email_verification": ("Verify your email", "Use this code to confirm your email address."),
}


def render_otp_email(name: Optional[str], code: str, otp_type: str, expires_minutes: int) -> tuple[str, str]:
    """Returns (subject, html)"""
    title, intro = OTP_PURPOSES.get(otp_type, OTP_PURPOSES["email_verification"])
    content = f"""
        <p>Hi {name or "there"},</p>
        <p>{intro}</p>
        <p style="font-size: 32px; font-weight: 700; letter-spacing: 8px; text-align: center;">{code}</p>
        <p>The code expires in {expires_minutes} minutes. If you did not request it you can ignore this email.</p>
    """
    return f"{settings.APP_NAME}: {title}", render_base_template(title, content)


def render_password_reset_email(name: str, reset_url: str, expires_minutes: int) -> str:
    content = f"""
        <p>Hi {name},</p>
        <p>We received a request to reset your password.</p>
        <p style="text-align: center; margin: 24px 0;">
            <a href="{reset_url}" style="background-color: #2196F3; color: #ffffff; padding: 12px 24px; border-radius: 6px; text-decoration: none;">Reset password</a>
        </p>
        <p>This link expires in {expires_minutes} minutes.</p>
    """
    return render_base_template("Password Reset", content, tone="warning")


def render_welcome_email(name: str, email: str, temp_password: Optional[str], business_name: Optional[str]) -> str:
    """Account created on someone's behalf (staff or client)"""
    credentials = ""
    if temp_password:
        credentials = _rows([("Email", email), ("Temporary password", temp_password)])
        credentials += "<p>Please change your password after your first login.</p>"
    content = f"""
        <p>Hi {name},</p>
        <p>An account has been created for you{f" at {business_name}" if business_name else ""}.</p>
        {credentials}
        <p><a href="{settings.FRONTEND_URL}/login">Sign in</a></p>
    """
    return render_base_template(f"Welcome to {settings.APP_NAME}", content, tone="success")


def render_appointment_email(
    kind: str,
    client_name: str,
    pet_name: str,
    service_name: str,
    date: str,
    time: str,
    business_name: str,
    reason: Optional[str] = None,
    fee: Optional[float] = None
) -> tuple[str, str]:
    """
    Appointment notifications

    kind is one of confirmation, reminder, cancellation.
    Returns (subject, html).
    """
    details = _rows([
        ("Pet", pet_name),
        ("Service", service_name),
        ("Date", date),
        ("Time", time),
        ("Provider", business_name),
        ("Reason", reason),
        ("Cancellation fee", f"${fee:.2f}" if fee else None),
    ])

    if kind == "reminder":
        title, tone = "Appointment Reminder", "info"
        subject = f"Reminder: {pet_name}'s {service_name} on {date}"
        intro = "This is a friendly reminder about your upcoming appointment:"
    elif kind == "cancellation":
        title, tone = "Appointment Cancelled", "danger"
        subject = f"Cancelled: {pet_name}'s {service_name} on {date}"
        intro = "The following appointment has been cancelled:"
    else:
        title, tone = "Appointment Booked", "success"
        subject = f"Booked: {pet_name}'s {service_name} on {date} at {time}"
        intro = "Your appointment has been booked:"

    content = f"""
        <p>Hi {client_name},</p>
        <p>{intro}</p>
        {details}
        <p>Best regards,<br>{business_name}</p>
    """
    return subject, render_base_template(title, content, tone=tone)


def render_invoice_email(
    client_name: str,
    invoice_number: str,
    total: float,
    balance_due: float,
    due_date: Optional[str],
    business_name: str,
    currency: str = "USD"
) -> str:
    content = f"""
        <p>Hi {client_name},</p>
        <p>Please find your invoice from {business_name} below.</p>
        {_rows([
            ("Invoice", invoice_number),
            ("Total", f"{total:.2f} {currency}"),
            ("Balance due", f"{balance_due:.2f} {currency}"),
            ("Due date", due_date),
        ])}
        <p>Thank you for your business!</p>
    """
    return render_base_template(f"Invoice {invoice_number}", content)


def render_inquiry_email(
    business_name: str,
    customer_name: str,
    customer_phone: str,
    customer_email: Optional[str],
    service_interest: str,
    message: str
) -> str:
    content = f"""
        <p>{business_name} received a new inquiry from its public listing.</p>
        {_rows([
            ("Name", customer_name),
            ("Phone", customer_phone),
            ("Email", customer_email),
            ("Interested in", service_interest),
        ])}
        <p style="white-space: pre-line;">{message}</p>
    """
    return render_base_template("New inquiry", content)
