"""Email templates for subscription lifecycle notifications.

Every template has a subject, an HTML body and a plain text body, rendered
with ``str.format``. CSS braces in the HTML are doubled for that reason.
"""

from datetime import datetime
from typing import Any

_BASE_STYLE = """
        <style>
            body {{ font-family: 'Segoe UI', sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: {header_background}; color: white; padding: 30px;
                       text-align: center; border-radius: 10px 10px 0 0; }}
            .content {{ background: #f8f9fa; padding: 30px; border-radius: 0 0 10px 10px; }}
            .box {{ background: white; padding: 20px; border-radius: 10px; margin: 20px 0;
                    border-left: 4px solid {accent}; }}
            .button {{ display: inline-block; background: {accent}; color: white;
                       padding: 12px 30px; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
            .footer {{ text-align: center; margin-top: 20px; color: #666; font-size: 12px; }}
        </style>
"""

EMAIL_TEMPLATES = {
    "payment_success": {
        "subject": "Your {package_name} subscription is active!",
        "header_background": "linear-gradient(135deg, #11998e 0%, #38ef7d 100%)",
        "accent": "#11998e",
        "html": """
            <div class="container">
                <div class="header"><h1>Your subscription is active!</h1></div>
                <div class="content">
                    <p>Hello {user_name},</p>
                    <p>Your payment through iyzico was received successfully.</p>
                    <div class="box">
                        <h3>{package_name}</h3>
                        <p><strong>Valid until:</strong> {end_date}</p>
                    </div>
                    <p>Enjoy all of the premium features.</p>
                </div>
                <div class="footer"><p>&copy; {year} {sender_name}</p></div>
            </div>
        """,
        "text": "Hello {user_name}, your {package_name} subscription is active. Valid until: {end_date}",
    },
    "subscription_ended": {
        "subject": "Your {package_name} subscription has ended",
        "header_background": "linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
        "accent": "#667eea",
        "html": """
            <div class="container">
                <div class="header"><h1>Your subscription has ended</h1></div>
                <div class="content">
                    <p>Hello {user_name},</p>
                    <p>Your <strong>{package_name}</strong> subscription has ended and your
                       account has moved to the <strong>Free</strong> plan.</p>
                    <div class="box">
                        <h3>Still available to you</h3>
                        <ul>
                            <li>3 content generations per day</li>
                            <li>Core AI features</li>
                        </ul>
                    </div>
                    <a href="{profile_url}" class="button">Choose a plan</a>
                </div>
                <div class="footer"><p>&copy; {year} {sender_name}</p></div>
            </div>
        """,
        "text": (
            "Hello {user_name}, your {package_name} subscription has ended and your account "
            "moved to the Free plan. To upgrade again: {profile_url}"
        ),
    },
    "welcome": {
        "subject": "Welcome to {sender_name}!",
        "header_background": "linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
        "accent": "#667eea",
        "html": """
            <div class="container">
                <div class="header"><h1>Welcome to {sender_name}!</h1></div>
                <div class="content">
                    <p>Hello {user_name},</p>
                    <p>Thanks for joining us!</p>
                    <div class="box">
                        <h3>Your Free plan is active</h3>
                        <p>You can generate <strong>3 pieces of content</strong> every day.</p>
                    </div>
                    <a href="{site_url}" class="button">Get started</a>
                </div>
            </div>
        """,
        "text": "Hello {user_name}, welcome to {sender_name}! Your Free plan is active: {site_url}",
    },
}


def format_date(value: Any) -> str:
    """Human-readable date for email bodies (``18 November 2026``)."""
    if isinstance(value, datetime):
        return value.strftime("%d %B %Y").lstrip("0")
    return str(value)


def render_template(template_name: str, **context: Any) -> tuple[str, str, str]:
    """Render a template.

    Args:
        template_name: Key in EMAIL_TEMPLATES
        **context: Template variables

    Returns:
        Tuple of (subject, html, text)

    Raises:
        KeyError: If the template or one of its variables is missing
    """
    template = EMAIL_TEMPLATES[template_name]
    values = dict(context)
    values.setdefault("year", datetime.now().year)
    if "end_date" in values:
        values["end_date"] = format_date(values["end_date"])

    style = _BASE_STYLE.format(
        header_background=template["header_background"],
        accent=template["accent"],
    )
    body = template["html"].format(**values)
    html = f"<!DOCTYPE html>\n<html>\n<head>{style}</head>\n<body>{body}</body>\n</html>"

    return (
        template["subject"].format(**values),
        html,
        template["text"].format(**values),
    )
