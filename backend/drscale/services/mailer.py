import asyncio
import logging
import resend
from drscale.core.config import RESEND_API_KEY, RESEND_FROM, INVITE_EXPIRY_DAYS

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def mail_enabled() -> bool:
    return bool(RESEND_API_KEY)


def _invite_html(team_name: str, link: str) -> str:
    return f"""
    <div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 480px; margin: 0 auto; padding: 32px 24px;">
      <h2 style="color: #0f172a; font-size: 22px;">You were invited to {team_name}</h2>
      <p style="color: #334155; font-size: 15px; line-height: 1.6;">Click the button below to join your team on Dr. Scale AI.</p>
      <div style="text-align: center; margin: 28px 0;">
        <a href="{link}" style="display: inline-block; background-color: #0f172a; color: #ffffff; text-decoration: none; padding: 12px 32px; border-radius: 24px; font-size: 14px; font-weight: 600;">
          Join team
        </a>
      </div>
      <p style="color: #94a3b8; font-size: 13px;">This link expires in {INVITE_EXPIRY_DAYS} days.</p>
    </div>
    """


async def send_invite_email(email: str, team_name: str, link: str) -> str:
    """Send the invitation email. Returns the provider message id."""
    if not mail_enabled():
        raise RuntimeError("RESEND_API_KEY is not configured")
    params = {
        "from": RESEND_FROM,
        "to": [email],
        "subject": f"Invitation to {team_name} on Dr. Scale AI",
        "html": _invite_html(team_name, link),
    }
    sent = await asyncio.to_thread(resend.Emails.send, params)
    logger.info(f"Invite email sent to {email}")
    return sent.get("id") if isinstance(sent, dict) else getattr(sent, "id", None)
