"""HTML email bodies. Each builder returns the kwargs for send_email."""

from html import escape

from app.core.config import settings

BASE_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: linear-gradient(135deg, #6366f1 0%, #8b5cf6 100%); color: white; padding: 30px; border-radius: 10px 10px 0 0; text-align: center; }
    .content { background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }
    .button { display: inline-block; background: #6366f1; color: white; padding: 12px 24px; border-radius: 6px; text-decoration: none; }
    .footer { text-align: center; margin-top: 30px; color: #6b7280; font-size: 12px; }
"""


def _layout(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <style>{BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{title}</h1></div>
            <div class="content">{body}</div>
            <div class="footer">Taskly</div>
        </div>
    </body>
    </html>
    """


def welcome_email(user_name: str, user_email: str) -> dict:
    body = f"""
        <p>Hi {escape(user_name)},</p>
        <p>Your Taskly account is ready. Start by creating your first task.</p>
        <p><a class="button" href="{settings.CLIENT_URL}/dashboard">Open Taskly</a></p>
    """
    return {
        "to": user_email,
        "subject": "Welcome to Taskly! 🎉",
        "html": _layout("Welcome to Taskly", body),
    }


def team_invite_email(inviter_name: str, team_name: str, recipient_email: str) -> dict:
    body = f"""
        <p><strong>{escape(inviter_name)}</strong> invited you to join <strong>{escape(team_name)}</strong>.</p>
        <p><a class="button" href="{settings.CLIENT_URL}/invitations">View invitation</a></p>
        <p>This invitation expires in {settings.INVITATION_EXPIRY_DAYS} days.</p>
    """
    return {
        "to": recipient_email,
        "subject": f"{inviter_name} invited you to join {team_name} on Taskly",
        "html": _layout("You're invited", body),
    }


def invitation_accepted_email(owner_name: str, member_name: str, team_name: str, owner_email: str) -> dict:
    body = f"""
        <p>Hi {escape(owner_name)},</p>
        <p>{escape(member_name)} accepted your invitation and joined <strong>{escape(team_name)}</strong>.</p>
    """
    return {
        "to": owner_email,
        "subject": f"{member_name} joined {team_name}",
        "html": _layout("Invitation accepted", body),
    }
