"""Google/Slack connection stubs for the popup consent flow.

These routes only hand out provider authorization URLs and render a static
confirmation page. No authorization code is ever exchanged for tokens.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from smartdesk.auth import get_current_user, get_settings
from smartdesk.config import Settings
from smartdesk.db import User

router = APIRouter()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
SLACK_AUTH_URL = "https://slack.com/oauth/v2/authorize"
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/calendar.readonly",
]

CALLBACK_PAGE = """<html>
  <body style="font-family: sans-serif; display: flex; align-items: center; justify-content: center; height: 100vh; background: #f8fafc;">
    <div style="text-align: center; background: white; padding: 2rem; border-radius: 1rem;">
      <h2 style="color: #4f46e5;">{title} Connected!</h2>
      <p style="color: #64748b;">You can close this window now.</p>
      <script>
        if (window.opener) {{
          window.opener.postMessage({{ type: 'OAUTH_SUCCESS', provider: '{provider}' }}, '*');
        }}
        setTimeout(() => window.close(), 2000);
      </script>
    </div>
  </body>
</html>"""


def google_auth_url(settings: Settings) -> str:
    params = {
        "redirect_uri": f"{settings.app_url.rstrip('/')}/api/auth/google/callback",
        "client_id": settings.google_client_id or "MOCK_CLIENT_ID",
        "access_type": "offline",
        "response_type": "code",
        "prompt": "consent",
        "scope": " ".join(GOOGLE_SCOPES),
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def slack_auth_url(settings: Settings) -> str:
    params = {
        "client_id": settings.slack_client_id or "MOCK_CLIENT_ID",
        "scope": "commands,chat:write",
        "redirect_uri": f"{settings.app_url.rstrip('/')}/api/integrations/slack/callback",
    }
    return f"{SLACK_AUTH_URL}?{urlencode(params)}"


@router.get("/api/auth/google/url")
async def get_google_url(user: User = Depends(get_current_user), settings: Settings = Depends(get_settings)):
    return {"url": google_auth_url(settings)}


@router.get("/api/integrations/google/auth")
async def get_google_integration(user: User = Depends(get_current_user), settings: Settings = Depends(get_settings)):
    return {"url": google_auth_url(settings)}


@router.get("/api/integrations/slack/auth")
async def get_slack_integration(user: User = Depends(get_current_user), settings: Settings = Depends(get_settings)):
    return {"url": slack_auth_url(settings)}


@router.get("/api/auth/google/callback", response_class=HTMLResponse)
async def google_callback():
    return CALLBACK_PAGE.format(title="Google", provider="google")


@router.get("/api/integrations/slack/callback", response_class=HTMLResponse)
async def slack_callback():
    return CALLBACK_PAGE.format(title="Slack", provider="slack")
