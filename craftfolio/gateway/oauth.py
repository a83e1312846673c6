import os
from typing import Dict, Optional
from urllib.parse import urlencode

import requests
from dotenv import load_dotenv

from craftfolio.gateway.errors import GatewayError, UNAUTHORIZED

load_dotenv()

OAUTH_REDIRECT_URL = os.getenv("OAUTH_REDIRECT_URL", "http://localhost:5173")

PROVIDERS = {
    "google": {
        "authorize_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "client_id_env": "GOOGLE_CLIENT_ID",
        "scope": "openid email profile",
    },
    "github": {
        "authorize_url": "https://github.com/login/oauth/authorize",
        "client_id_env": "GITHUB_CLIENT_ID",
        "scope": "read:user user:email",
    },
    "linkedin": {
        "authorize_url": "https://www.linkedin.com/oauth/v2/authorization",
        "client_id_env": "LINKEDIN_CLIENT_ID",
        "scope": "openid profile email",
    },
}


def _provider(provider: str) -> dict:
    config = PROVIDERS.get(provider)
    if config is None:
        raise GatewayError(f"Unsupported provider: {provider}", "400")
    return config


def authorize_url(provider: str, redirect_to: Optional[str] = None) -> str:
    """External URL the user is sent to for provider sign-in"""
    config = _provider(provider)
    params = {
        "client_id": os.getenv(config["client_id_env"], ""),
        "redirect_uri": redirect_to or OAUTH_REDIRECT_URL,
        "response_type": "code",
        "scope": config["scope"],
    }
    return f"{config['authorize_url']}?{urlencode(params)}"


def fetch_user_info(provider: str, access_token: str) -> Dict[str, Optional[str]]:
    """
    Resolve a provider access token to the account's identity.

    Returns email, provider_id, full_name and avatar_url; raises
    GatewayError when the provider rejects the token.
    """
    _provider(provider)
    headers = {"Authorization": f"Bearer {access_token}"}

    try:
        if provider == "google":
            response = requests.get("https://www.googleapis.com/oauth2/v3/userinfo", headers=headers)
            if response.status_code != 200:
                raise GatewayError("Invalid Google token", UNAUTHORIZED)
            info = response.json()
            return {
                "email": info.get("email"),
                "provider_id": info.get("sub"),
                "full_name": info.get("name"),
                "avatar_url": info.get("picture"),
            }

        if provider == "linkedin":
            response = requests.get("https://api.linkedin.com/v2/userinfo", headers=headers)
            if response.status_code != 200:
                raise GatewayError("Invalid LinkedIn token", UNAUTHORIZED)
            info = response.json()
            return {
                "email": info.get("email"),
                "provider_id": info.get("sub"),
                "full_name": info.get("name"),
                "avatar_url": info.get("picture"),
            }

        headers["Accept"] = "application/vnd.github+json"
        response = requests.get("https://api.github.com/user", headers=headers)
        if response.status_code != 200:
            raise GatewayError("Invalid GitHub token", UNAUTHORIZED)
        info = response.json()

        # Get primary email
        email = info.get("email")
        email_response = requests.get("https://api.github.com/user/emails", headers=headers)
        if email_response.status_code == 200:
            primary = next((e for e in email_response.json() if e.get("primary")), None)
            if primary:
                email = primary.get("email")

        return {
            "email": email,
            "provider_id": str(info.get("id")),
            "full_name": info.get("name") or info.get("login"),
            "avatar_url": info.get("avatar_url"),
        }

    except requests.exceptions.RequestException:
        raise GatewayError(f"Failed to verify {provider} token", UNAUTHORIZED)
