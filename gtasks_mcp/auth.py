import logging
import os

# Allow Google to return broader scopes than requested (e.g. from prior grants)
os.environ["OAUTHLIB_RELAX_TOKEN_SCOPE"] = "1"

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from gtasks_mcp.config import Settings
from gtasks_mcp.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/tasks"]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class CredentialStore:
    """Holds at most one credential set, in memory only.

    There is no local expiry check: once a credential has been stored the
    store reports authenticated until the process exits, and an expired token
    shows up as a failing upstream call instead.
    """

    def __init__(self):
        self._credentials: Credentials | None = None

    def is_authenticated(self) -> bool:
        return self._credentials is not None

    def set_credentials(self, credentials: Credentials) -> None:
        self._credentials = credentials

    @property
    def credentials(self) -> Credentials:
        if self._credentials is None:
            raise AuthenticationError("Not authenticated. Please use the 'authenticate' tool first.")
        return self._credentials


class GoogleOAuth:
    """Builds the consent URL and exchanges authorization codes for tokens."""

    def __init__(self, settings: Settings):
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.redirect_uri = settings.redirect_uri

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _create_flow(self) -> Flow:
        if not self.is_configured:
            raise AuthenticationError(
                "Google OAuth client not configured. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET in .env"
            )
        client_config = {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }
        # No PKCE: the code is pasted back by hand and may be exchanged by a
        # different Flow instance than the one that built the URL.
        return Flow.from_client_config(
            client_config,
            scopes=SCOPES,
            redirect_uri=self.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self) -> str:
        flow = self._create_flow()
        # Force the consent screen so every run is issued a refresh token
        auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")
        return auth_url

    def exchange_code(self, code: str) -> Credentials:
        flow = self._create_flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error("Error retrieving access token: %s", e)
            raise AuthenticationError(f"Authentication failed: {e}") from e
        logger.info("Authorization code exchanged for tokens")
        return flow.credentials
