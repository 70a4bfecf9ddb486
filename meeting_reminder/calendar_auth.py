"""
Google Calendar Authentication

Loads OAuth credentials for the read-only calendar scope: reuses the
stored token, refreshes it when expired, and otherwise runs the
installed-app flow once and saves the result.
"""

import os

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from meeting_reminder.errors import ConfigInvalid
from meeting_reminder.logger import get_logger

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]


def load_credentials(credentials_file: str, token_file: str = "token.json",
                     scopes=None, port: int = 0, config=None) -> Credentials:
    """Return valid credentials, prompting through the browser flow if needed."""
    logger = get_logger(__name__, config)
    scopes = scopes or SCOPES
    creds = None

    # If modifying the scopes, delete the previously saved token file.
    if os.path.exists(token_file):
        creds = Credentials.from_authorized_user_file(token_file, scopes)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        logger.info("Refreshing calendar token")
        creds.refresh(Request())
    else:
        if not os.path.exists(credentials_file):
            raise ConfigInvalid(f"Calendar credentials file not found: {credentials_file}")
        flow = InstalledAppFlow.from_client_secrets_file(credentials_file, scopes)
        creds = flow.run_local_server(port=port, open_browser=False)

    logger.info(f"Saving credential file to: {token_file}")
    with open(token_file, "w") as token:
        token.write(creds.to_json())
    return creds
