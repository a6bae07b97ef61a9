"""
SharePoint Client Module

App-only access to a SharePoint site: one client-credentials token request
against the Azure ACS realm, then a REST download of a single file.

Example Usage:
    from salesync.common import HTTPClient, SharePointClient

    client = SharePointClient(
        http_client=HTTPClient(),
        client_id="11111111-2222-3333-4444-555555555555",
        client_secret="...",
        tenant_id="contoso.onmicrosoft.com",
        site="contoso.sharepoint.com",
    )
    token = client.get_access_token()
    xml_text = client.fetch_file("/Documents/Reports/export.xml", token)
"""

import logging
from urllib.parse import quote

import requests

from .errors import AuthenticationError, FileFetchError
from .http_client import HTTPClient


logger = logging.getLogger(__name__)

TOKEN_URL_TEMPLATE = "https://accounts.accesscontrol.windows.net/{realm}/tokens/OAuth/2"
# Well-known principal id of SharePoint Online
SHAREPOINT_PRINCIPAL = "00000003-0000-0ff1-ce00-000000000000"


class SharePointClient:
    """
    Minimal SharePoint REST client using app-only (ACS) authentication.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        client_id: str,
        client_secret: str,
        tenant_id: str,
        site: str
    ):
        """
        Args:
            http_client: Shared HTTP client
            client_id: App principal client id
            client_secret: App principal secret
            tenant_id: Tenant domain, also used as the realm
            site: SharePoint host, e.g. contoso.sharepoint.com
        """
        self.http_client = http_client
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id
        self.realm = tenant_id
        self.site = site

    @property
    def token_url(self) -> str:
        return TOKEN_URL_TEMPLATE.format(realm=self.realm)

    def get_access_token(self) -> str:
        """
        Exchange the client credentials for a bearer token.

        Returns:
            str: access token

        Raises:
            AuthenticationError: On a non-2xx response (carries the provider's
                raw body) or a response without access_token
        """
        form = {
            'grant_type': 'client_credentials',
            'client_id': f"{self.client_id}@{self.realm}",
            'client_secret': self.client_secret,
            'resource': f"{SHAREPOINT_PRINCIPAL}/{self.tenant_id}",
        }

        logger.info(f"Requesting SharePoint access token (realm={self.realm}, client_id={self.client_id})")

        try:
            response = self.http_client.post(
                self.token_url,
                data=form,
                headers={'Content-Type': 'application/x-www-form-urlencoded'},
            )
        except requests.exceptions.HTTPError as e:
            body = e.response.text if e.response is not None else ''
            status = e.response.status_code if e.response is not None else None
            logger.error(f"Token response error (status={status}): {body}")
            raise AuthenticationError(f"Failed to get access token: {body}", status_code=status, body=body) from e
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Failed to get access token: {e}") from e

        try:
            token = response.json().get('access_token')
        except ValueError as e:
            raise AuthenticationError("Failed to get access token: response is not JSON", body=response.text) from e
        if not token:
            raise AuthenticationError("Failed to get access token: no access_token in response", body=response.text)

        logger.info("Successfully obtained access token")
        return token

    def file_url(self, server_relative_path: str) -> str:
        """REST URL returning the raw content of a file."""
        encoded = quote(server_relative_path, safe="!()*")
        return f"https://{self.site}/_api/web/GetFileByServerRelativeUrl('{encoded}')/$value"

    def fetch_file(self, server_relative_path: str, access_token: str) -> str:
        """
        Download a file as text.

        Args:
            server_relative_path: e.g. /Documents/Reports/export.xml
            access_token: Bearer token from get_access_token()

        Returns:
            str: file content

        Raises:
            FileFetchError: On a non-2xx response or a transport failure
        """
        url = self.file_url(server_relative_path)
        logger.info(f"Fetching file from: {url}")

        try:
            response = self.http_client.get(
                url,
                headers={
                    'Authorization': f'Bearer {access_token}',
                    'Accept': 'application/xml',
                },
            )
        except requests.exceptions.HTTPError as e:
            body = e.response.text if e.response is not None else ''
            status = e.response.status_code if e.response is not None else None
            logger.error(f"File response error (status={status}): {body}")
            raise FileFetchError(f"Failed to fetch XML file: {body}", status_code=status, body=body) from e
        except requests.exceptions.RequestException as e:
            raise FileFetchError(f"Failed to fetch XML file: {e}") from e

        logger.info(f"Fetched {len(response.content)} bytes")
        return response.text
