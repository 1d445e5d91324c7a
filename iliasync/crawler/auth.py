"""
Shibboleth login for ILIAS.
"""

import asyncio
import logging

from aiohttp import ClientError

from .errors import LoginError
from .fetcher import IliasFetcher, soupify


class ShibbolethLogin:
    """Logs the fetcher session into ILIAS through the university IdP."""

    def __init__(self, fetcher: IliasFetcher, idp_url: str):
        self.fetcher = fetcher
        self.idp_url = idp_url
        self.logger = logging.getLogger(__name__)

    async def login(self, username: str, password: str):
        """
        Perform the three-step Shibboleth handshake.

        Raises:
            LoginError: if any step fails; the session is unusable then
        """
        base_url = self.fetcher.base_url
        session = self.fetcher.session
        try:
            self.logger.info("Logging into ILIAS using KIT account..")
            async with session.post(f"{base_url}Shibboleth.sso/Login", data={
                "sendLogin": "1",
                "idp_selection": self.idp_url,
                "target": f"{base_url}shib_login.php?target=",
                "home_organization_selection": "Mit KIT-Account anmelden",
            }) as response:
                idp_login_url = str(response.url)

            self.logger.info("Logging into Shibboleth..")
            async with session.post(idp_login_url, data={
                "j_username": username,
                "j_password": password,
                "_eventId_proceed": "",
            }) as response:
                login_page = await response.text()

            soup = soupify(login_page)
            saml = soup.select_one('input[name="SAMLResponse"]')
            if saml is None:
                raise LoginError("no SAML response, incorrect password?")
            relay_state = soup.select_one('input[name="RelayState"]')
            if relay_state is None:
                raise LoginError("no relay state")

            self.logger.info("Logging into ILIAS..")
            async with session.post(f"{base_url}Shibboleth.sso/SAML2/POST", data={
                "SAMLResponse": saml.get('value', ''),
                "RelayState": relay_state.get('value', ''),
            }):
                pass
        except (ClientError, asyncio.TimeoutError) as e:
            raise LoginError("Login request failed") from e

        self.logger.info("Logged in!")
