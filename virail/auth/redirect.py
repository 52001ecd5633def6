"""Navigation hooks for login redirects and OAuth hand-off."""

import webbrowser
from abc import ABC, abstractmethod
from urllib.parse import urljoin

from virail.core.logging import get_logger


logger = get_logger(__name__)


class Redirector(ABC):
    """Sends the user somewhere: a route of the web app or an absolute URL."""

    @abstractmethod
    def redirect(self, location: str) -> None:
        pass


class LoggingRedirector(Redirector):
    """Records redirects without navigating. Used by headless clients."""

    def __init__(self) -> None:
        self.locations: list[str] = []

    @property
    def last_location(self) -> str | None:
        return self.locations[-1] if self.locations else None

    def redirect(self, location: str) -> None:
        self.locations.append(location)
        logger.info("redirect_requested", location=location, category="auth")


class BrowserRedirector(Redirector):
    """Opens the location in the user's web browser."""

    def __init__(self, app_url: str) -> None:
        self.app_url = app_url.rstrip("/") + "/"

    def resolve(self, location: str) -> str:
        return urljoin(self.app_url, location)

    def redirect(self, location: str) -> None:
        url = self.resolve(location)
        logger.info("browser_redirect", url=url, category="auth")
        if not webbrowser.open(url):
            logger.warning("browser_unavailable", url=url, category="auth")
