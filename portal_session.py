import httpx
import structlog
from typing import Optional

from config import settings, __version__
from errors import AuthenticationError
from models import Credentials

logger = structlog.get_logger()


def build_base_url(host: str) -> str:
    """
    Expand a bare hostname (optionally with a port) into the portal API root.

    Full URLs are used as given.
    """
    host = host.strip()
    if "://" in host:
        return host.rstrip("/")
    return f"https://{host.rstrip('/')}{settings.PORTAL_API_PATH}"


class PortalSession:
    """
    Connection context bound to one host and one credential set.

    The session starts unauthenticated; only validate() flips the flag.
    Not safe for concurrent use.
    """

    def __init__(
        self,
        host: str,
        credentials: Credentials,
        insecure: bool = False,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.host = host
        self.credentials = credentials
        self.insecure = insecure
        self.authenticated = False
        self.base_url = build_base_url(host)
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                auth=(self.credentials.username, self.credentials.password),
                verify=not self.insecure,
                timeout=settings.PORTAL_API_TIMEOUT,
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"portal-client/{__version__}"
                },
                transport=self._transport
            )
        return self._client

    def validate(self) -> bool:
        """
        Check the credentials against the portal.

        Returns True and marks the session authenticated on success. Bad
        credentials, TLS and network failures return False and leave the
        session unauthenticated.
        """
        self.authenticated = False
        try:
            response = self.client.post("/auth/login")
            if response.status_code in (401, 403):
                logger.warning(
                    "Portal rejected credentials",
                    host=self.host,
                    username=self.credentials.username,
                    status_code=response.status_code
                )
                return False

            response.raise_for_status()
            data = response.json()

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Portal login failed", host=self.host, error=str(e))
            return False
        except ValueError as e:
            logger.warning("Portal login returned malformed response", host=self.host, error=str(e))
            return False

        self.authenticated = isinstance(data, dict) and bool(data.get("success"))
        if self.authenticated:
            logger.info("Authenticated to portal", host=self.host, username=self.credentials.username)
        else:
            logger.warning("Portal refused login", host=self.host, username=self.credentials.username)
        return self.authenticated

    def require_authenticated(self):
        if not self.authenticated:
            raise AuthenticationError(f"Session for {self.host} is not authenticated")

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "PortalSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def open_session(
    host: str,
    credentials: Credentials,
    insecure: bool = False,
    transport: Optional[httpx.BaseTransport] = None
) -> PortalSession:
    """Create an unauthenticated session. Never touches the network."""
    return PortalSession(host, credentials, insecure=insecure, transport=transport)


def validate(session: PortalSession) -> bool:
    return session.validate()
