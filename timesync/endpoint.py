from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlsplit

from timesync.errors import ConfigurationError

DEFAULT_SCHEME = 'ntp'
DEFAULT_PORT = 123


@dataclass(frozen=True)
class Endpoint:
    scheme: str
    host: str
    port: int = DEFAULT_PORT
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def parse(cls, uri: str) -> 'Endpoint':
        """
        Parse ``[scheme://][user[:pass]@]host[:port]``.
        The scheme is not checked here, see ServerRegistry.register.

        :raise ConfigurationError
        """
        if not isinstance(uri, str) or not uri.strip():
            raise ConfigurationError(f'Empty endpoint: {uri!r}')
        uri = uri.strip()
        if '://' not in uri:
            uri = f'{DEFAULT_SCHEME}://{uri}'
        parts = urlsplit(uri)
        try:
            port = parts.port
        except ValueError as e:
            raise ConfigurationError(f'Invalid port in {uri!r}') from e
        if not parts.hostname:
            raise ConfigurationError(f'Missing host in {uri!r}')
        return cls(scheme=parts.scheme.lower() or DEFAULT_SCHEME,
                   host=parts.hostname,
                   port=port if port is not None else DEFAULT_PORT,
                   username=_unquote(parts.username),
                   password=_unquote(parts.password))

    @property
    def address(self) -> tuple[str, int]:
        return self.host, self.port

    def __str__(self):
        host = f'[{self.host}]' if ':' in self.host else self.host
        return f'{self.scheme}://{host}:{self.port}'


def _unquote(value: Optional[str]) -> Optional[str]:
    return unquote(value) if value is not None else None
