import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

from timesync.endpoint import Endpoint
from timesync.errors import ConfigurationError
from timesync.protocol import AbstractProtocol, NtpClient, SNtpClient

PROTOCOLS: dict[str, type[AbstractProtocol]] = {
    'ntp': NtpClient,
    'sntp': SNtpClient,
}


@dataclass(frozen=True)
class ServerEntry:
    alias: str
    endpoint: Endpoint
    client: AbstractProtocol


class ServerRegistry:
    _logger = logging.getLogger('serverRegistry')

    def __init__(self):
        self._entries: dict[str, ServerEntry] = dict()
        self._current: Optional[str] = None

    def register(self, alias: str,
                 endpoint: Union[str, Endpoint]) -> ServerEntry:
        """
        Add a server or replace the one registered under the same alias.

        :raise ConfigurationError: malformed endpoint or unsupported scheme
        """
        if not isinstance(endpoint, Endpoint):
            endpoint = Endpoint.parse(endpoint)
        protocol = PROTOCOLS.get(endpoint.scheme)
        if protocol is None:
            raise ConfigurationError(
                f'Unsupported scheme {endpoint.scheme!r} for server '
                f'{alias!r}, expected one of: {", ".join(PROTOCOLS)}')
        entry = ServerEntry(alias=alias,
                            endpoint=endpoint,
                            client=protocol(alias=alias))
        if alias in self._entries:
            self._logger.info(f'Server {alias!r} replaced with {endpoint}.')
        else:
            self._logger.info(f'Server {alias!r} added: {endpoint}.')
        self._entries[alias] = entry
        return entry

    def next_alias(self) -> str:
        index = 0
        while str(index) in self._entries:
            index += 1
        return str(index)

    @property
    def current(self) -> Optional[str]:
        return self._current

    def set_current(self, alias: str) -> None:
        """
        :raise ConfigurationError
        """
        if alias not in self._entries:
            raise ConfigurationError(f'Unknown server alias {alias!r}')
        self._current = alias

    def get(self, alias: Optional[str] = None) -> ServerEntry:
        """
        :param alias: server alias, None for the current server
        :raise ConfigurationError
        """
        if alias is None:
            if self._current is None:
                raise ConfigurationError('No current server is set')
            alias = self._current
        if alias not in self._entries:
            raise ConfigurationError(f'Unknown server alias {alias!r}')
        return self._entries[alias]

    def entries(self, aliases: Optional[Iterable[str]] = None) \
            -> Iterator[ServerEntry]:
        """
        Entries in registration order, optionally only the given aliases.

        :raise ConfigurationError: unknown alias in aliases
        """
        if aliases is None:
            return iter(list(self._entries.values()))
        wanted = set(aliases)
        unknown = wanted.difference(self._entries)
        if unknown:
            raise ConfigurationError(
                f'Unknown server alias(es): {", ".join(sorted(unknown))}')
        return iter([entry for alias, entry in self._entries.items()
                     if alias in wanted])

    @property
    def aliases(self) -> list[str]:
        return list(self._entries)

    def __iter__(self) -> Iterator[AbstractProtocol]:
        for entry in list(self._entries.values()):
            yield entry.client

    def __len__(self):
        return len(self._entries)

    def __contains__(self, alias):
        return alias in self._entries
