import logging
from datetime import datetime
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from timesync.endpoint import Endpoint
from timesync.errors import AggregateSyncError, ConfigurationError, \
    ProtocolError
from timesync.options import Options
from timesync.protocol import DEFAULT_TIMEOUT, AbstractProtocol, TimeResult
from timesync.registry import ServerRegistry


class TimeSync:
    """
    Query time servers in registration order and return the date of the
    first one that answers correctly.

    TimeSync()
    TimeSync({'alias': 'ntp://host', ...})
    TimeSync('sntp://host', 'alias')
    """
    _logger = logging.getLogger('timeSync')

    def __init__(self,
                 servers: Union[None, str, Mapping[str, str]] = None,
                 alias: Optional[str] = None,
                 options: Optional[Mapping[str, Any]] = None):
        self._registry = ServerRegistry()
        self._options = Options({'timeout': DEFAULT_TIMEOUT})
        self._last_result: Optional[TimeResult] = None
        if options:
            self.set_options(options)
        if isinstance(servers, str):
            self.add_server(alias, servers)
        elif servers is not None:
            for server_alias, endpoint in servers.items():
                self.add_server(server_alias, endpoint)

    def add_server(self, alias: Optional[str],
                   endpoint: Union[str, Endpoint]) -> None:
        """
        :param alias: None picks the first free numeric alias
        :raise ConfigurationError
        """
        if alias is None:
            alias = self._registry.next_alias()
        self._registry.register(alias, endpoint)

    def set_server(self, alias: str) -> None:
        """
        :raise ConfigurationError
        """
        self._registry.set_current(alias)

    def get_server(self, alias: Optional[str] = None) -> AbstractProtocol:
        """
        :raise ConfigurationError
        """
        return self._registry.get(alias).client

    def set_options(self, options: Mapping[str, Any]) -> None:
        self._options.set(options)

    def get_options(self, key: Optional[str] = None):
        """
        :raise OptionError
        """
        return self._options.get(key)

    @property
    def registry(self) -> ServerRegistry:
        return self._registry

    @property
    def last_result(self) -> Optional[TimeResult]:
        return self._last_result

    def get_date(self, aliases: Optional[Iterable[str]] = None) -> datetime:
        """
        One attempt per server, the first success wins.

        :param aliases: restrict the attempt to these servers
        :raise AggregateSyncError: every attempted server failed
        :raise ConfigurationError
        :return: UTC date reported by the first responding server
        """
        entries = list(self._registry.entries(aliases))
        if not entries:
            raise ConfigurationError('No time server is registered')
        errors: list[ProtocolError] = []
        for entry in entries:
            try:
                result = entry.client.query(entry.endpoint, self._options)
            except ProtocolError as e:
                errors.append(e)
                continue
            self._last_result = result
            self._logger.info(f'Date received from {entry.alias!r} '
                              f'after {len(errors)} failed server(s).')
            return result.date
        self._logger.warning(f'All {len(errors)} server(s) failed.')
        raise AggregateSyncError(errors)

    def get_info(self) -> dict:
        """
        :raise ConfigurationError
        """
        if self._last_result is None:
            raise ConfigurationError('No successful get_date() call yet')
        return dict(self._last_result.info)

    def __iter__(self) -> Iterator[AbstractProtocol]:
        return iter(self._registry)

    def __len__(self):
        return len(self._registry)
