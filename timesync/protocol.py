import logging
import socket
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from numbers import Real

from timesync.endpoint import Endpoint
from timesync.errors import ConfigurationError, ErrorKind, PacketError, \
    ProtocolError
from timesync.packet import LEAP_TEXT, MODE_CLIENT, MODE_SERVER, MODE_TEXT, \
    NTP_v3, NTP_v4, PACKET_SIZE, NTPPacket, stratum_text, to_ntp_time

# Waiting time for recv (seconds)
DEFAULT_TIMEOUT = 5

MAX_STRATUM = 15
LEAP_ALARM = 3


def local_time() -> float:
    return time.time()


def compute_offset(t1: float, t2: float, t3: float, t4: float) -> float:
    """
    Clock offset of the server relative to the local clock.

    t1 - request sent (local clock), t2 - request received (server clock),
    t3 - response sent (server clock), t4 - response received (local clock)
    """
    return ((t2 - t1) + (t3 - t4)) / 2


def compute_delay(t1: float, t2: float, t3: float, t4: float) -> float:
    """
    Round-trip delay: network time of the exchange without the server
    processing time, halved the way the diagnostics report it.
    """
    return ((t4 - t1) - (t3 - t2)) / 2


@dataclass
class TimeResult:
    timestamp: float
    offset: float
    delay: float
    info: dict = field(default_factory=dict)

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


class AbstractProtocol(ABC):
    VERSION = NTP_v3
    _logger = logging.getLogger('protocol')

    def __init__(self, alias=None):
        self.alias = alias
        self._info = None

    def query(self, endpoint: Endpoint, options=None) -> TimeResult:
        """
        One request/response exchange with the server.

        :param endpoint: server address
        :param options: Options store or plain mapping, 'timeout' is used
        :raise ProtocolError
        :raise ConfigurationError
        :return: TimeResult
        """
        timeout = _get_timeout(options)
        self._logger.info(f'({self.alias}) Query {endpoint} '
                          f'(timeout={timeout}).')
        try:
            with socket.socket(_get_family(endpoint.host),
                               socket.SOCK_DGRAM) as s:
                s.settimeout(timeout)
                s.connect(endpoint.address)
                send_time = local_time()
                request = self._build_request(send_time)
                s.send(request.pack())
                data = s.recv(PACKET_SIZE)
                receive_time = local_time()
        except socket.timeout as e:
            raise self._error(ErrorKind.TIMEOUT, e) from e
        except OSError as e:
            raise self._error(ErrorKind.CONNECTION_REFUSED, e) from e

        try:
            response = NTPPacket.unpack(data)
        except PacketError as e:
            raise self._error(ErrorKind.INVALID_RESPONSE, e) from e
        self._validate(request, response)

        result = self._extract(response, send_time, receive_time)
        self._info = result.info
        self._logger.info(f'({self.alias}) Answer from {endpoint}: '
                          f'offset={result.offset:.6f}s, '
                          f'delay={result.delay:.6f}s.')
        return result

    def get_info(self) -> dict:
        """
        :raise ConfigurationError
        """
        if self._info is None:
            raise ConfigurationError(
                f'No successful query on server {self.alias!r} yet.')
        return dict(self._info)

    def _build_request(self, send_time: float) -> NTPPacket:
        timestamp = to_ntp_time(send_time)
        return NTPPacket(version=self.VERSION,
                         mode=MODE_CLIENT,
                         originate=timestamp,
                         transmit=timestamp)

    def _validate(self, request: NTPPacket, response: NTPPacket):
        if response.mode != MODE_SERVER:
            raise self._error(ErrorKind.INVALID_RESPONSE,
                              f'unexpected mode {response.mode}')
        self._check_response(request, response)
        if response.transmit == 0:
            raise self._error(ErrorKind.INVALID_RESPONSE,
                              'transmit timestamp is not set')

    @abstractmethod
    def _check_response(self, request: NTPPacket, response: NTPPacket):
        pass

    def _extract(self, response: NTPPacket,
                 send_time: float, receive_time: float) -> TimeResult:
        t2, t3 = response.receive_time, response.transmit_time
        offset = compute_offset(send_time, t2, t3, receive_time)
        delay = compute_delay(send_time, t2, t3, receive_time)
        info = {
            'leap': response.leap_indicator,
            'leap_text': LEAP_TEXT[response.leap_indicator],
            'version': response.version,
            'mode': response.mode,
            'mode_text': MODE_TEXT[response.mode],
            'stratum': response.stratum,
            'stratum_text': stratum_text(response.stratum),
            'poll': response.poll,
            'precision': response.precision,
            'root_delay': response.root_delay_seconds,
            'root_dispersion': response.root_dispersion_seconds,
            'reference_id': response.ref_id_text,
            'reference_time': response.reference_time,
            'offset': offset,
            'delay': delay,
        }
        return TimeResult(timestamp=receive_time + offset,
                          offset=offset,
                          delay=delay,
                          info=info)

    def _error(self, kind: ErrorKind, cause=None) -> ProtocolError:
        error = ProtocolError(self.alias, kind, cause)
        self._logger.warning(f'({self.alias}) {error.message}')
        return error

    def __repr__(self):
        return f'{type(self).__name__}(alias={self.alias!r})'


class NtpClient(AbstractProtocol):
    VERSION = NTP_v3
    _logger = logging.getLogger('ntpClient')

    def _check_response(self, request: NTPPacket, response: NTPPacket):
        if response.stratum == 0:
            raise self._error(ErrorKind.KISS_OF_DEATH, response.ref_id_text)
        if response.version != request.version:
            raise self._error(ErrorKind.INVALID_RESPONSE,
                              f'version {response.version} does not match '
                              f'request version {request.version}')
        if response.stratum > MAX_STRATUM:
            raise self._error(ErrorKind.INVALID_RESPONSE,
                              f'server is unsynchronized '
                              f'(stratum {response.stratum})')
        if response.leap_indicator == LEAP_ALARM:
            raise self._error(ErrorKind.INVALID_RESPONSE,
                              'server clock is not synchronized')
        if response.originate != request.transmit:
            raise self._error(ErrorKind.INVALID_RESPONSE,
                              'originate timestamp does not match request')


class SNtpClient(AbstractProtocol):
    VERSION = NTP_v4
    _logger = logging.getLogger('sntpClient')

    def _check_response(self, request: NTPPacket, response: NTPPacket):
        if response.stratum == 0:
            self._logger.warning(
                f'({self.alias}) Stratum 0 response '
                f'(kiss code {response.ref_id_text!r}), using it anyway.')


def _get_family(host: str):
    return socket.AF_INET6 if ':' in host else socket.AF_INET


def _get_timeout(options) -> float:
    """
    :raise ConfigurationError
    """
    if options is None or 'timeout' not in options:
        return DEFAULT_TIMEOUT
    timeout = options.get('timeout')
    if isinstance(timeout, bool) or not isinstance(timeout, Real) \
            or timeout <= 0:
        raise ConfigurationError(f'Invalid timeout: {timeout!r}')
    return timeout
