from timesync.endpoint import Endpoint
from timesync.errors import AggregateSyncError, ConfigurationError, \
    ErrorKind, OptionError, PacketError, ProtocolError, TimeSyncError
from timesync.options import Options
from timesync.packet import NTPPacket, decode, encode, to_ntp_time, \
    to_unix_time
from timesync.protocol import AbstractProtocol, NtpClient, SNtpClient, \
    TimeResult, compute_delay, compute_offset
from timesync.registry import ServerEntry, ServerRegistry
from timesync.timesync import TimeSync

__all__ = [
    'AbstractProtocol', 'AggregateSyncError', 'ConfigurationError',
    'Endpoint', 'ErrorKind', 'NTPPacket', 'NtpClient', 'OptionError',
    'Options', 'PacketError', 'ProtocolError', 'SNtpClient', 'ServerEntry',
    'ServerRegistry', 'TimeResult', 'TimeSync', 'TimeSyncError',
    'compute_delay', 'compute_offset', 'decode', 'encode', 'to_ntp_time',
    'to_unix_time',
]
