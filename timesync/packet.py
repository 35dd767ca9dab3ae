import datetime
import math
import struct
from dataclasses import dataclass

from timesync.errors import PacketError

MODE_CLIENT = 3
MODE_SERVER = 4
NTP_v3 = 3
NTP_v4 = 4

PACKET_SIZE = 48
FRACTION_SCALE = 2 ** 32
ERA_SECONDS = 2 ** 32
ERA_MSB = 0x80000000

# seconds between 1900-01-01 (NTP epoch) and 1970-01-01 (Unix epoch)
FORMAT_DIFF = (datetime.date(1970, 1, 1) -
               datetime.date(1900, 1, 1)).days * 24 * 3600

LEAP_TEXT = {
    0: 'no warning',
    1: 'last minute has 61 seconds',
    2: 'last minute has 59 seconds',
    3: 'not synchronized',
}

MODE_TEXT = {
    0: 'reserved',
    1: 'symmetric active',
    2: 'symmetric passive',
    3: 'client',
    4: 'server',
    5: 'broadcast',
    6: 'reserved for NTP control message',
    7: 'reserved for private use',
}


def to_ntp_time(unix_time: float) -> int:
    """
    Convert Unix seconds to a 64-bit NTP fixed-point timestamp
    (32-bit seconds since 1900 | 32-bit fraction).
    """
    seconds = math.floor(unix_time)
    fraction = round((unix_time - seconds) * FRACTION_SCALE)
    if fraction >= FRACTION_SCALE:
        seconds += 1
        fraction -= FRACTION_SCALE
    # the seconds field wraps every era (136 years), next wrap in 2036
    return (((seconds + FORMAT_DIFF) % ERA_SECONDS) << 32) | fraction


def to_unix_time(ntp_time: int) -> float:
    """
    Inverse of to_ntp_time. A seconds field with the most significant bit
    clear belongs to era 1 (2036-2104), otherwise to era 0 (1968-2036).
    """
    seconds = ntp_time >> 32
    if not seconds & ERA_MSB:
        seconds += ERA_SECONDS
    seconds -= FORMAT_DIFF
    return seconds + (ntp_time & 0xFFFFFFFF) / FRACTION_SCALE


def short_to_seconds(value: int) -> float:
    # 16.16 fixed point
    return (value >> 16) + (value & 0xFFFF) / 2 ** 16


def stratum_text(stratum: int) -> str:
    if stratum == 0:
        return 'unspecified or invalid (kiss-o\'-death)'
    if stratum == 1:
        return 'primary reference'
    if stratum <= 15:
        return f'secondary reference (stratum {stratum})'
    return 'unsynchronized'


def _check_range(name: str, value: int, low: int, high: int):
    if not isinstance(value, int) or not low <= value <= high:
        raise PacketError(f'{name}={value!r} is out of range [{low}, {high}]')


@dataclass
class NTPPacket:
    leap_indicator: int = 0
    version: int = NTP_v3
    mode: int = MODE_CLIENT
    stratum: int = 0
    poll: int = 0
    precision: int = 0
    root_delay: int = 0
    root_dispersion: int = 0
    ref_id: int = 0
    reference: int = 0
    originate: int = 0
    receive: int = 0
    transmit: int = 0

    _FORMAT = '!B B b b 3I 4Q'

    def validate(self):
        """
        :raise PacketError
        """
        _check_range('leap_indicator', self.leap_indicator, 0, 0b11)
        _check_range('version', self.version, 0, 0b111)
        _check_range('mode', self.mode, 0, 0b111)
        _check_range('stratum', self.stratum, 0, 0xFF)
        _check_range('poll', self.poll, -128, 127)
        _check_range('precision', self.precision, -128, 127)
        for name in ('root_delay', 'root_dispersion', 'ref_id'):
            _check_range(name, getattr(self, name), 0, 0xFFFFFFFF)
        for name in ('reference', 'originate', 'receive', 'transmit'):
            _check_range(name, getattr(self, name), 0, 0xFFFFFFFFFFFFFFFF)

    def pack(self) -> bytes:
        self.validate()
        return struct.pack(NTPPacket._FORMAT,
                           (self.leap_indicator << 6) +
                           (self.version << 3) + self.mode,
                           self.stratum,
                           self.poll,
                           self.precision,
                           self.root_delay,
                           self.root_dispersion,
                           self.ref_id,
                           self.reference,
                           self.originate,
                           self.receive,
                           self.transmit)

    @classmethod
    def unpack(cls, data: bytes) -> 'NTPPacket':
        """
        :raise PacketError
        """
        if len(data) != PACKET_SIZE:
            raise PacketError(
                f'expected {PACKET_SIZE} bytes, got {len(data)}')
        unpacked_data = struct.unpack(cls._FORMAT, data)
        packet = cls(
            leap_indicator=unpacked_data[0] >> 6,  # 2 bits
            version=unpacked_data[0] >> 3 & 0b111,  # 3 bits
            mode=unpacked_data[0] & 0b111,  # 3 bits
            stratum=unpacked_data[1],
            poll=unpacked_data[2],
            precision=unpacked_data[3],
            root_delay=unpacked_data[4],
            root_dispersion=unpacked_data[5],
            ref_id=unpacked_data[6],
            reference=unpacked_data[7],
            originate=unpacked_data[8],
            receive=unpacked_data[9],
            transmit=unpacked_data[10])
        packet.validate()
        return packet

    def __bytes__(self):
        return self.pack()

    @property
    def root_delay_seconds(self) -> float:
        return short_to_seconds(self.root_delay)

    @property
    def root_dispersion_seconds(self) -> float:
        return short_to_seconds(self.root_dispersion)

    @property
    def reference_time(self) -> float:
        return to_unix_time(self.reference)

    @property
    def originate_time(self) -> float:
        return to_unix_time(self.originate)

    @property
    def receive_time(self) -> float:
        return to_unix_time(self.receive)

    @property
    def transmit_time(self) -> float:
        return to_unix_time(self.transmit)

    @property
    def ref_id_text(self) -> str:
        """
        Kiss code or reference clock name for stratum 0 and 1,
        IPv4 address of the upstream server otherwise.
        """
        raw = self.ref_id.to_bytes(4, 'big')
        if self.stratum <= 1:
            return raw.rstrip(b'\x00').decode('ascii', errors='replace')
        return '.'.join(str(part) for part in raw)


def encode(packet: NTPPacket) -> bytes:
    return packet.pack()


def decode(data: bytes) -> NTPPacket:
    return NTPPacket.unpack(data)
