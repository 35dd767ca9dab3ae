from enum import Enum


class ErrorKind(Enum):
    TIMEOUT = 'Timeout'
    CONNECTION_REFUSED = 'ConnectionRefused'
    INVALID_RESPONSE = 'InvalidResponse'
    KISS_OF_DEATH = 'KissOfDeath'


class TimeSyncError(Exception):
    message = 'TimeSyncError.'


class ConfigurationError(TimeSyncError):
    message = 'ConfigurationError (TimeSyncError). {}'

    def __init__(self, message):
        self.message = self.message.format(message)
        super().__init__(self.message)


class OptionError(TimeSyncError):
    message = 'OptionError (TimeSyncError): option is not set. {}'

    def __init__(self, key):
        self.key = key
        self.message = self.message.format(key)
        super().__init__(self.message)


class PacketError(TimeSyncError):
    message = 'PacketError (TimeSyncError): malformed packet. {}'

    def __init__(self, message):
        self.message = self.message.format(message)
        super().__init__(self.message)


class ProtocolError(TimeSyncError):
    message = 'ProtocolError (TimeSyncError): server {} - {}. {}'

    def __init__(self, alias, kind: ErrorKind, cause=None):
        self.alias = alias
        self.kind = kind
        self.cause = cause
        detail = '' if cause is None else cause
        self.message = self.message.format(alias, kind.value, detail).rstrip()
        super().__init__(self.message)


class AggregateSyncError(TimeSyncError):
    message = 'AggregateSyncError (TimeSyncError): ' \
              'all {} server(s) failed. {}'

    def __init__(self, errors):
        self.errors: tuple[ProtocolError, ...] = tuple(errors)
        details = '; '.join(error.message for error in self.errors)
        self.message = self.message.format(len(self.errors), details)
        super().__init__(self.message)

    def __iter__(self):
        return iter(self.errors)

    def __len__(self):
        return len(self.errors)
