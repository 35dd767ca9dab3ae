import socket
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from timesync.errors import AggregateSyncError, ConfigurationError, \
    ErrorKind, OptionError, ProtocolError
from timesync.protocol import DEFAULT_TIMEOUT, AbstractProtocol, NtpClient, \
    SNtpClient, TimeResult
from timesync.timesync import TimeSync
from tests.test_protocol import T1, T4, get_socket, make_response
from tests.test_registry import TIMESERVERS

RESULT = TimeResult(timestamp=1700000000.25, offset=0.5, delay=0.01,
                    info={'stratum': 2, 'reference_id': '10.0.0.1'})


def fail(alias, kind=ErrorKind.TIMEOUT):
    return ProtocolError(alias, kind, socket.timeout('timed out'))


class TimeSyncTests(unittest.TestCase):

    def test_init_empty(self):
        server = TimeSync()
        self.assertEqual(0, len(server))
        self.assertEqual([], list(server))

    def test_init_servers(self):
        server = TimeSync(TIMESERVERS)
        self.assertEqual(len(TIMESERVERS), len(server))
        self.assertIsInstance(server.get_server('server_f'), SNtpClient)

    def test_init_single(self):
        server = TimeSync('time.windows.com', 'windows_time')
        server.set_server('windows_time')
        self.assertIsInstance(server.get_server(), NtpClient)

    def test_init_single_sntp(self):
        server = TimeSync('sntp://time.zend.com', 'windows_time')
        server.set_server('windows_time')
        self.assertIsInstance(server.get_server(), SNtpClient)

    def test_init_single_without_alias(self):
        server = TimeSync('sntp://time-C.timefreq.bldrdoc.gov')
        self.assertIsInstance(server.get_server('0'), SNtpClient)
        with self.assertRaises(ConfigurationError):
            server.get_server()

    def test_init_unknown_scheme(self):
        with self.assertRaises(ConfigurationError):
            TimeSync('http://time.windows.com', 'windows_time')

    def test_add_server(self):
        server = TimeSync()
        server.add_server('a', 'ntp://a.example.org')
        server.add_server(None, 'sntp://b.example.org')
        self.assertEqual(['a', '0'], server.registry.aliases)

    def test_options(self):
        server = TimeSync()
        self.assertEqual(DEFAULT_TIMEOUT, server.get_options('timeout'))
        server.set_options({'timeout': 5, 'foo': 'bar'})
        self.assertEqual(5, server.get_options('timeout'))
        self.assertEqual('bar', server.get_options('foo'))
        self.assertDictEqual({'timeout': 5, 'foo': 'bar'},
                             server.get_options())

    def test_init_options(self):
        server = TimeSync(options={'timeout': 2})
        self.assertEqual(2, server.get_options('timeout'))

    def test_get_invalid_option(self):
        with self.assertRaises(OptionError):
            TimeSync().get_options('foobar')

    def test_set_unknown_current(self):
        with self.assertRaises(ConfigurationError):
            TimeSync().set_server('unknown_alias')

    def test_get_unknown_current(self):
        with self.assertRaises(ConfigurationError):
            TimeSync().get_server()

    def test_get_unknown_server(self):
        with self.assertRaises(ConfigurationError):
            TimeSync().get_server('none_existing_server_alias')

    def test_walk_servers(self):
        server = TimeSync(TIMESERVERS)
        clients = list(server)
        self.assertEqual(len(TIMESERVERS), len(clients))
        for client in clients:
            self.assertIsInstance(client, AbstractProtocol)

    def test_get_date_empty(self):
        with self.assertRaises(ConfigurationError):
            TimeSync().get_date()

    def test_get_info_without_date(self):
        with self.assertRaises(ConfigurationError):
            TimeSync(TIMESERVERS).get_info()


class TimeSyncDateTests(unittest.TestCase):

    def test_first_success(self):
        server = TimeSync(TIMESERVERS)
        with patch.object(AbstractProtocol, 'query',
                          return_value=RESULT) as mock_query:
            date = server.get_date()
        self.assertEqual(RESULT.date, date)
        self.assertEqual(datetime.fromtimestamp(RESULT.timestamp,
                                                tz=timezone.utc), date)
        mock_query.assert_called_once()
        endpoint, options = mock_query.call_args[0]
        self.assertEqual('be.foo.bar.org', endpoint.host)
        self.assertEqual(DEFAULT_TIMEOUT, options.get('timeout'))
        self.assertEqual(RESULT.info, server.get_info())
        self.assertIs(RESULT, server.last_result)

    def test_fallback(self):
        server = TimeSync(TIMESERVERS)
        side_effect = [fail('server_a'),
                       fail('server_b', ErrorKind.CONNECTION_REFUSED),
                       RESULT]
        with patch.object(AbstractProtocol, 'query',
                          side_effect=side_effect) as mock_query:
            date = server.get_date()
        self.assertEqual(RESULT.date, date)
        self.assertEqual(3, mock_query.call_count)
        hosts = [call[0][0].host for call in mock_query.call_args_list]
        self.assertEqual(['be.foo.bar.org'] * 3, hosts)

    def test_all_fail(self):
        servers = {
            'server_a': 'dummy-ntp-timeserver.com',
            'server_b': 'another-dummy-ntp-timeserver.com',
        }
        server = TimeSync(servers)
        errors = [fail('server_a'),
                  fail('server_b', ErrorKind.KISS_OF_DEATH)]
        with patch.object(AbstractProtocol, 'query', side_effect=errors):
            with self.assertRaises(AggregateSyncError) as context:
                server.get_date()
        exception = context.exception
        self.assertEqual(2, len(exception))
        self.assertEqual(errors, list(exception))
        for error in exception:
            self.assertIsInstance(error, ProtocolError)
        self.assertEqual(['server_a', 'server_b'],
                         [error.alias for error in exception.errors])
        with self.assertRaises(ConfigurationError):
            server.get_info()

    def test_single_failure(self):
        server = TimeSync('ntp://time.windows.com', 'time_windows')
        with patch.object(AbstractProtocol, 'query',
                          side_effect=[fail('time_windows')]):
            with self.assertRaises(AggregateSyncError) as context:
                server.get_date()
        self.assertEqual(1, len(context.exception))

    def test_subset(self):
        server = TimeSync(TIMESERVERS)
        with patch.object(AbstractProtocol, 'query',
                          side_effect=[fail('server_c'),
                                       fail('server_e')]) as mock_query:
            with self.assertRaises(AggregateSyncError) as context:
                server.get_date(aliases=['server_e', 'server_c'])
        self.assertEqual(2, mock_query.call_count)
        self.assertEqual(['server_c', 'server_e'],
                         [error.alias for error in context.exception])

    def test_configuration_error_is_not_collected(self):
        server = TimeSync(TIMESERVERS, options={'timeout': 0})
        with patch('socket.socket') as mock_socket, \
                self.assertRaises(ConfigurationError):
            server.get_date()
        mock_socket.assert_not_called()

    def test_info_kept_after_failure(self):
        server = TimeSync(TIMESERVERS)
        with patch.object(AbstractProtocol, 'query', return_value=RESULT):
            server.get_date()
        with patch.object(AbstractProtocol, 'query',
                          side_effect=[fail(alias) for alias in TIMESERVERS]):
            with self.assertRaises(AggregateSyncError):
                server.get_date()
        self.assertEqual(RESULT.info, server.get_info())

    @patch('timesync.protocol.local_time', side_effect=[T1, T4])
    @patch('socket.socket')
    def test_get_date_from_socket(self, mock_socket, mock_time):
        get_socket(mock_socket, make_response())
        server = TimeSync('ntp://time.example.org', 'example')
        date = server.get_date()
        self.assertAlmostEqual(T4 + 10.0, date.timestamp(), places=5)
        self.assertEqual(2, server.get_info()['stratum'])
        self.assertEqual(server.get_info(),
                         server.get_server('example').get_info())

    def test_get_date_next_era(self):
        t1 = 2524608000.0
        t4 = t1 + 0.2
        with patch('timesync.protocol.local_time', side_effect=[t1, t4]), \
                patch('socket.socket') as mock_socket:
            get_socket(mock_socket, make_response(t1=t1,
                                                  t2=t1 + 10.1,
                                                  t3=t1 + 10.1))
            date = TimeSync('ntp://time.example.org', 'example').get_date()
        self.assertEqual(datetime(2050, 1, 1, 0, 0, 10, tzinfo=timezone.utc),
                         date.replace(microsecond=0))
        self.assertAlmostEqual(t4 + 10.0, date.timestamp(), places=5)
