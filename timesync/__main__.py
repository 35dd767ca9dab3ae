import argparse
import configparser
import logging
import sys
from typing import Optional

from timesync.errors import AggregateSyncError, TimeSyncError
from timesync.timesync import TimeSync

parser = argparse.ArgumentParser(prefix_chars='-',
                                 description='Query NTP/SNTP time servers')
parser.add_argument('servers', nargs='*', type=str,
                    help='Server as endpoint or alias=endpoint, '
                         'e.g. ntp://pool.ntp.org')
parser.add_argument('-c', '--config', default=None, type=str,
                    help='INI file with [servers] and [options] sections')
parser.add_argument('-t', '--timeout', default=None, type=float,
                    help='Set timeout wait response (seconds), default=5')

logging.basicConfig(format='%(levelname)s - %(name)s - '
                           '%(asctime)s - %(message)s',
                    datefmt='%Y-%m-%d %H:%M:%S',
                    level=logging.INFO)

logger = logging.getLogger('main')

servers_section = 'servers'
options_section = 'options'


def read_config(filename: str) -> tuple[dict, dict]:
    """
    :raise FileNotFoundError
    :raise configparser.Error on malformed INI
    :raise ValueError when the timeout is not a number
    """
    config = configparser.ConfigParser()
    if filename not in config.read(filename):
        raise FileNotFoundError(filename)
    servers = dict(config[servers_section]) \
        if config.has_section(servers_section) else dict()
    options = dict()
    if config.has_section(options_section):
        timeout = config[options_section].getfloat('timeout', fallback=None)
        if timeout is not None:
            options['timeout'] = timeout
    return servers, options


def parse_servers(values: list[str]) -> list[tuple[Optional[str], str]]:
    """
    Splits alias=endpoint pairs. A value without alias gets None, so the
    registry picks the next free numeric alias for it.
    """
    servers = list()
    for value in values:
        alias, sep, endpoint = value.partition('=')
        if sep:
            servers.append((alias, endpoint))
        else:
            servers.append((None, value))
    return servers


def main(servers: list[str],
         timeout: Optional[float] = None,
         config: Optional[str] = None) -> int:
    try:
        config_servers, options = read_config(config) if config \
            else (dict(), dict())
    except FileNotFoundError:
        logger.warning(f'File {config} not found.')
        return 1
    except (configparser.Error, ValueError) as exception:
        logger.warning(f'Bad config file {config}: {exception}')
        return 1
    if timeout is not None:
        options['timeout'] = timeout
    try:
        time_sync = TimeSync(config_servers, options=options)
        for alias, endpoint in parse_servers(servers):
            time_sync.add_server(alias, endpoint)
        date = time_sync.get_date()
    except AggregateSyncError as exception:
        for error in exception:
            logger.warning(error.message)
        logger.warning(f'All {len(exception)} server(s) failed.')
        return 1
    except TimeSyncError as exception:
        logger.warning(f'{exception.message}')
        return 1
    info = time_sync.get_info()
    print(f'Server time: {date.strftime("%c")} UTC')
    for key, value in info.items():
        print(f'{key}: {value}')
    return 0


def run():
    try:
        args = parser.parse_args()
        sys.exit(main(servers=args.servers,
                      timeout=args.timeout,
                      config=args.config))
    except KeyboardInterrupt:
        logger.warning(f'KeyboardInterrupt')


if __name__ == '__main__':
    run()
