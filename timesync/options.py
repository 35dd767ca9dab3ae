from typing import Any, Mapping, Optional

from timesync.errors import OptionError


class Options:
    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        self._options: dict[str, Any] = dict()
        if options:
            self.set(options)

    def set(self, options: Mapping[str, Any]) -> None:
        self._options.update(options)

    def get(self, key: Optional[str] = None):
        """
        :param key: option name, None for the whole mapping
        :raise OptionError
        """
        if key is None:
            return dict(self._options)
        if key not in self._options:
            raise OptionError(key)
        return self._options[key]

    def __contains__(self, key):
        return key in self._options

    def __len__(self):
        return len(self._options)
