import logging
from typing import Dict, Any
import nfs_server.settings as default_settings

log = logging.getLogger(__name__)


class GlobalSync:
    """
    A singleton class that houses all supervisor configuration.

    Every uppercase attribute of `settings.py` becomes a setting. The values
    are resolved once, when the container's entrypoint imports this module.
    """

    def __init__(self) -> None:
        """Initializes the settings object from the default settings module."""
        self._config: Dict[str, Any] = {}
        self._load_defaults()
        log.debug(f"Loaded {len(self._config)} settings.")

    def get(self, item: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return self._config.get(item, default)

    def __getattr__(self, name: str) -> Any:
        """Allows attribute access to settings, raising an AttributeError if not found."""
        if name in self._config:
            return self._config[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from settings.py as the baseline."""
        for key in dir(default_settings):
            if key.isupper():
                self._config[key] = getattr(default_settings, key)

    def get_all_settings(self) -> Dict[str, Any]:
        """Returns a copy of the entire configuration dictionary."""
        return dict(self._config)

# A singleton instance to be imported by other modules
app_globals = GlobalSync()
