import os
import configparser
from pathlib import Path

CONFIG_ENV_VAR = 'INVENTORY_INTELLIGENCE_CONFIG'

# Written to settings.ini the first time the engine runs without one
DEFAULT_SETTINGS = {
    'DATABASE': {
        'type': 'postgresql',
        'engine': 'postgresql',
        'host': 'localhost',
        'port': '5432',
        'database': 'postgres',
        'username': 'postgres',
        'password': 'postgres',
        'echo': 'False',
    },
    'SUPABASE': {
        'url': '',
        'key': '',
    },
    'LOGGING': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'directory': 'logs',
        'max_size_mb': '10',
        'backup_count': '5',
        'console_output': 'True',
    },
    'FORECASTING': {
        'history_days': '90',
        'recent_window': '30',
        'smoothing_alpha': '0.3',
        'moving_average_window': '7',
        'min_data_points_for_trend': '60',
    },
    'INTELLIGENCE': {
        'critical_days': '3',
        'warning_days': '7',
        'planned_days': '14',
        'default_safety_stock_days': '14',
        'target_coverage_days': '30',
        'include_in_transit': 'True',
        'default_transit_days': '7',
        'default_lead_time_days': '30',
        'replenishment_location_types': '',
    },
}

class Config:
    """Configuration manager for the Inventory Intelligence engine.

    Reads ``config/settings.ini`` (or the file named by
    INVENTORY_INTELLIGENCE_CONFIG) and writes the defaults there when the
    file does not exist yet.
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        env_path = os.getenv(CONFIG_ENV_VAR)
        self._config_path = Path(env_path) if env_path else Path('config') / 'settings.ini'
        self._config = configparser.ConfigParser(interpolation=None)

        if self._config_path.exists():
            self._config.read(self._config_path)
        else:
            self._config.read_dict(DEFAULT_SETTINGS)
            self._save_config()

        self._initialized = True

    def _save_config(self):
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._config_path, 'w') as configfile:
            self._config.write(configfile)

    def _typed(self, reader, section, key, default):
        try:
            return reader(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get(self, section, key, default=None):
        """Get configuration value."""
        return self._typed(self._config.get, section, key, default)

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        return self._typed(self._config.getint, section, key, default)

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        return self._typed(self._config.getfloat, section, key, default)

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        return self._typed(self._config.getboolean, section, key, default)

    def get_list(self, section, key, default=None):
        """Get a comma separated configuration value as a list of strings."""
        value = self.get(section, key)
        if value is None:
            return default if default is not None else []
        return [part.strip() for part in value.split(',') if part.strip()]

    def set(self, section, key, value):
        """Set a value and persist the file."""
        if not self._config.has_section(section):
            self._config.add_section(section)

        self._config.set(section, key, str(value))
        self._save_config()

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', DEFAULT_SETTINGS['LOGGING']['format']),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True)
        }

    @property
    def forecast_config(self):
        """Forecast calculation parameters."""
        return {
            'history_days': self.get_int('FORECASTING', 'history_days', 90),
            'recent_window': self.get_int('FORECASTING', 'recent_window', 30),
            'smoothing_alpha': self.get_float('FORECASTING', 'smoothing_alpha', 0.3),
            'moving_average_window': self.get_int('FORECASTING', 'moving_average_window', 7),
            'min_data_points_for_trend': self.get_int('FORECASTING', 'min_data_points_for_trend', 60)
        }

    @property
    def intelligence_config(self):
        """Suggestion generation defaults; the intelligence_settings row overrides them."""
        return {
            'critical_days': self.get_int('INTELLIGENCE', 'critical_days', 3),
            'warning_days': self.get_int('INTELLIGENCE', 'warning_days', 7),
            'planned_days': self.get_int('INTELLIGENCE', 'planned_days', 14),
            'default_safety_stock_days': self.get_int('INTELLIGENCE', 'default_safety_stock_days', 14),
            'target_coverage_days': self.get_int('INTELLIGENCE', 'target_coverage_days', 30),
            'include_in_transit': self.get_boolean('INTELLIGENCE', 'include_in_transit', True),
            'default_transit_days': self.get_int('INTELLIGENCE', 'default_transit_days', 7),
            'default_lead_time_days': self.get_int('INTELLIGENCE', 'default_lead_time_days', 30),
            'replenishment_location_types': self.get_list('INTELLIGENCE', 'replenishment_location_types')
        }

# Global config instance
config = Config()
