import os
import json
import logging

from .errors import ConfigError

DEFAULT_SETTINGS = {
    "recency_cap": 10,
    "max_candidates": 10,
    "capture_quality": 80,
    "thumbnail_width": 300,
    "thumbnail_quality": 70,
    "capture_max_retries": 3,
    "capture_retry_delay_ms": 200,
    "capture_timeout_s": 5.0,
    "busy_error_markers": ["Tabs cannot be edited right now"],
    "compare_last_active_on_write": False,
    "include_uncaptured_tabs": True,
    "store_path": None,
    "switcher_command": "open_switcher",
    "hotkey_drop_final_key": None,
    "overlay_idle_timeout_s": 5.0,
}

# (allowed types, minimum) per setting; None minimum means no bound
_SETTING_RULES = {
    "recency_cap": ((int,), 1),
    "max_candidates": ((int,), 1),
    "capture_quality": ((int,), 1),
    "thumbnail_width": ((int,), 1),
    "thumbnail_quality": ((int,), 1),
    "capture_max_retries": ((int,), 0),
    "capture_retry_delay_ms": ((int, float), 0),
    "capture_timeout_s": ((int, float), 0),
    "busy_error_markers": ((list,), None),
    "compare_last_active_on_write": ((bool,), None),
    "include_uncaptured_tabs": ((bool,), None),
    "store_path": ((str, type(None)), None),
    "switcher_command": ((str,), None),
    "hotkey_drop_final_key": ((bool, type(None)), None),
    "overlay_idle_timeout_s": ((int, float), 0),
}

_QUALITY_KEYS = ("capture_quality", "thumbnail_quality")


class ConfigManager:
    """Manages the coordinator settings stored in JSON format."""

    def __init__(self, config_path=None):
        """Initialize the configuration manager.

        Args:
            config_path (str, optional): Path to the config file. If None, uses default location.
        """
        self.logger = logging.getLogger("TabSnap.ConfigManager")

        if config_path is None:
            # Default location is in the package directory
            self.config_path = os.path.join(
                os.path.dirname(os.path.abspath(__file__)), "tabsnap_config.json"
            )
        else:
            self.config_path = config_path

        self.config_dir = os.path.dirname(os.path.abspath(self.config_path))

        # Ensure the config directory exists
        if not os.path.exists(self.config_dir):
            os.makedirs(self.config_dir)

        # Load or create the config file
        if not os.path.exists(self.config_path):
            self.logger.info(
                f"Config file not found. Creating default at {self.config_path}"
            )
            self.config = self._create_default_config()
            self.save_config()
        else:
            self.load_config()

        if not hasattr(self, "_last_saved_json"):
            self._last_saved_json = json.dumps(self.config, sort_keys=True)

    def load_config(self):
        """Load configuration from the JSON file."""
        try:
            with open(self.config_path, "r") as f:
                self.config = json.load(f)

            # Snapshot for change detection in save_config.
            self._last_saved_json = json.dumps(self.config, sort_keys=True)

            if not self._validate_config():
                self.logger.warning("Invalid config file. Creating new default config.")
                self.config = self._create_default_config()
                self.save_config()

            return True
        except Exception as e:
            self.logger.error(f"Error loading config: {str(e)}")
            self.config = self._create_default_config()
            return False

    def save_config(self):
        """Save configuration to the JSON file, overwriting without backups."""
        try:
            # If nothing changed, skip write
            if hasattr(self, "_last_saved_json") and os.path.exists(self.config_path):
                current_json = json.dumps(self.config, sort_keys=True)
                if current_json == self._last_saved_json:
                    return True

            with open(self.config_path, "w") as f:
                json.dump(self.config, f, indent=2)

            self._last_saved_json = json.dumps(self.config, sort_keys=True)
            self.logger.debug(f"Config saved to {self.config_path}")

            return True
        except Exception as e:
            self.logger.error(f"Error saving config: {str(e)}")
            return False

    def _create_default_config(self):
        """Create a default configuration structure."""
        return {"settings": dict(DEFAULT_SETTINGS)}

    def _validate_config(self):
        """Validate that the config has the required structure.

        Unknown keys are kept; known keys with the wrong type fall back to
        their defaults.
        """
        if not isinstance(self.config, dict):
            return False

        settings = self.config.get("settings")
        if settings is None:
            self.config["settings"] = dict(DEFAULT_SETTINGS)
            return True
        if not isinstance(settings, dict):
            return False

        for key, default in DEFAULT_SETTINGS.items():
            if key not in settings:
                settings[key] = default
                continue
            try:
                self._check_setting(key, settings[key])
            except ConfigError as e:
                self.logger.warning(f"{e}; using default {default!r}")
                settings[key] = default

        return True

    def _check_setting(self, key, value):
        """Raise ConfigError if value is not acceptable for key."""
        rule = _SETTING_RULES.get(key)
        if rule is None:
            raise ConfigError(f"Unknown setting: {key}")

        types, minimum = rule
        # bool is an int subclass; only accept it where bool is listed
        if isinstance(value, bool) and bool not in types:
            raise ConfigError(f"Setting {key} has invalid type bool")
        if not isinstance(value, types):
            raise ConfigError(
                f"Setting {key} has invalid type {type(value).__name__}"
            )
        if minimum is not None and value < minimum:
            raise ConfigError(f"Setting {key} must be >= {minimum}")
        if key in _QUALITY_KEYS and value > 100:
            raise ConfigError(f"Setting {key} must be <= 100")
        if key == "busy_error_markers" and not all(
            isinstance(marker, str) and marker for marker in value
        ):
            raise ConfigError("busy_error_markers must be non-empty strings")

    # Settings management methods

    def get_settings(self):
        """Get all application settings.

        Returns:
            dict: Application settings
        """
        if "settings" not in self.config:
            self.config["settings"] = dict(DEFAULT_SETTINGS)
        return self.config["settings"]

    def update_settings(self, settings_dict):
        """Update application settings.

        Args:
            settings_dict (dict): Settings to update (partial or full)

        Returns:
            bool: True if successful

        Raises:
            ConfigError: If any key is unknown or any value is invalid. No
                setting is changed in that case.
        """
        if not isinstance(settings_dict, dict):
            raise ConfigError("Settings update must be an object")

        for key, value in settings_dict.items():
            self._check_setting(key, value)

        self.get_settings().update(settings_dict)
        self.save_config()
        self.logger.info(f"Settings updated: {settings_dict}")
        return True

    def get_setting(self, key, default=None):
        """Get a specific setting value.

        Args:
            key (str): Setting key
            default: Default value if key doesn't exist

        Returns:
            The setting value or default
        """
        settings = self.get_settings()
        if key in settings:
            return settings[key]
        return DEFAULT_SETTINGS.get(key, default)

    def set_setting(self, key, value):
        """Set a specific setting value.

        Args:
            key (str): Setting key
            value: Setting value

        Returns:
            bool: True if successful
        """
        return self.update_settings({key: value})

    def get_store_path(self):
        """Resolve where snapshot records are persisted."""
        store_path = self.get_setting("store_path")
        if store_path:
            return store_path
        return os.path.join(self.config_dir, "snapshots.json")
