from typing import Any, Dict, Mapping, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError


class Config:
    DEFAULT_BITMASK_ATTRIBUTE: str = "options"
    FIELDS_MESSAGE: Optional[str] = None
    MASK_MESSAGE: Optional[str] = None
    FIELD_MAPS: Dict[str, Dict[str, Any]] = {}
    LOG_DETAIL_LEVEL: int = 1

    def __init__(self):
        self.FIELD_MAPS = {}

    def load_from_dict(self, config_values: Mapping[str, Any]):
        # only keys that are known config attributes are taken
        for key, value in config_values.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def load_from_settings(self):
        config_values = getattr(settings, "BITMASK_FIELDS", None) or {}
        if not isinstance(config_values, dict):
            raise ImproperlyConfigured("settings.BITMASK_FIELDS must be a dict.")
        self.load_from_dict(config_values)

    def load_from_yaml(self, file_path: str):
        yaml_loader = YAML(typ='safe')

        try:
            with open(file_path, 'r', encoding='utf-8') as file:
                config_values = yaml_loader.load(file)
        except FileNotFoundError:
            raise ImproperlyConfigured(f"Bitmask config file not found at {file_path}")
        except YAMLError as e:
            details = str(e)
            mark = getattr(e, 'problem_mark', None)
            if mark is not None:
                details = f"line {mark.line + 1}, column {mark.column + 1}: {getattr(e, 'problem', '')}"
            raise ImproperlyConfigured(f"Error parsing bitmask config YAML file {file_path}: {details}") from e

        if config_values is None:
            return
        if not isinstance(config_values, dict):
            raise ImproperlyConfigured(f"Bitmask config file {file_path} does not contain a valid dictionary.")
        self.load_from_dict(config_values)

    def load(self):
        self.load_from_settings()
        file_path = getattr(settings, "BITMASK_FIELDS_CONFIG_FILE", None)
        if file_path:
            self.load_from_yaml(file_path)

    def validate(self):
        if not isinstance(self.DEFAULT_BITMASK_ATTRIBUTE, str) or self.DEFAULT_BITMASK_ATTRIBUTE.strip() == '':
            raise ImproperlyConfigured("DEFAULT_BITMASK_ATTRIBUTE is empty")
        if not isinstance(self.FIELD_MAPS, dict):
            raise ImproperlyConfigured("FIELD_MAPS must be a mapping of names to field maps")

    def get_field_map(self, name: str) -> Dict[str, Any]:
        try:
            return self.FIELD_MAPS[name]
        except KeyError:
            raise ImproperlyConfigured(f'Unknown bitmask field map "{name}".') from None


# Default global configuration instance
default_app_config = Config()
default_app_config.load()
default_app_config.validate()
