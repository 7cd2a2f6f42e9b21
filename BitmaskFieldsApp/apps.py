import logging
import os

from django.apps import AppConfig

from .structured_logger import set_detail_level


class BitmaskFieldsAppConfig(AppConfig):
    name = 'BitmaskFieldsApp'
    default_auto_field = 'django.db.models.AutoField'

    def ready(self):
        from .config import default_app_config

        # Set log detail level from environment variable if present and valid,
        # otherwise from the bitmask config
        log_level = os.environ.get('BITMASK_FIELDS_LOG_LEVEL')
        if log_level and log_level.isdigit():
            set_detail_level(int(log_level))
            logging.getLogger('BitmaskFieldsApp').setLevel(logging.DEBUG)
        else:
            set_detail_level(int(default_app_config.LOG_DETAIL_LEVEL))
