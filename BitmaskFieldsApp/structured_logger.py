import inspect
import logging
import structlog
import yaml
from typing import List, Optional

# Configure the standard Python logging to work with structlog
logging.basicConfig(
    format="%(message)s",
    level=logging.INFO,
)
# basicConfig is a no-op when the host already configured the root logger
logging.getLogger('BitmaskFieldsApp').setLevel(logging.INFO)

INTERNAL_MODULES = ['structlog', 'logging', 'structured_logger.py']


def add_caller_info(_, __, event_dict):
    """Add the caller's function name and line number to the log entry."""
    frame = inspect.currentframe()
    while frame:
        frame = frame.f_back
        if not frame:
            break
        file_name = frame.f_code.co_filename
        if not any(internal in file_name for internal in INTERNAL_MODULES):
            event_dict["function"] = frame.f_code.co_name
            event_dict["file"] = file_name.replace("\\", "/").split("/")[-1]
            event_dict["line"] = frame.f_lineno
            break
    return event_dict


class DetailLevelFilter:
    """
    Drop debug events that are more detailed than the configured level:
    debug (1) < debug2 (2) < debug3 (3).
    """

    def __init__(self, default_level=1):
        self.default_level = default_level
        self.module_levels = {}

    def set_level(self, module=None, level=1):
        if module:
            self.module_levels[module] = level
        else:
            self.default_level = level

    def get_level(self, module=None):
        if module and module in self.module_levels:
            return self.module_levels[module]
        return self.default_level

    def __call__(self, logger, method_name, event_dict):
        detail_level = event_dict.pop("_detail_level", 1)
        current_level = self.get_level(event_dict.get("logger"))
        if method_name == "debug" and detail_level > current_level:
            raise structlog.DropEvent
        return event_dict


def add_prefix(_, __, event_dict):
    prefix = event_dict.pop("_prefix", "")
    if prefix and "event" in event_dict:
        event_dict["event"] = f"{prefix}{event_dict['event']}"
    return event_dict


def format_yaml_values(_, __, event_dict):
    """Format complex values (value sets, field maps) as flow-style YAML."""
    for key, value in list(event_dict.items()):
        if isinstance(value, (dict, list, tuple, set)):
            try:
                event_dict[key] = yaml.safe_dump(
                    list(value) if isinstance(value, (set, tuple)) else value,
                    default_flow_style=True).strip()
            except yaml.YAMLError:
                event_dict[key] = str(value)
    return event_dict


class MessageStore:
    """Store rendered log messages while capturing is active."""

    def __init__(self):
        self.messages = []
        self.active = False

    def start_capture(self):
        self.messages = []
        self.active = True

    def stop_capture(self):
        self.active = False
        return list(self.messages)

    def __call__(self, logger, method_name, event_dict):
        if self.active:
            msg = f"{event_dict.get('level', 'info').upper()} {event_dict.get('event', '')}"
            for key, value in event_dict.items():
                if key not in ("level", "function", "file", "line", "event", "timestamp", "logger"):
                    msg += f" {key}={value}"
            self.messages.append(msg)
        return event_dict


# Create global instances
message_store = MessageStore()
detail_filter = DetailLevelFilter()

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        add_prefix,
        add_caller_info,
        detail_filter,
        format_yaml_values,
        message_store,
        structlog.dev.ConsoleRenderer(colors=False),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


class StructuredLogger:
    """Structured logger with debug detail levels and a per-call-site prefix."""

    def __init__(self, name, prefix=""):
        self.logger = structlog.get_logger(name)
        self.prefix = prefix

    def _log(self, method, msg, detail_level=1, **kwargs):
        kwargs["_detail_level"] = detail_level
        kwargs["_prefix"] = self.prefix
        getattr(self.logger, method)(msg, **kwargs)

    def debug2(self, msg, **kwargs):
        self._log("debug", msg, detail_level=2, **kwargs)

    def debug3(self, msg, **kwargs):
        self._log("debug", msg, detail_level=3, **kwargs)

    def info(self, msg, **kwargs):
        self._log("info", msg, **kwargs)

    def warning(self, msg, **kwargs):
        self._log("warning", msg, **kwargs)


def set_detail_level(level: int, module: Optional[str] = None):
    """Set the debug detail level globally or for one logger name."""
    detail_filter.set_level(module, level)


def start_message_capture():
    message_store.start_capture()


def stop_message_capture() -> List[str]:
    return message_store.stop_capture()
