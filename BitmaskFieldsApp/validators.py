from typing import Any, Dict, Iterable, Optional

from django.core.exceptions import ImproperlyConfigured
from django.utils.translation import gettext_lazy as _

from .config import default_app_config
from .structured_logger import StructuredLogger


def bitmask_diff(current: Optional[int], old: Optional[int]) -> int:
    """Bits that differ between two masks. A missing mask counts as 0."""
    return int(current or 0) ^ int(old or 0)


def is_change_allowed(current: Optional[int], old: Optional[int], allowed: int) -> bool:
    return bitmask_diff(current, old) & ~allowed == 0


class BaseBitmaskValidator:
    """
    Allows a change of a bitmask attribute only if every changed bit belongs
    to the allowed mask. The record is compared against its old value of the
    attribute (SnapshotSource) and failures go to the record's ErrorSink, so a
    failed check never raises and never touches the in-memory values.
    """

    default_message = None
    config_message_key = None

    def __init__(self, attribute: str, message: Optional[str] = None):
        self.attribute = attribute
        self._message = message

    @property
    def message(self):
        if self._message is not None:
            return self._message
        configured = getattr(default_app_config, self.config_message_key, None)
        return configured or self.default_message

    def allowed_mask(self, record) -> int:
        raise NotImplementedError

    def error_context(self, allowed: int) -> Dict[str, Any]:
        return {"mask": allowed, "attribute": self.attribute}

    def validate(self, record) -> bool:
        logger = StructuredLogger(__name__, prefix=f"{type(self).__name__}.validate()> ")
        current = getattr(record, self.attribute)
        old = record.get_old_attribute(self.attribute)
        allowed = self.allowed_mask(record)
        diff = bitmask_diff(current, old)
        logger.debug3(f"checking {self.attribute}", current=current, old=old, diff=diff, allowed=allowed)
        if diff & ~allowed:
            logger.info(f"rejected change of {self.attribute}", diff=diff, allowed=allowed,
                        record=type(record).__name__)
            record.report(self.attribute, self.message, self.error_context(allowed))
            return False
        return True


class BitmaskFieldsValidator(BaseBitmaskValidator):
    """
    Allows only the bits of the named fields to change:

        bitmask_rules = (
            BitmaskFieldsValidator(['spam_option', 'deleted_option']),
            # BitmaskFieldsValidator([...], attribute='options'),  # default attribute
        )
    """

    default_message = _('Only "%(names)s" fields can be modified')
    config_message_key = "FIELDS_MESSAGE"

    def __init__(self, names: Iterable[str], attribute: Optional[str] = None, message: Optional[str] = None):
        super().__init__(attribute or default_app_config.DEFAULT_BITMASK_ATTRIBUTE, message)
        self.names = list(names)
        if not self.names:
            raise ImproperlyConfigured("BitmaskFieldsValidator needs at least one field name.")

    def allowed_mask(self, record) -> int:
        return record.get_bitmask_fields(self.attribute).bits_for(self.names)

    def error_context(self, allowed: int) -> Dict[str, Any]:
        context = super().error_context(allowed)
        context["names"] = ", ".join(self.names)
        return context

    def __repr__(self):
        return f"<BitmaskFieldsValidator {self.attribute} {self.names!r}>"


class BitmaskValidator(BaseBitmaskValidator):
    """
    Allows only the given bits to change:

        bitmask_rules = (
            BitmaskValidator('options', mask=1 << 3 | 1 << 4 | 1 << 6),
            BitmaskValidator('options', mask=User.OPT_SPAM, message=_("...")),
        )
    """

    default_message = _('Only "%(mask)s" bit mask in %(attribute)s field can be modified')
    config_message_key = "MASK_MESSAGE"

    def __init__(self, attribute: str, mask: int = 0, message: Optional[str] = None):
        super().__init__(attribute, message)
        self.mask = int(mask)

    def allowed_mask(self, record) -> int:
        return self.mask

    def __repr__(self):
        return f"<BitmaskValidator {self.attribute} mask={self.mask}>"
