from typing import Any, Callable, Dict, Mapping, Optional

from .bitmask import BitmaskFieldMap, make_bitmask, modify_bitmask, parse_bitmask
from .structured_logger import StructuredLogger


class BitmaskBehavior:
    """
    Named boolean flags on top of one integer attribute of a record.

    The behavior keeps the decoded values for its owner. Reading a flag reads
    the decoded value; writing a flag updates the decoded value and sets or
    clears the flag's bits on the owner's integer attribute, leaving every
    other bit as it was.

    The owner must allow getattr/setattr of `attribute` and, for
    get_old_bit(), implement SnapshotSource.

    Note that defaults only show up in the decoded values. The integer
    attribute of a fresh record keeps whatever the record gave it until a
    flag is written or rebuild_mask() is called.
    """

    def __init__(self, owner: Any, field_map: BitmaskFieldMap, attribute: str):
        self.owner = owner
        self.field_map = field_map
        self.attribute = attribute
        self._values: Dict[str, bool] = dict(field_map.defaults)

    @property
    def fields(self) -> Mapping[str, int]:
        return self.field_map.fields

    @property
    def values(self) -> Dict[str, bool]:
        return dict(self._values)

    @property
    def bitmask(self) -> int:
        return int(getattr(self.owner, self.attribute) or 0)

    def has_field(self, name: str) -> bool:
        return name in self.field_map

    def get(self, name: str, fallback: Optional[Callable[[str], Any]] = None) -> Any:
        if name in self.field_map:
            return self._values[name]
        if fallback is None:
            raise AttributeError(f"{type(self.owner).__name__} has no bitmask field '{name}'")
        return fallback(name)

    def set(self, name: str, value: Any, fallback: Optional[Callable[[str, Any], None]] = None):
        logger = StructuredLogger(__name__, prefix="BitmaskBehavior.set()> ")
        if name not in self.field_map:
            if fallback is None:
                raise AttributeError(f"{type(self.owner).__name__} has no bitmask field '{name}'")
            fallback(name, value)
            return

        value = bool(value)
        self._values[name] = value
        old_mask = getattr(self.owner, self.attribute)
        new_mask = modify_bitmask(old_mask, self.field_map.bit(name), value)
        setattr(self.owner, self.attribute, new_mask)
        logger.debug2(f"{name}={value}", attribute=self.attribute, old_mask=old_mask, new_mask=new_mask)

    def get_old_bit(self, name: str) -> Optional[bool]:
        """Value of the field in the previously persisted mask, None for unknown fields."""
        if name not in self.field_map:
            return None
        old_mask = self.owner.get_old_attribute(self.attribute)
        old_values = parse_bitmask(old_mask, self.field_map.fields)
        return old_values[name]

    def after_find(self):
        logger = StructuredLogger(__name__, prefix="BitmaskBehavior.after_find()> ")
        self._values = parse_bitmask(self.bitmask, self.field_map.fields)
        logger.debug3(f"decoded {self.attribute}", bitmask=self.bitmask, values=self._values)

    def rebuild_mask(self) -> int:
        """
        Rebuild the owner's integer attribute from the decoded values.
        Unlike single flag writes, this drops any bits that no field owns.
        """
        bitmask = make_bitmask(self._values, self.field_map.fields)
        setattr(self.owner, self.attribute, bitmask)
        return bitmask

    def __repr__(self):
        return f"<BitmaskBehavior {self.attribute}={self._values!r}>"
