from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from django.core.exceptions import ImproperlyConfigured

FieldSpec = Union[int, Tuple[int, ...], List]


def parse_bitmask(bitmask: Optional[int], fields: Mapping[str, int]) -> Dict[str, bool]:
    """
    Decode a bitmask into a name -> bool mapping, one entry per field.
    Bits that no field owns are simply not reported.
    """
    bitmask = int(bitmask or 0)
    values = {}
    for name, bit in fields.items():
        values[name] = bool(bitmask & bit)
    return values


def make_bitmask(values: Mapping[str, bool], fields: Mapping[str, int]) -> int:
    """
    Build a bitmask from a name -> bool mapping. Names that are not in
    `fields` are ignored, and only bits owned by `fields` end up in the result.
    """
    bitmask = 0
    for name, checked in values.items():
        if checked and name in fields:
            bitmask |= fields[name]
    return bitmask


def modify_bitmask(bitmask: Optional[int], bit: int, exists: bool) -> int:
    # set or clear one field's bits, everything else is left alone
    bitmask = int(bitmask or 0)
    return bitmask | bit if exists else bitmask & ~bit


def union_of_bits(fields: Mapping[str, int]) -> int:
    result = 0
    for bit in fields.values():
        result |= bit
    return result


class BitmaskFieldMap:
    """
    Field names with their bits and default values, parsed once from a
    configuration mapping:

        {
            'ban_option':          (OPT_BAN, True),    # default True
            'admin_option':        (OPT_ADMIN, False), # default False
            'is_confidant_option': (OPT_IS_CONFIDANT,),  # default False
            'email_option':        OPT_EMAIL,          # default False
        }

    No two fields may share a set bit. This is not checked here (see
    overlapping_bits()), but decoding and encoding only round-trip when it holds.
    """

    def __init__(self, config: Optional[Mapping[str, FieldSpec]]):
        if not config:
            raise ImproperlyConfigured('The bitmask "fields" mapping must be set.')

        fields: Dict[str, int] = {}
        defaults: Dict[str, bool] = {}
        for name, field in config.items():
            if isinstance(field, (tuple, list)):
                if not field or field[0] is None:
                    raise ImproperlyConfigured(f'The "{name}" field MUST have a bit mask.')
                fields[name] = int(field[0])
                defaults[name] = bool(field[1]) if len(field) > 1 and field[1] is not None else False
            else:
                if field is None:
                    raise ImproperlyConfigured(f'The "{name}" field MUST have a bit mask.')
                fields[name] = int(field)
                defaults[name] = False

        self._fields = MappingProxyType(fields)
        self._defaults = MappingProxyType(defaults)

    @property
    def fields(self) -> Mapping[str, int]:
        """Field name -> bit, read only."""
        return self._fields

    @property
    def defaults(self) -> Mapping[str, bool]:
        """Field name -> default value, read only. This is the value set before anything is loaded."""
        return self._defaults

    def __contains__(self, name) -> bool:
        return name in self._fields

    def __iter__(self):
        return iter(self._fields)

    def bit(self, name: str) -> int:
        return self._fields[name]

    def bits_for(self, names: Iterable[str]) -> int:
        mask = 0
        for name in names:
            if name not in self._fields:
                raise ImproperlyConfigured(f'Unknown bitmask field "{name}".')
            mask |= self._fields[name]
        return mask

    def overlapping_bits(self) -> List[Tuple[str, str]]:
        """Pairs of fields whose bits overlap. Empty for a well-formed map."""
        names = list(self._fields)
        pairs = []
        for i, first in enumerate(names):
            for second in names[i + 1:]:
                if self._fields[first] & self._fields[second]:
                    pairs.append((first, second))
        return pairs

    def __repr__(self):
        return f"<BitmaskFieldMap {dict(self._fields)!r}>"
