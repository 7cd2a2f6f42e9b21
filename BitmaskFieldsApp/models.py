from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from django.core.exceptions import FieldDoesNotExist, ImproperlyConfigured, ValidationError
from django.db import models
from django.forms import BooleanField

from .behavior import BitmaskBehavior
from .bitmask import BitmaskFieldMap
from .config import default_app_config
from .interfaces import ErrorSink, SnapshotSource
from .structured_logger import StructuredLogger


def _flag_property(flags_name: str, field_name: str) -> property:
    def getter(self):
        return getattr(self, flags_name).get(field_name)

    def setter(self, value):
        getattr(self, flags_name).set(field_name, value)

    return property(getter, setter, doc=f"Bitmask flag '{field_name}' stored in {flags_name}")


class BitmaskFlags:
    """
    Declares named boolean flags packed into an integer model field:

        class User(BitmaskModelMixin):
            OPT_SPAM = 1 << 0
            OPT_DELETED = 1 << 1

            options = models.IntegerField(default=0)
            flags = BitmaskFlags({
                'spam_option': OPT_SPAM,
                'deleted_option': (OPT_DELETED, False),
            })  # attribute='options' by default

        user.spam_option = True   # user.options |= User.OPT_SPAM
        user.spam_option = False  # user.options &= ~User.OPT_SPAM
        user.flags                # the record's BitmaskBehavior

    `fields` may also be the name of a field map from the bitmask config.
    """

    def __init__(self, fields: Union[str, Mapping[str, Any]], attribute: Optional[str] = None):
        logger = StructuredLogger(__name__, prefix="BitmaskFlags.__init__()> ")
        if isinstance(fields, str):
            fields = default_app_config.get_field_map(fields)
        self.field_map = BitmaskFieldMap(fields)
        self.attribute = attribute or default_app_config.DEFAULT_BITMASK_ATTRIBUTE
        for first, second in self.field_map.overlapping_bits():
            logger.warning(f"bitmask fields {first} and {second} share bits, values will not round-trip",
                           attribute=self.attribute)
        self.name = None
        self.cache_name = None

    def contribute_to_class(self, cls, name):
        self.name = name
        self.cache_name = f"_{name}_behavior"
        setattr(cls, name, self)
        for field_name in self.field_map:
            setattr(cls, field_name, _flag_property(name, field_name))

    def __get__(self, instance, owner):
        if instance is None:
            return self
        behavior = instance.__dict__.get(self.cache_name)
        if behavior is None:
            behavior = BitmaskBehavior(instance, self.field_map, self.attribute)
            instance.__dict__[self.cache_name] = behavior
        return behavior

    def __repr__(self):
        return f"<BitmaskFlags {self.name} on {self.attribute}>"


class BitmaskModelMixin(models.Model, SnapshotSource, ErrorSink):
    """
    Model base that keeps a snapshot of the loaded values, decodes the
    bitmask flags after each load and runs `bitmask_rules` in clean().
    """

    bitmask_rules: Tuple[Any, ...] = ()

    class Meta:
        abstract = True

    @classmethod
    def bitmask_flags(cls) -> List[BitmaskFlags]:
        found = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, BitmaskFlags):
                    found[name] = value
        return list(found.values())

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._take_snapshot()
        instance._decode_flags()
        return instance

    def refresh_from_db(self, using=None, fields=None, **kwargs):
        super().refresh_from_db(using=using, fields=fields, **kwargs)
        attnames = self._attnames(fields) if fields is not None else None
        self._take_snapshot(attnames)
        self._decode_flags(attnames)

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        update_fields = kwargs.get('update_fields')
        self._take_snapshot(self._attnames(update_fields) if update_fields is not None else None)

    def _attnames(self, names: Iterable[str]) -> Set[str]:
        attnames = set()
        for name in names:
            try:
                attnames.add(self._meta.get_field(name).attname)
            except FieldDoesNotExist:
                continue
        return attnames

    def _take_snapshot(self, attnames: Optional[Set[str]] = None):
        # only columns actually present on the instance, deferred ones stay unknown
        loaded = {
            field.attname: self.__dict__[field.attname]
            for field in self._meta.concrete_fields
            if field.attname in self.__dict__ and (attnames is None or field.attname in attnames)
        }
        if attnames is None or getattr(self, '_loaded_values', None) is None:
            self._loaded_values = loaded
        else:
            self._loaded_values.update(loaded)

    def _decode_flags(self, attnames: Optional[Set[str]] = None):
        # reading a deferred mask column would load it with an extra query
        deferred = self.get_deferred_fields()
        for behavior in self.bitmask_behaviors():
            if behavior.attribute in deferred:
                continue
            if attnames is not None and behavior.attribute not in attnames:
                continue
            behavior.after_find()

    def bitmask_behaviors(self) -> List[BitmaskBehavior]:
        return [getattr(self, flags.name) for flags in type(self).bitmask_flags()]

    def get_bitmask_fields(self, attribute: str) -> BitmaskFieldMap:
        fields = {}
        for flags in type(self).bitmask_flags():
            if flags.attribute == attribute:
                fields.update(flags.field_map.fields)
        if not fields:
            raise ImproperlyConfigured(f'{type(self).__name__} has no bitmask flags on "{attribute}".')
        return BitmaskFieldMap(fields)

    def get_old_attribute(self, name: str) -> Optional[Any]:
        loaded_values = getattr(self, '_loaded_values', None)
        if loaded_values is None:
            return None
        return loaded_values.get(name)

    def get_old_bit(self, name: str) -> Optional[bool]:
        for behavior in self.bitmask_behaviors():
            if behavior.has_field(name):
                return behavior.get_old_bit(name)
        return None

    @property
    def bitmask_errors(self) -> Dict[str, List[ValidationError]]:
        if not hasattr(self, '_bitmask_errors'):
            self._bitmask_errors = {}
        return self._bitmask_errors

    def report(self, attribute: str, message: str, context: Dict[str, Any]):
        self.bitmask_errors.setdefault(attribute, []).append(
            ValidationError(message, code='bitmask', params=context))

    def validate_bitmask(self) -> bool:
        self._bitmask_errors = {}
        results = [rule.validate(self) for rule in self.bitmask_rules]
        return all(results)

    def clean(self):
        super().clean()
        if not self.validate_bitmask():
            raise ValidationError(self.bitmask_errors)

    def get_attribute(self, name: str) -> Any:
        for behavior in self.bitmask_behaviors():
            if behavior.has_field(name):
                return behavior.get(name)
        return getattr(self, name)

    def _is_model_field(self, name: str) -> bool:
        try:
            field = self._meta.get_field(name)
        except FieldDoesNotExist:
            return name in {field.attname for field in self._meta.concrete_fields}
        return field.concrete

    def set_attribute(self, name: str, value: Any):
        """Set a bitmask flag or a concrete model field. Anything else raises AttributeError."""
        for behavior in self.bitmask_behaviors():
            if behavior.has_field(name):
                behavior.set(name, value)
                return
        if not self._is_model_field(name):
            raise AttributeError(f"{type(self).__name__} has no field or bitmask flag '{name}'")
        setattr(self, name, value)

    def assign(self, data: Mapping[str, Any], safe: Optional[Iterable[str]] = None):
        """
        Bulk assignment, e.g. from a submitted form. Flag values go through
        form boolean parsing, so "0" and "false" clear a flag. When `safe` is
        given, other names are skipped. Names that are neither a model field
        nor a flag are always skipped.
        """
        logger = StructuredLogger(__name__, prefix="BitmaskModelMixin.assign()> ")
        safe = set(safe) if safe is not None else None
        boolean_field = BooleanField(required=False)
        for name, value in data.items():
            if safe is not None and name not in safe:
                logger.warning(f"skipping unsafe attribute {name}", model=type(self).__name__)
                continue
            if any(behavior.has_field(name) for behavior in self.bitmask_behaviors()):
                value = boolean_field.to_python(value)
            elif not self._is_model_field(name):
                logger.warning(f"skipping unknown attribute {name}", model=type(self).__name__)
                continue
            self.set_attribute(name, value)
