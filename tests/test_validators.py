"""
Unit tests for the bitmask change validators.

Tests cover:
- Diff computation
- Field-name based allowed masks
- Literal allowed masks
- Error reporting and messages
"""

import pytest
from django.core.exceptions import ImproperlyConfigured

from BitmaskFieldsApp.structured_logger import start_message_capture, stop_message_capture
from BitmaskFieldsApp.validators import (
    BitmaskFieldsValidator, BitmaskValidator, bitmask_diff, is_change_allowed
)

from tests.conftest import FakeRecord


FIELDS = {'spam': 0b0001, 'deleted': 0b0010, 'admin': 0b0100}


class TestDiff:
    """Tests for the pure diff functions."""

    def test_diff(self):
        assert bitmask_diff(0b0111, 0b0101) == 0b0010

    def test_missing_old_mask_counts_as_zero(self):
        assert bitmask_diff(0b0110, None) == 0b0110

    def test_allowed_change(self):
        assert is_change_allowed(0b0111, 0b0101, 0b0010)

    def test_disallowed_change(self):
        assert not is_change_allowed(0b0111, 0b0101, 0b0001)

    def test_no_change_is_always_allowed(self):
        assert is_change_allowed(0b1111, 0b1111, 0)


class TestBitmaskValidator:
    """Tests for the literal mask variant."""

    def test_passes_when_changed_bits_are_allowed(self):
        record = FakeRecord(options=0b0111, old_options=0b0101)
        assert BitmaskValidator('options', mask=0b0010).validate(record)
        assert record.errors == []

    def test_fails_when_changed_bits_are_not_allowed(self):
        record = FakeRecord(options=0b0111, old_options=0b0101)
        assert not BitmaskValidator('options', mask=0b0001).validate(record)
        assert len(record.errors) == 1
        error = record.errors[0]
        assert error['attribute'] == 'options'
        assert error['context'] == {'mask': 0b0001, 'attribute': 'options'}
        assert str(error['message']) % error['context'] == 'Only "1" bit mask in options field can be modified'

    def test_failure_does_not_touch_record(self):
        record = FakeRecord(options=0b0111, old_options=0b0101)
        BitmaskValidator('options', mask=0).validate(record)
        assert record.options == 0b0111

    def test_new_record_only_allowed_bits_may_be_set(self):
        """Without an old mask, every set bit counts as a change."""
        validator = BitmaskValidator('options', mask=0b0010)
        assert validator.validate(FakeRecord(options=0b0010))
        assert not validator.validate(FakeRecord(options=0b0011))

    def test_custom_message(self):
        record = FakeRecord(options=1)
        BitmaskValidator('options', mask=0, message="nope %(mask)s").validate(record)
        assert record.errors[0]['message'] == "nope %(mask)s"

    def test_rejection_is_logged(self):
        record = FakeRecord(options=0b0100, old_options=0)
        start_message_capture()
        try:
            BitmaskValidator('options', mask=0b0001).validate(record)
        finally:
            messages = stop_message_capture()
        assert any("rejected change of options" in message for message in messages)


class TestBitmaskFieldsValidator:
    """Tests for the field-name variant."""

    def test_passes_when_only_owned_fields_change(self):
        record = FakeRecord(options=0b0011, old_options=0b0000, fields=FIELDS)
        assert BitmaskFieldsValidator(['spam', 'deleted']).validate(record)
        assert record.errors == []

    def test_fails_when_other_field_changes(self):
        record = FakeRecord(options=0b0101, old_options=0b0000, fields=FIELDS)
        assert not BitmaskFieldsValidator(['spam', 'deleted']).validate(record)
        error = record.errors[0]
        assert error['attribute'] == 'options'
        assert error['context']['names'] == 'spam, deleted'
        assert error['context']['mask'] == 0b0011
        assert str(error['message']) % error['context'] == 'Only "spam, deleted" fields can be modified'

    def test_clearing_a_bit_is_a_change(self):
        record = FakeRecord(options=0b0000, old_options=0b0100, fields=FIELDS)
        assert not BitmaskFieldsValidator(['spam']).validate(record)

    def test_unchanged_foreign_bits_are_fine(self):
        record = FakeRecord(options=0b1000_0101, old_options=0b1000_0100, fields=FIELDS)
        assert BitmaskFieldsValidator(['spam']).validate(record)

    def test_default_attribute(self):
        assert BitmaskFieldsValidator(['spam']).attribute == 'options'

    def test_unknown_field_is_a_configuration_error(self):
        record = FakeRecord(options=1, fields=FIELDS)
        with pytest.raises(ImproperlyConfigured):
            BitmaskFieldsValidator(['ghost']).validate(record)

    def test_needs_names(self):
        with pytest.raises(ImproperlyConfigured):
            BitmaskFieldsValidator([])
