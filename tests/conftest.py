"""
Shared pytest fixtures for the bitmask field tests.

Configures Django before any model is imported and provides small host
records that implement the snapshot and error capabilities without a
database.
"""

import os
import sys
from typing import Any, Dict, List, Optional

import pytest

# Add the project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Configure Django settings before importing Django modules
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'BitmaskFields.settings')

import django
django.setup()

from BitmaskFieldsApp.bitmask import BitmaskFieldMap
from BitmaskFieldsApp.interfaces import ErrorSink, SnapshotSource


class FakeRecord(SnapshotSource, ErrorSink):
    """Plain host record: an integer attribute, an old value snapshot and an error list."""

    def __init__(self, options: int = 0, old_options: Optional[int] = None, fields: Dict[str, int] = None):
        self.options = options
        self.old_values = {'options': old_options}
        self.fields = fields or {}
        self.errors: List[Dict[str, Any]] = []

    def get_old_attribute(self, name):
        return self.old_values.get(name)

    def report(self, attribute, message, context):
        self.errors.append({'attribute': attribute, 'message': message, 'context': context})

    def get_bitmask_fields(self, attribute):
        return BitmaskFieldMap(self.fields)


def load_record(model_class, **values):
    """
    Build a model instance the way Django does when it reads a row.
    Columns that are not given get their field default.
    """
    values.setdefault('id', 1)
    fields = model_class._meta.concrete_fields
    field_names = [field.attname for field in fields]
    row = [values[field.attname] if field.attname in values else field.get_default() for field in fields]
    return model_class.from_db('default', field_names, row)


@pytest.fixture
def spam_field_map():
    return BitmaskFieldMap({'spam': (1, False), 'deleted': (2, False)})


@pytest.fixture
def fake_record():
    return FakeRecord()
