"""Test helpers for MedReminder tests.

    from tests.helpers import FakeDispatcher, InMemoryKeyValueStore, make_spec
"""

from tests.helpers.fakes import FakeDispatcher, InMemoryKeyValueStore
from tests.helpers.specs import make_record, make_spec

__all__ = [
    "FakeDispatcher",
    "InMemoryKeyValueStore",
    "make_record",
    "make_spec",
]
