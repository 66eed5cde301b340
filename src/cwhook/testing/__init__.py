"""
Testing utilities for code that ships logs through a CloudWatch hook.

Pytest fixtures require the testing extra: ``pip install cwhook[testing]``
and ``pytest_plugins = ("cwhook.testing.fixtures",)``.

Example:
    from cwhook import create_hook
    from cwhook.testing import FakeLogStreamBackend, create_log_entry

    backend = FakeLogStreamBackend()
    hook = await create_hook("group", "stream", 0, backend)
    await hook.fire(create_log_entry("hello"))
    assert backend.calls[0].sequence_token is None
"""

from .backends import FakeLogStreamBackend, PutCall
from .factories import create_entries, create_log_entry

__all__ = [
    "FakeLogStreamBackend",
    "PutCall",
    "create_entries",
    "create_log_entry",
]
