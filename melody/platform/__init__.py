"""Platform helpers: subprocess execution and filesystem writes."""

from melody.platform.files import atomic_write_text
from melody.platform.process import ProcessError, run

__all__ = ["ProcessError", "atomic_write_text", "run"]
