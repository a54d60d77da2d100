"""tasque: local, file-persisted task tracker with dependency-aware readiness."""

from tasque.config import VERSION

__version__ = VERSION
