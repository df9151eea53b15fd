"""Error alert evaluation and notification dispatch engine.

Submodules are imported explicitly (``error_alerting.alerting.engine``,
``error_alerting.api.main``); importing the package has no side effects.
"""

__version__ = "0.1.0"

__all__ = ["config", "alerting", "models", "tasks"]
