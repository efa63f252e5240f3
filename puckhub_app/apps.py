# file: puckhub_app/apps.py
"""App configuration for the PuckHub league application.

This module defines :class:`PuckhubAppConfig`, the Django ``AppConfig`` that
registers the app, configures default model primary keys and connects the
signal handlers of :mod:`puckhub_app.signals`.
"""

from __future__ import annotations

from django.apps import AppConfig


# --- AppConfig -------------------------------------------------------------

class PuckhubAppConfig(AppConfig):
    """App registration and defaults for ``puckhub_app``.

    ``ready()`` imports the signal module so that score, standings and season
    statistics recalculation hooks are active for every entry point (admin,
    services, management commands).
    """

    default_auto_field: str = "django.db.models.BigAutoField"
    name: str = "puckhub_app"
    verbose_name: str = "Liga"

    def ready(self) -> None:
        """Connect model signal handlers."""
        from . import signals  # noqa: F401
