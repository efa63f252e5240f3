# file: puckhub_app/exceptions.py
"""Domain exceptions raised by the services.

Missing rows surface as the model's own ``DoesNotExist``; only rule
violations detected before a mutation get a dedicated type here.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError


class PreconditionFailed(ValidationError):
    """Operation is not allowed in the current state of the game or scope.

    Subclasses :class:`~django.core.exceptions.ValidationError` so that admin
    views and forms can show the (Czech) message without special handling.
    """
