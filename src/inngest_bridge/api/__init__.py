"""Webhook API layer."""

from .controller import WebhookController

__all__ = ["WebhookController"]
