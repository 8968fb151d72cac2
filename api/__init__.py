"""API module for the Midtrans notification receiver."""

from .notification_api import create_app, NotificationAPI

__all__ = ['create_app', 'NotificationAPI']
