"""
Core Django project package.
Loads Celery app for storage maintenance tasks.
"""

from .celery import app as celery_app

__all__ = ('celery_app',)
