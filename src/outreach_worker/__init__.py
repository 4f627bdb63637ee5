"""Celery worker running scheduled follow-up passes."""
