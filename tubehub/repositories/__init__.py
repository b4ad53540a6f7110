"""
Repository layer exports.

This module exports all database repositories for easy import.
"""
from tubehub.repositories import video_db_repository
from tubehub.repositories import engagement_db_repository
from tubehub.repositories import webhook_delivery_db_repository

__all__ = [
    'video_db_repository',
    'engagement_db_repository',
    'webhook_delivery_db_repository',
]
