"""Shared utility helpers."""

from vault_api.utils.datetime_utils import ensure_utc, utcnow, whole_days_between

__all__ = ["ensure_utc", "utcnow", "whole_days_between"]
