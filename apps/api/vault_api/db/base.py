"""Declarative base shared by every vault table."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    # Activity, alert and OTP expiry comparisons all assume timezone-aware UTC
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }
