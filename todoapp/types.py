"""Enums and type aliases for the todo app."""

from enum import StrEnum


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecurrencePattern(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CeremonyFlow(StrEnum):
    REGISTRATION = "registration"
    AUTHENTICATION = "authentication"
