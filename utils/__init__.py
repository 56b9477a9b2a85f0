"""Shared helpers: responses, dates, validation, decorators."""
