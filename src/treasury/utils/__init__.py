"""Utility functions for treasury."""

from treasury.utils.date_parser import parse_date
from treasury.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_amount"]
