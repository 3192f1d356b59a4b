"""Trade file import: header validation, row parsing and type coercion."""

from tradelog.importer.normalizer import REQUIRED_COLUMNS, normalize_trades, parse_header

__all__ = ["REQUIRED_COLUMNS", "normalize_trades", "parse_header"]
