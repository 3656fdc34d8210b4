"""Shared types for the csvimp package."""

Value = str | bytes | None
Params = dict[str, Value]
