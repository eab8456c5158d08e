"""Buybox advisor: turn an operator's competencies and constraints into an acquisition strategy."""
