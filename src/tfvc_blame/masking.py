from __future__ import annotations


def mask(text: str) -> str:
    """Hide the middle of a secret, keeping a tenth of it at each end."""
    plain = len(text) // 10
    if plain == 0:
        return "***"
    return f"{text[:plain]}***{text[len(text) - plain:]}"
