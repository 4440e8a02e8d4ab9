"""CLI output styling helpers.

- Green for success messages (with checkmark)
- Red for error messages (with cross)
"""

from __future__ import annotations

__all__ = [
    "style_error",
    "style_success",
]

import click


def style_success(message: str) -> str:
    """Style a success message with a checkmark.

    Example:
        >>> click.echo(style_success("Azure connectivity OK"))
        ✓ Azure connectivity OK
    """
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with a cross mark.

    Example:
        >>> click.echo(style_error("Missing AZURE_CLIENT_ID"), err=True)
        ✗ Missing AZURE_CLIENT_ID
    """
    return click.style(f"✗ {message}", fg="red")
