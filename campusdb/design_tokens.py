"""UI design tokens.

Static, read-only tables consumed by rendering code: theme colors (light
and dark variants with identical keys), spacing scale, corner radii,
shadows, and transition timings.

Example:
    >>> from campusdb.design_tokens import ThemeMode, theme, SPACING
    >>> theme(ThemeMode.DARK)["accent_primary"]
    '#22C55E'
    >>> SPACING[4]
    '16px'
"""

from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType


class ThemeMode(StrEnum):
    LIGHT = "light"
    DARK = "dark"


_LIGHT = MappingProxyType(
    {
        # Surfaces
        "bg_primary": "#FAFAFA",
        "bg_secondary": "#F0F2F5",
        "bg_tertiary": "#FFFFFF",
        "bg_elevated": "#FFFFFF",
        # Text
        "text_primary": "#1A1A1A",
        "text_secondary": "#737373",
        "text_tertiary": "#A3A3A3",
        # Accents
        "accent_primary": "#16A34A",  # Green 600
        "accent_primary_hover": "#15803D",  # Green 700
        "accent_secondary": "#8B5CF6",  # Violet 500
        # Borders
        "border": "rgba(0, 0, 0, 0.08)",
        "border_strong": "rgba(0, 0, 0, 0.15)",
        # Status
        "success": "#22C55E",
        "warning": "#F59E0B",
        "error": "#EF4444",
        "info": "#3B82F6",
    }
)

_DARK = MappingProxyType(
    {
        "bg_primary": "#0A0A0A",
        "bg_secondary": "#1A1A1A",
        "bg_tertiary": "#262626",
        "bg_elevated": "#1F1F1F",
        "text_primary": "#F5F5F5",
        "text_secondary": "#A3A3A3",
        "text_tertiary": "#737373",
        "accent_primary": "#22C55E",  # Green 500
        "accent_primary_hover": "#16A34A",  # Green 600
        "accent_secondary": "#A78BFA",  # Violet 400
        "border": "rgba(255, 255, 255, 0.08)",
        "border_strong": "rgba(255, 255, 255, 0.15)",
        "success": "#22C55E",
        "warning": "#F59E0B",
        "error": "#EF4444",
        "info": "#3B82F6",
    }
)

COLORS: Mapping[ThemeMode, Mapping[str, str]] = MappingProxyType(
    {ThemeMode.LIGHT: _LIGHT, ThemeMode.DARK: _DARK}
)

SPACING: Mapping[int, str] = MappingProxyType(
    {
        0: "0px",
        1: "4px",
        2: "8px",
        3: "12px",
        4: "16px",
        5: "20px",
        6: "24px",
        8: "32px",
        10: "40px",
        12: "48px",
        16: "64px",
    }
)

RADIUS: Mapping[str, str] = MappingProxyType(
    {
        "none": "0",
        "sm": "4px",
        "md": "8px",
        "lg": "12px",
        "xl": "16px",
        "2xl": "24px",
        "full": "9999px",
    }
)

SHADOWS: Mapping[str, str] = MappingProxyType(
    {
        "sm": "0 1px 2px rgba(0,0,0,0.05)",
        "md": "0 4px 6px -1px rgba(0,0,0,0.07), 0 2px 4px -1px rgba(0,0,0,0.04)",
        "lg": "0 10px 15px -3px rgba(0,0,0,0.08), 0 4px 6px -2px rgba(0,0,0,0.04)",
        "xl": "0 20px 25px -5px rgba(0,0,0,0.08), 0 10px 10px -5px rgba(0,0,0,0.03)",
    }
)

TRANSITIONS: Mapping[str, str] = MappingProxyType(
    {
        "fast": "150ms ease",
        "normal": "200ms ease",
        "slow": "300ms ease",
        "spring": "300ms cubic-bezier(0.34, 1.56, 0.64, 1)",
    }
)


def theme(mode: ThemeMode | str = ThemeMode.LIGHT) -> Mapping[str, str]:
    """Return the color table for ``mode``.

    Raises:
        ValueError: If ``mode`` is not ``light`` or ``dark``
    """
    return COLORS[ThemeMode(mode)]


__all__ = ["COLORS", "RADIUS", "SHADOWS", "SPACING", "TRANSITIONS", "ThemeMode", "theme"]
