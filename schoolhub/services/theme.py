"""
Tenant theming

Brand colors are stored as #RRGGBB and published to the presentation layer as
"H S% L%" strings in the --primary / --secondary / --accent variables, next to
the raw font family in --font-family.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional, Tuple
import math
import re

import structlog

from schoolhub.core.events import EventBus, TenantChanged
from schoolhub.models.tenant import SiteTheme

logger = structlog.get_logger(__name__)

_HEX_RE = re.compile(r"^#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

COLOR_VARIABLES: Dict[str, str] = {
    "primary_color": "--primary",
    "secondary_color": "--secondary",
    "accent_color": "--accent",
}
FONT_VARIABLE = "--font-family"


class InvalidColorError(ValueError):
    """Color string is not #RRGGBB"""


def round_half_up(value: float) -> int:
    """0.5 always rounds away from zero for the non-negative values used here"""
    return int(math.floor(value + 0.5))


def hex_to_hsl(color: str) -> Tuple[int, int, int]:
    """
    Convert #RRGGBB to (hue degrees, saturation %, lightness %).

    Channels are normalized to [0, 1]. Hue comes from whichever channel is the
    maximum (red checked first, then green, then blue) and is 0 for achromatic
    colors. All three results are rounded half-up to integers; a hue that rounds
    to 360 is reported as 0.
    """
    match = _HEX_RE.match(color or "")
    if not match:
        raise InvalidColorError(f"Invalid color {color!r}, expected #RRGGBB")

    r, g, b = (int(part, 16) / 255 for part in match.groups())
    high = max(r, g, b)
    low = min(r, g, b)
    lightness = (high + low) / 2

    if high == low:
        hue = saturation = 0.0
    else:
        d = high - low
        saturation = d / (2 - high - low) if lightness > 0.5 else d / (high + low)
        if high == r:
            hue = (g - b) / d + (6 if g < b else 0)
        elif high == g:
            hue = (b - r) / d + 2
        else:
            hue = (r - g) / d + 4
        hue /= 6

    return (
        round_half_up(hue * 360) % 360,
        round_half_up(saturation * 100),
        round_half_up(lightness * 100),
    )


def format_hsl(hsl: Tuple[int, int, int]) -> str:
    h, s, l = hsl
    return f"{h} {s}% {l}%"


def hex_to_hsl_string(color: str) -> str:
    return format_hsl(hex_to_hsl(color))


class PresentationSurface:
    """Named string variables read by the rendering layer, plus the document font"""

    def __init__(self):
        self._variables: Dict[str, str] = {}
        self.document_font: Optional[str] = None

    def set_property(self, name: str, value: str) -> None:
        self._variables[name] = value

    def get_property(self, name: str) -> Optional[str]:
        return self._variables.get(name)

    def clear(self) -> None:
        self._variables.clear()
        self.document_font = None

    @property
    def variables(self) -> Dict[str, str]:
        return dict(self._variables)

    def to_css(self) -> str:
        lines = [":root {"]
        lines.extend(f"  {name}: {value};" for name, value in self._variables.items())
        lines.append("}")
        if self.document_font:
            font = self.document_font
            if " " in font and not font.startswith(("'", '"')):
                font = f"'{font}'"
            lines.append(f"body {{ font-family: {font}; }}")
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class SiteThemeConfig:
    name: str
    hero_style: str
    card_style: str
    button_style: str
    layout_style: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


SITE_THEMES: Dict[SiteTheme, SiteThemeConfig] = {
    SiteTheme.MODERN: SiteThemeConfig(
        name="Modern",
        hero_style="bg-gradient-to-br from-primary/10 to-secondary/10",
        card_style="bg-card rounded-xl shadow-lg border-0",
        button_style="rounded-full",
        layout_style="space-y-12",
    ),
    SiteTheme.MINIMAL: SiteThemeConfig(
        name="Minimal",
        hero_style="bg-background",
        card_style="bg-card rounded-lg border",
        button_style="rounded-md",
        layout_style="space-y-8",
    ),
    SiteTheme.CLASSIC: SiteThemeConfig(
        name="Classic",
        hero_style="bg-card",
        card_style="bg-background rounded-md border-2",
        button_style="rounded-sm",
        layout_style="space-y-6",
    ),
}


def site_theme_config(theme: Optional[SiteTheme]) -> SiteThemeConfig:
    return SITE_THEMES.get(theme or SiteTheme.MODERN, SITE_THEMES[SiteTheme.MODERN])


class ThemeResolver:
    """Writes a tenant's branding into a presentation surface"""

    def __init__(self, surface: Optional[PresentationSurface] = None):
        self.surface = surface or PresentationSurface()
        self._bus: Optional[EventBus] = None

    def apply_theme(self, tenant) -> None:
        """
        Idempotent. A malformed color leaves the previously applied value of that
        variable in place and logs a warning instead of raising. No tenant
        clears the surface so a previous school's branding is not served.
        """
        if tenant is None:
            self.surface.clear()
            logger.debug("tenant_theme_cleared")
            return

        for field_name, variable in COLOR_VARIABLES.items():
            color = getattr(tenant, field_name, None)
            try:
                self.surface.set_property(variable, hex_to_hsl_string(color))
            except InvalidColorError:
                logger.warning(
                    "invalid_brand_color_skipped",
                    tenant_id=str(getattr(tenant, "id", "")),
                    field=field_name,
                    value=color,
                    kept=self.surface.get_property(variable),
                )

        font_family = getattr(tenant, "font_family", None)
        if font_family:
            self.surface.set_property(FONT_VARIABLE, font_family)
            self.surface.document_font = font_family

        logger.debug("tenant_theme_applied", tenant_id=str(getattr(tenant, "id", "")))

    async def _on_tenant_changed(self, event: TenantChanged) -> None:
        self.apply_theme(event.tenant)

    def bind(self, bus: EventBus) -> None:
        """Re-apply on every tenant snapshot the store publishes"""
        self.unbind()
        bus.subscribe(TenantChanged.__name__, self._on_tenant_changed)
        self._bus = bus

    def unbind(self) -> None:
        if self._bus is not None:
            self._bus.unsubscribe(TenantChanged.__name__, self._on_tenant_changed)
            self._bus = None
