"""
Theme records: built-in themes, user themes saved by name, CSS rendering.

Themes are inert configuration. Saving a theme with an existing name
overwrites it; the name is the only identity.
"""
import json
import re
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from . import storage as keys
from .storage import Storage

DEFAULT_COLORS: Dict[str, str] = {
    "--background": "0 0% 100%",
    "--foreground": "240 10% 3.9%",
    "--card": "0 0% 100%",
    "--card-foreground": "240 10% 3.9%",
    "--popover": "0 0% 100%",
    "--popover-foreground": "240 10% 3.9%",
    "--primary": "262.1 83.3% 57.8%",
    "--primary-foreground": "210 20% 98%",
    "--secondary": "240 4.8% 95.9%",
    "--secondary-foreground": "240 5.9% 10%",
    "--muted": "240 4.8% 95.9%",
    "--muted-foreground": "240 3.8% 46.1%",
    "--accent": "240 4.8% 95.9%",
    "--accent-foreground": "240 5.9% 10%",
    "--destructive": "0 84.2% 60.2%",
    "--destructive-foreground": "0 0% 98%",
    "--border": "240 5.9% 90%",
    "--input": "240 5.9% 90%",
    "--ring": "262.1 83.3% 57.8%",
}

COLOR_DESCRIPTIONS: Dict[str, str] = {
    "--background": "Main background color of the application",
    "--foreground": "Main text color on the background",
    "--card": "Background color for card components",
    "--card-foreground": "Text color for card components",
    "--popover": "Background color for popover components",
    "--popover-foreground": "Text color for popover components",
    "--primary": "Primary brand color for buttons and interactive elements",
    "--primary-foreground": "Text color on primary-colored elements",
    "--secondary": "Secondary color for less prominent elements",
    "--secondary-foreground": "Text color on secondary-colored elements",
    "--muted": "Muted background color for subtle UI elements",
    "--muted-foreground": "Text color on muted backgrounds",
    "--accent": "Accent color for highlighting elements",
    "--accent-foreground": "Text color on accent-colored elements",
    "--destructive": "Color for destructive actions like delete",
    "--destructive-foreground": "Text color on destructive elements",
    "--border": "Color for borders and dividers",
    "--input": "Border color for input elements",
    "--ring": "Focus ring color for interactive elements",
}


class ThemeData(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    author: str = ""
    description: str = ""
    colors: Dict[str, str] = {}


class ThemeSummary(BaseModel):
    id: str
    name: str
    description: str
    author: str
    isCustom: bool = False


DEFAULT_THEME = ThemeData(
    name="New Theme",
    author="",
    description="A custom theme for MiKnow",
    colors=DEFAULT_COLORS,
)

DEFAULT_THEMES: List[ThemeSummary] = [
    ThemeSummary(id="light", name="Light", description="Default light theme", author="MiKnow"),
    ThemeSummary(id="dark", name="Dark", description="Default dark theme", author="MiKnow"),
    ThemeSummary(
        id="obsidian",
        name="Obsidian",
        description="Inspired by Obsidian.md's default theme",
        author="MiKnow",
    ),
    ThemeSummary(id="nord", name="Nord", description="A calm, arctic-inspired theme", author="Community"),
    ThemeSummary(
        id="solarized",
        name="Solarized",
        description="Ethan Schoonover's Solarized theme",
        author="Community",
    ),
]


DEFAULT_ACTIVE_THEME = "light"


def is_builtin_theme(theme_id: str) -> bool:
    return any(t.id == theme_id for t in DEFAULT_THEMES)


def theme_slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def theme_to_css(theme: ThemeData) -> str:
    """Render the theme's variables as :root and .dark blocks."""
    declarations = "".join(f"  {name}: {value};\n" for name, value in theme.colors.items())
    return f":root {{\n{declarations}}}\n\n.dark {{\n{declarations}}}"


class ThemeLibrary:
    """User themes stored as a JSON array keyed by name."""

    def __init__(self, store: Storage):
        self.store = store

    def _load(self) -> List[dict]:
        saved = self.store.get_json(keys.THEMES_KEY, [])
        return [t for t in saved if isinstance(t, dict) and t.get("name")] if isinstance(saved, list) else []

    def list_custom(self) -> List[ThemeData]:
        return [ThemeData.model_validate(t) for t in self._load()]

    def get(self, name: str) -> Optional[ThemeData]:
        for theme in self.list_custom():
            if theme.name == name:
                return theme
        return None

    def save(self, theme: ThemeData) -> ThemeData:
        """Insert or overwrite the theme with the same name."""
        saved = self._load()
        record = theme.model_dump()
        for index, existing in enumerate(saved):
            if existing.get("name") == theme.name:
                saved[index] = record
                break
        else:
            saved.append(record)
        self.store.set_json(keys.THEMES_KEY, saved)
        return theme

    def list_all(self) -> List[ThemeSummary]:
        """Built-in themes followed by custom ones; customs never shadow a built-in id."""
        combined = list(DEFAULT_THEMES)
        seen = {t.id for t in combined}
        for theme in self.list_custom():
            theme_id = theme_slug(theme.name)
            if theme_id in seen:
                continue
            seen.add(theme_id)
            combined.append(ThemeSummary(
                id=theme_id,
                name=theme.name,
                description=theme.description or "Custom theme",
                author=theme.author or "User",
                isCustom=True,
            ))
        return combined

    def delete(self, theme_id: str) -> None:
        """
        Remove a custom theme by id. Deleting the active theme switches back to light.

        Raises:
            ValueError: If the id is a built-in theme
            LookupError: If no custom theme has the id
        """
        if is_builtin_theme(theme_id):
            raise ValueError(f"Built-in theme '{theme_id}' cannot be deleted")

        saved = self._load()
        remaining = [t for t in saved if theme_slug(t["name"]) != theme_id]
        if len(remaining) == len(saved):
            raise LookupError(f"Theme '{theme_id}' not found")
        self.store.set_json(keys.THEMES_KEY, remaining)

        if self.get_active() == theme_id:
            self.store.set(keys.ACTIVE_THEME_KEY, DEFAULT_ACTIVE_THEME)

    def export(self, name: str) -> Tuple[str, str]:
        """Return (filename, JSON text) for a saved theme."""
        theme = self.get(name)
        if theme is None:
            raise ValueError(f"Theme '{name}' not found")
        return f"{theme_slug(theme.name)}.json", json.dumps(theme.model_dump(), indent=2)

    def get_active(self) -> str:
        return self.store.get(keys.ACTIVE_THEME_KEY) or DEFAULT_ACTIVE_THEME

    def set_active(self, theme_id: str) -> str:
        if theme_id not in {t.id for t in self.list_all()}:
            raise ValueError(f"Theme '{theme_id}' not found")
        self.store.set(keys.ACTIVE_THEME_KEY, theme_id)
        return theme_id
