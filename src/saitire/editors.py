from __future__ import annotations

import random
from pathlib import Path
from typing import Any

import yaml

from .config import ConfigError
from .models import CATEGORIES, Editor

DEFAULT_EDITORS: tuple[Editor, ...] = (
    Editor(
        id="politiek",
        name="Henk Verhoef",
        role="Politiek verslaggever",
        categories=["politiek", "binnenland"],
        voice="Droog en procedureel, citeert nota's alsof het poëzie is.",
        signature_moves=["Eindigt met een motie die niemand heeft gelezen."],
        taboos=["Geen persoonlijke aanvallen op uiterlijk."],
        catchphrases=["Het kabinet beraadt zich."],
    ),
    Editor(
        id="tech",
        name="Sanne Bakker",
        role="Techredacteur",
        categories=["tech", "lifestyle"],
        voice="Enthousiast over elke update, ook als alles kapot gaat.",
        signature_moves=["Legt een storing uit als nieuwe feature."],
        taboos=["Geen jargon zonder grap erachter."],
        catchphrases=["Dit is geen bug."],
    ),
    Editor(
        id="buitenland",
        name="Pieter de Wit",
        role="Correspondent buitenland",
        categories=["buitenland"],
        voice="Diplomatiek vaag, vergelijkt alles met Nederland.",
        signature_moves=["Sluit af met een Nederlandse tegenhanger die nog erger is."],
        taboos=["Geen spot met slachtoffers van conflicten."],
    ),
    Editor(
        id="cultuur",
        name="Lotte Jansen",
        role="Cultuur en sport",
        categories=["cultuur", "sport"],
        voice="Recenseert alles, ook de rij bij de kassa.",
        signature_moves=["Geeft sterren aan dingen die geen sterren verdienen."],
        taboos=["Geen spot met blessures."],
        catchphrases=["Vier sterren, met tegenzin."],
    ),
)


def load_editors(path: str | None) -> list[Editor]:
    if not path:
        return list(DEFAULT_EDITORS)
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigError(f"editors file not found: {path}")
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid yaml in {path}: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("editors")
    if not isinstance(data, list) or not data:
        raise ConfigError("editors file must contain a non-empty list of editors")
    return [_editor_from_dict(item, index) for index, item in enumerate(data)]


def _string_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"editor.{field_name} must be a list")
    return [str(item).strip() for item in value if str(item).strip()]


def _editor_from_dict(item: Any, index: int) -> Editor:
    if not isinstance(item, dict):
        raise ConfigError(f"editors[{index}] must be a mapping")
    editor_id = str(item.get("id") or "").strip()
    name = str(item.get("name") or "").strip()
    if not editor_id or not name:
        raise ConfigError(f"editors[{index}] requires id and name")
    categories = _string_list(item.get("categories"), "categories")
    unknown = [category for category in categories if category not in CATEGORIES]
    if unknown:
        raise ConfigError(f"editors[{index}] has unknown categories: {unknown}")
    return Editor(
        id=editor_id,
        name=name,
        role=str(item.get("role") or "Redacteur").strip(),
        categories=categories,
        voice=str(item.get("voice") or "").strip(),
        signature_moves=_string_list(item.get("signature_moves"), "signature_moves"),
        taboos=_string_list(item.get("taboos"), "taboos"),
        catchphrases=_string_list(item.get("catchphrases"), "catchphrases"),
    )


def pick_editor_for_category(
    editors: list[Editor], category: str, rng: random.Random
) -> Editor:
    if not editors:
        raise ValueError("no_editors_configured")
    eligible = [editor for editor in editors if category in editor.categories]
    return rng.choice(eligible or editors)
