"""
Catalog of example effect invocations, shipped as YAML package data.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from audioshop.effects import parse_effects
from audioshop.types import EffectChain


_CATALOG_PATH = Path(__file__).parent / "catalog.yaml"
SOX_EFFECTS_URL = "http://sox.sourceforge.net/sox.html#EFFECTS"


@dataclass(frozen=True)
class CatalogEntry:
    invocation: str
    description: str = ""

    @property
    def chain(self) -> EffectChain:
        return parse_effects(self.invocation.split())


@dataclass(frozen=True)
class Catalog:
    effects: tuple[CatalogEntry, ...]
    examples: tuple[str, ...]


def load_catalog(path: Path | None = None) -> Catalog:
    """Load the effect catalog from *path* (default: the bundled file)."""
    raw = (path or _CATALOG_PATH).read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    effects = tuple(
        CatalogEntry(
            invocation=str(item["invocation"]),
            description=str(item.get("description", "")),
        )
        for item in data.get("effects", [])
    )
    examples = tuple(str(e) for e in data.get("examples", []))
    return Catalog(effects=effects, examples=examples)


def format_effects(catalog: Catalog, describe: bool = False) -> str:
    lines = ["Available Effects:"]
    width = max((len(e.invocation) for e in catalog.effects), default=0)
    for entry in catalog.effects:
        if describe and entry.description:
            lines.append(f"  {entry.invocation:<{width}}   {entry.description}")
        else:
            lines.append(f"  {entry.invocation}")
    return "\n".join(lines)


def format_examples(catalog: Catalog) -> str:
    lines = ["Examples:"]
    lines.extend(f"  $ {example}" for example in catalog.examples)
    return "\n".join(lines)
