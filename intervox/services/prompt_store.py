from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

from loguru import logger


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    """Nested JSON catalog of ``string.Template`` prompts.

    The file is re-read whenever its modification time changes, so prompts
    can be edited without restarting the service.
    """

    def __init__(self, path: Path):
        self.path = path
        self._tree: dict[str, Any] = {}
        self._version: int | None = None

    def tree(self) -> dict[str, Any]:
        version = self.path.stat().st_mtime_ns
        if version != self._version:
            tree = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(tree, dict):
                raise ValueError(f"Prompt catalog must be a JSON object: {self.path}")
            if self._version is not None:
                logger.info("Reloaded prompt catalog {}", self.path)
            self._tree, self._version = tree, version
        return self._tree

    def template(self, *path: str) -> Template:
        key = ".".join(path)
        node: Any = self.tree()
        for part in path:
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string: {key}")
        return Template(node)

    def has(self, *path: str) -> bool:
        try:
            self.template(*path)
        except (KeyError, TypeError):
            return False
        return True

    def render(self, *path: str, **values: Any) -> str:
        template = self.template(*path)
        try:
            return template.substitute(**values)
        except KeyError as exc:
            raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{'.'.join(path)}'") from exc


catalog = PromptCatalog(PROMPTS_PATH)


def has_prompt(*path: str) -> bool:
    return catalog.has(*path)


def render_prompt(*path: str, **values: Any) -> str:
    """Render the catalog entry at ``path``.

    Path segments are given separately so keys may contain dots or dashes,
    e.g. ``render_prompt("scraper", "sources", "code-hosting", name=...)``.
    """
    return catalog.render(*path, **values)
