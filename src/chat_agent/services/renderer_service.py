import os
from datetime import date
from string import Template
from typing import Any


def _prompt_path(name: str) -> str:
    # Get the directory of this file and construct the path to the prompt
    current_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(current_dir, "..", "prompts", f"{name}.md")


def render_prompt(name: str, context: dict[str, Any] | None = None) -> str:
    """
    Render the system prompt `prompts/{name}.md`.

    `${placeholders}` are filled from `context`; None values read as "Not specified"
    and unknown placeholders are left as written. `${today}` defaults to the current date.
    """
    with open(_prompt_path(name), encoding="utf-8") as f:
        template = Template(f.read())

    values = {"today": date.today().isoformat()}
    for key, value in (context or {}).items():
        values[key] = "Not specified" if value is None else str(value)
    return template.safe_substitute(values)
