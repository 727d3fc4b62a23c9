"""Jinja2 templates for user-facing text.

StrictUndefined ensures missing variables blow up immediately instead of
silently rendering empty strings.
"""

from __future__ import annotations

from typing import Any

import jinja2

_ENV = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)

CONFIRM_DELETE = """\
Delete expression from history?

{{ expression[:100] }}{% if expression | length > 100 %}...{% endif %}"""

HISTORY_LISTING = """\
{% for entry in entries %}
{{ '*' if entry.is_favorite else ' ' }} {% if entry.display_name %}[{{ entry.display_name }}] {% endif %}{{ entry.expression | replace('\\n', ' ') }}
{% else %}
{{ 'No matching history found.' if filtered else 'No history yet. Save expressions to see them here.' }}
{% endfor %}
"""


def render_template(template_str: str, variables: dict[str, Any]) -> str:
    """Render a Jinja2 template string with *variables* as top-level names.

    Raises:
        jinja2.UndefinedError: If the template references a variable
            that doesn't exist in *variables*.
    """
    template = _ENV.from_string(template_str)
    return template.render(**variables)


def confirm_delete_text(expression: str) -> str:
    return render_template(CONFIRM_DELETE, {"expression": expression})


def history_listing(entries: list[Any], filtered: bool = False) -> str:
    return render_template(HISTORY_LISTING, {"entries": entries, "filtered": filtered})
