from __future__ import annotations
from datetime import date
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

_env: Environment | None = None


def _money(value: Any) -> str:
    return f"{float(value or 0):.2f}"


def _num(value: Any) -> str:
    return f"{float(value or 0):g}"


def _day(value: Any) -> str:
    # 10/18/2026, sans zéros de tête
    if not isinstance(value, date):
        return str(value or "")
    return f"{value.month}/{value.day}/{value.year}"


def environment() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            undefined=StrictUndefined,
        )
        _env.filters.update(money=_money, num=_num, day=_day)
    return _env


def render(template: str, **ctx: Any) -> str:
    return environment().get_template(template).render(**ctx).strip()
