"""Canonical text renderers for synced sources.

Each renderer is a pure ``record -> text`` function with fixed field order and
Portuguese labels matching the storefront. Blank fields are dropped before
joining; a record with nothing left renders to ``None`` and is not synced.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import re
from typing import Any

from bs4 import BeautifulSoup


# Policy bodies at or below this length are placeholders, not policies.
MIN_POLICY_CHARS = 10

POLICY_FIELDS: tuple[tuple[str, str], ...] = (
    ("return_policy", "Política de Trocas e Devoluções"),
    ("shipping_policy", "Política de Frete"),
    ("privacy_policy", "Política de Privacidade"),
    ("terms_of_service", "Termos de Serviço"),
)

_WHITESPACE_RE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


@dataclass(frozen=True)
class PolicyText:
    key: str
    title: str
    content: str


def clean_text(value: Any) -> str:
    """Flatten rich-text HTML from the storefront editors into plain text."""
    if value is None:
        return ""
    text = str(value)
    if "<" in text and ">" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    text = _WHITESPACE_RE.sub(" ", text)
    lines = [line.strip() for line in text.split("\n")]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def format_price(price: Any) -> str:
    return f"R$ {Decimal(str(price)):.2f}"


def _join(lines: list[str]) -> str | None:
    content = "\n".join(line for line in lines if line)
    return content or None


def render_product(product: Any) -> str | None:
    name = clean_text(product.name)
    sku = clean_text(product.sku)
    return _join(
        [
            f"Produto: {name}" if name else "",
            f"SKU: {sku}" if sku else "",
            f"Preço: {format_price(product.price)}" if product.price else "",
            clean_text(product.description),
        ]
    )


def product_title(product: Any) -> str:
    return clean_text(product.name) or f"Produto {product.id}"


def render_category(category: Any) -> str | None:
    name = clean_text(category.name)
    return _join(
        [
            f"Categoria: {name}" if name else "",
            clean_text(category.description),
        ]
    )


def category_title(category: Any) -> str:
    name = clean_text(category.name)
    return f"Categoria: {name}" if name else f"Categoria {category.id}"


def render_policies(store_settings: Any) -> list[PolicyText]:
    # Policies are singleton sources keyed by field name rather than a record id.
    policies: list[PolicyText] = []
    for key, title in POLICY_FIELDS:
        content = clean_text(getattr(store_settings, key, None))
        if len(content) > MIN_POLICY_CHARS:
            policies.append(PolicyText(key=key, title=title, content=content))
    return policies
