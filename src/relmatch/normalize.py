"""Normalisation des valeurs, des clés composites et des noms de colonnes."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from typing import Any

FUZZY_KEY_SEPARATOR = "*"
EXACT_KEY_SEPARATOR = "_"

_NON_IDENTIFIER_RE = re.compile(r"[^0-9a-z_]+")


def safe_str(val: Any) -> str:
    """Convertit une valeur en chaîne ; None et NaN deviennent la chaîne vide."""
    if val is None or (isinstance(val, float) and val != val):
        return ""
    return str(val)


def composite_key(values: Iterable[Any], *, trim: bool = False) -> str:
    """
    Concatène les valeurs d'attributs dans l'ordre avec le séparateur "*".

    Les valeurs absentes sont traitées comme des chaînes vides.
    """
    parts = (safe_str(v) for v in values)
    if trim:
        parts = (p.strip() for p in parts)
    return FUZZY_KEY_SEPARATOR.join(parts)


def sanitize_name(name: Any) -> str:
    """
    Transforme un en-tête de colonne en identifiant SQL simple.

    "Prénom Client" → "prenom_client". Une chaîne vide devient "col".
    """
    text = unicodedata.normalize("NFKD", safe_str(name).strip().lower())
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    text = _NON_IDENTIFIER_RE.sub("_", text).strip("_")
    if not text:
        return "col"
    if text[0].isdigit():
        text = "c_" + text
    return text
