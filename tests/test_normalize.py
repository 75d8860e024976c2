"""Tests de la normalisation."""

import math

from relmatch.normalize import composite_key, safe_str, sanitize_name


def test_safe_str_nulls() -> None:
    assert safe_str(None) == ""
    assert safe_str(math.nan) == ""
    assert safe_str(12) == "12"
    assert safe_str(" a ") == " a "


def test_composite_key_order_and_separator() -> None:
    assert composite_key(["Graciela", "Ruta"]) == "Graciela*Ruta"
    assert composite_key(["Ruta", "Graciela"]) == "Ruta*Graciela"
    assert composite_key(["seul"]) == "seul"


def test_composite_key_nulls_as_empty() -> None:
    assert composite_key([None, "Ruta"]) == "*Ruta"
    assert composite_key([None, None]) == "*"


def test_composite_key_trim() -> None:
    assert composite_key([" Graciela ", "Ruta "]) == " Graciela *Ruta "
    assert composite_key([" Graciela ", "Ruta "], trim=True) == "Graciela*Ruta"


def test_sanitize_name() -> None:
    assert sanitize_name("Prénom Client") == "prenom_client"
    assert sanitize_name("  Ville/Code  ") == "ville_code"
    assert sanitize_name("2024") == "c_2024"
    assert sanitize_name("") == "col"
    assert sanitize_name(None) == "col"
