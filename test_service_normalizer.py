"""Tests for label normalization and the services-field ingestion adapter."""

import pytest

from api.services.service_normalizer import normalize, split_services_field, tokenize


@pytest.mark.parametrize("raw, expected", [
    ("Canalização", "canalizacao"),
    ("Canalizacao", "canalizacao"),
    ("  Ar   Condicionado  ", "ar condicionado"),
    ("ELETRICIDADE", "eletricidade"),
    ("Pintura/Decoração", "pintura decoracao"),
    ("Limpeza (pós-obra)", "limpeza pos obra"),
    ("Jardim\tand\nPiscinas", "jardim and piscinas"),
])
def test_normalize(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize("blank", ["", "   ", "\t\n", None, "...", "--"])
def test_normalize_blank_input_gives_empty_string(blank):
    assert normalize(blank) == ""


def test_normalize_is_idempotent():
    once = normalize("  Reparação de Eletrodomésticos ")
    assert normalize(once) == once


def test_tokenize():
    assert tokenize("ar condicionado split") == ["ar", "condicionado", "split"]
    assert tokenize("") == []


def test_split_string_on_comma_and_semicolon():
    assert split_services_field("Canalização, Pintura;Eletricidade") == ["Canalização", "Pintura", "Eletricidade"]


def test_split_drops_blank_items():
    assert split_services_field("Pintura,, ;  ;Jardim") == ["Pintura", "Jardim"]


def test_split_list_is_taken_item_by_item():
    # commas inside a list item are part of the label
    assert split_services_field([" Pintura ", None, "", "Portas, Janelas"]) == ["Pintura", "Portas, Janelas"]


def test_split_none_and_scalars():
    assert split_services_field(None) == []
    assert split_services_field(42) == ["42"]
