"""
Entity extraction tests - email, phone, name, budget, daily km, model and
the AI's [LEAD_DATA] block.
"""
import pytest
from unittest.mock import patch

from dealerchat.utils.entities import (
    extract_budget,
    extract_daily_km,
    extract_email,
    extract_entities,
    extract_name,
    extract_phone,
    parse_lead_data_block,
)
from dealerchat.utils.phone import last_ten_digits, mask_phone, normalize_mx_phone


class TestPhoneNormalization:
    @pytest.mark.parametrize("raw", [
        "+52 8112345678",
        "81-1234-5678",
        "811.234.5678",
        "8112345678",
        "528112345678",
    ])
    def test_all_styles_normalize_to_ten_digits(self, raw):
        assert normalize_mx_phone(raw) == "8112345678"

    def test_short_number_rejected(self):
        assert normalize_mx_phone("811234567") is None

    def test_last_ten_digits(self):
        assert last_ten_digits("+52 (81) 1234-5678") == "8112345678"
        assert last_ten_digits("12345") is None

    def test_mask_phone(self):
        assert mask_phone("8112345678") == "811234****"
        assert mask_phone(None) == "unknown"


class TestExtractPhone:
    @pytest.mark.parametrize("message", [
        "mi número es +52 8112345678",
        "llámame al 81-1234-5678",
        "cel 811.234.5678 por favor",
        "8112345678",
        "mi teléfono es 81 1234 5678",
    ])
    def test_delimiter_styles(self, message):
        assert extract_phone(message) == "8112345678"

    def test_nine_digits_ignored(self):
        assert extract_phone("mi cel es 814528569") is None


class TestExtractName:
    @pytest.mark.parametrize("message,expected", [
        ("Me llamo Ana Torres", "Ana Torres"),
        ("me llamo ana torres y quiero info del Seal", "Ana Torres"),
        ("soy juan, quiero una cotización", "Juan"),
        ("minombre es Pedro", "Pedro"),
        ("Mi nombre es María García", "María García"),
        ("Ana Torres", "Ana Torres"),
        ("nombre: Luis", "Luis"),
    ])
    def test_name_patterns(self, message, expected):
        assert extract_name(message) == expected

    def test_greeting_is_not_a_name(self):
        assert extract_name("Hola Salma") is None
        assert extract_name("hola") is None


class TestOtherFields:
    def test_email_lowercased(self):
        assert extract_email("Mi correo es Ana.Torres@Example.com") == "ana.torres@example.com"

    def test_budget_in_thousands(self):
        assert extract_budget("mi presupuesto es de 500 mil") == 500000

    def test_budget_in_pesos(self):
        assert extract_budget("tengo 450,000 pesos") == 450000

    def test_budget_absent(self):
        assert extract_budget("quiero un auto barato") is None

    def test_daily_km(self):
        assert extract_daily_km("manejo unos 60 km diarios") == 60
        assert extract_daily_km("recorro 45 kilómetros al día") == 45


class TestExtractEntities:
    def test_full_message(self):
        entities = extract_entities(
            "Me llamo Ana Torres, mi teléfono es 81 1234 5678 y me interesa el Seal"
        )
        assert entities.name == "Ana Torres"
        assert entities.phone == "8112345678"
        assert entities.model_interest == "seal"
        assert entities.email is None
        assert entities.has_contact()

    def test_bare_phone(self):
        entities = extract_entities("8112345678")
        assert entities.phone == "8112345678"
        assert entities.name is None

    def test_nothing_found(self):
        entities = extract_entities("¿qué autonomía tiene?")
        assert entities.as_json() == {}
        assert not entities.has_contact()

    def test_failing_extractor_leaves_other_fields(self):
        with patch("dealerchat.utils.entities.EMAIL_PATTERN") as pattern:
            pattern.search.side_effect = RuntimeError("boom")
            entities = extract_entities("soy Ana, 8112345678")
        assert entities.email is None
        assert entities.phone == "8112345678"


class TestLeadDataBlock:
    def test_block_parsed_and_stripped(self):
        reply = (
            "¡Perfecto Ana! Te envío la cotización.\n\n"
            "[LEAD_DATA]\n"
            "nombre: Ana Torres\n"
            "telefono: 81 1234 5678\n"
            "email: (si lo dio)\n"
            "modelo: Seal\n"
            "[/LEAD_DATA]"
        )
        entities, clean = parse_lead_data_block(reply)
        assert entities.name == "Ana Torres"
        assert entities.phone == "8112345678"
        assert entities.email is None
        assert entities.model_interest == "Seal"
        assert clean == "¡Perfecto Ana! Te envío la cotización."

    def test_placeholders_ignored(self):
        reply = "Hola\n[LEAD_DATA]\nnombre: (nombre completo si lo dio)\ntelefono: (solo números)\n[/LEAD_DATA]"
        entities, clean = parse_lead_data_block(reply)
        assert entities.as_json() == {}
        assert clean == "Hola"

    def test_short_phone_dropped(self):
        reply = "Revisa tu número\n[LEAD_DATA]\ntelefono: 814528569\n[/LEAD_DATA]"
        entities, _ = parse_lead_data_block(reply)
        assert entities.phone is None

    def test_long_phone_keeps_last_ten(self):
        reply = "Listo\n[LEAD_DATA]\ntelefono: +52 81 1234 5678\nemail: Ana@Mail.com\n[/LEAD_DATA]"
        entities, _ = parse_lead_data_block(reply)
        assert entities.phone == "8112345678"
        assert entities.email == "ana@mail.com"

    def test_no_block(self):
        entities, clean = parse_lead_data_block("  Solo texto  ")
        assert entities.as_json() == {}
        assert clean == "Solo texto"
