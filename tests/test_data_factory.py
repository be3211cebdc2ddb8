"""
Tests for the demo roster generator, with the LLM replaced by a canned model.
"""

import json
import pytest
from datetime import date
from types import SimpleNamespace

from generators.data_factory import DataGenerator


class FakeModel:
    """Returns queued responses in order, like GenerativeModel.generate_content."""

    def __init__(self, *payloads):
        self.payloads = list(payloads)
        self.prompts = []

    def generate_content(self, prompt, generation_config=None):
        self.prompts.append(prompt)
        text = self.payloads.pop(0)
        if isinstance(text, Exception):
            raise text
        return SimpleNamespace(
            text=text,
            usage_metadata=SimpleNamespace(prompt_token_count=1000, candidates_token_count=2000),
        )


def _generator(*payloads):
    generator = DataGenerator.__new__(DataGenerator)
    generator.model = FakeModel(*payloads)
    generator.total_cost = 0.0
    return generator


class TestRobustParse:
    def test_fenced_json_is_unwrapped(self):
        generator = _generator()
        raw = '```json\n[{"name": "A"}]\n```'
        assert generator._robust_parse_json(raw) == [{"name": "A"}]

    def test_list_is_pulled_out_of_chatter(self):
        generator = _generator()
        raw = 'Here you go: [{"name": "A"}, {"name": "B"}] hope that helps'
        assert generator._robust_parse_json(raw) == [{"name": "A"}, {"name": "B"}]

    def test_wrapped_list_is_unpacked(self):
        generator = _generator()
        assert generator._robust_parse_json('{"clients": [{"name": "A"}]}') == [{"name": "A"}]

    def test_single_object_becomes_a_list(self):
        generator = _generator()
        assert generator._robust_parse_json('{"name": "A"}') == [{"name": "A"}]

    @pytest.mark.parametrize("raw", ["", "not json at all", "[broken", "42"])
    def test_garbage_yields_nothing(self, raw):
        assert _generator()._robust_parse_json(raw) == []


class TestGenerateTechnicians:
    def test_invalid_items_are_skipped(self):
        payload = json.dumps([
            {
                "name": "Sam Lee",
                "max_hours_per_week": 30,
                "service_areas": ["Downtown"],
                "availability": [
                    {"day_of_week": 0, "start_minute": 540, "end_minute": 1020},
                    {"day_of_week": 1, "start_minute": 900, "end_minute": 600},
                ],
            },
            {"name": "", "max_hours_per_week": 30},
        ])
        generator = _generator(payload)

        technicians, slots, cost = generator.generate_technicians("practice_01", count=2)

        assert [t.id for t in technicians] == ["tech_01"]
        assert technicians[0].user_id == "practice_01"
        assert [(s.technician_id, s.day_of_week) for s in slots] == [("tech_01", 0)]
        assert cost == pytest.approx((1000 * 0.075 + 2000 * 0.30) / 1_000_000)
        assert generator.total_cost == pytest.approx(cost)

    def test_api_failure_returns_empty_batch(self):
        generator = _generator(RuntimeError("quota exceeded"))

        technicians, slots, cost = generator.generate_technicians("practice_01")

        assert (technicians, slots, cost) == ([], [], 0.0)


class TestGenerateClients:
    def test_clients_get_authorizations(self):
        payload = json.dumps([
            {
                "name": "Alex Smith",
                "location": "Northside",
                "assigned_technician_id": "tech_01",
                "authorization": {"service_code": "97153", "total_units": 520},
            },
            {
                "name": "Jo Park",
                "assigned_technician_id": "tech_99",
                "authorization": {"service_code": "97155", "total_units": 200},
            },
            {"name": "Bad Units", "authorization": {"total_units": -5}},
        ])
        generator = _generator(payload)

        clients, authorizations, _ = generator.generate_clients(
            "practice_01", ["tech_01"], count=3, start_date=date(2025, 1, 1)
        )

        assert [c.id for c in clients] == ["client_01", "client_02"]
        assert clients[0].assigned_technician_id == "tech_01"
        assert clients[1].assigned_technician_id is None
        assert [(a.client_id, a.total_units, a.remaining_units) for a in authorizations] == [
            ("client_01", 520, 520),
            ("client_02", 200, 200),
        ]
        assert authorizations[0].period_days == 90

    def test_roster_links_clients_to_generated_technicians(self):
        technicians = json.dumps([{"name": "Sam Lee", "availability": []}])
        clients = json.dumps([{"name": "Alex Smith", "assigned_technician_id": "tech_01",
                               "authorization": {"total_units": 300}}])
        generator = _generator(technicians, clients)

        roster, cost = generator.generate_roster("practice_01", technician_count=1, client_count=1)

        assert set(roster) == {"technicians", "availability", "clients", "authorizations"}
        assert roster["clients"][0].assigned_technician_id == "tech_01"
        assert '"tech_01"' in generator.model.prompts[1]
        assert cost == pytest.approx(generator.total_cost)
