"""Tests for the wizard API endpoints."""
from __future__ import annotations

import json
import os
import sys
from unittest.mock import patch

import pytest

TEST_DIR = os.path.dirname(__file__)
REPO_ROOT = os.path.abspath(os.path.join(TEST_DIR, "..", ".."))
sys.path.insert(0, REPO_ROOT)

from character_forge.ai_character_writer import CharacterGenerationError, TextGenerator
from character_forge.webapp.app import create_app
from character_forge.webapp.wizard_manager import GenerationInProgressError, get_session, reset_sessions

GENERATED = {
    "name": "Thorin Oakhelm",
    "race": "Dwarf",
    "class": "Fighter",
    "level": 1,
    "background": "Soldier",
    "alignment": "Lawful Good",
    "abilityScores": {
        "strength": 16,
        "dexterity": 12,
        "constitution": 14,
        "intelligence": 8,
        "wisdom": 10,
        "charisma": 13,
    },
    "backstory": "Born under the mountain.",
    "equipment": ["Rope", {"name": "Battleaxe", "category": "Weapon"}],
    "features": ["Second Wind"],
}


class FakeGenerator(TextGenerator):
    def __init__(self, character_text=None, backstory="A quiet childhood.", error=None):
        self.character_text = character_text if character_text is not None else json.dumps(GENERATED)
        self.backstory = backstory
        self.error = error
        self.prompts = []

    def is_configured(self):
        return True

    def complete(self, system_prompt, user_prompt, json_mode=False):
        self.prompts.append(user_prompt)
        if self.error:
            raise self.error
        return self.character_text if json_mode else self.backstory


@pytest.fixture()
def client():
    reset_sessions()
    app = create_app()
    app.testing = True
    yield app.test_client()
    reset_sessions()


def _start(client):
    response = client.post("/api/wizard")
    assert response.status_code == 200
    return response.get_json()["wizard"]


def test_new_wizard_has_default_character(client):
    wizard = _start(client)

    character = wizard["character"]
    assert wizard["wizard"]["step"] == 0
    assert character["race"] == "Human"
    assert character["character_class"] == "Fighter"
    assert character["hit_points"] == {"current": 10, "maximum": 10}
    assert wizard["abilities"]["method"] == "point-buy"
    assert wizard["abilities"]["remaining_points"] == 15


def test_unknown_wizard_is_404(client):
    response = client.get("/api/wizard/missing")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Wizard session not found"


def test_update_recomputes_derived_stats(client):
    wizard_id = _start(client)["id"]

    response = client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"race": "Halfling"}})

    assert response.status_code == 200
    assert response.get_json()["wizard"]["character"]["speed"] == 25


def test_update_with_unknown_field_is_rejected(client):
    wizard_id = _start(client)["id"]

    response = client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"charm": 3}})

    assert response.status_code == 400
    assert "charm" in response.get_json()["error"]


def test_point_buy_through_api(client):
    wizard_id = _start(client)["id"]

    accepted = client.post(f"/api/wizard/{wizard_id}/abilities/set", json={"ability": "constitution", "value": 14})
    rejected = client.post(f"/api/wizard/{wizard_id}/abilities/set", json={"ability": "strength", "value": 16})

    assert accepted.get_json()["accepted"] is True
    assert rejected.get_json()["accepted"] is False
    wizard = rejected.get_json()["wizard"]
    assert wizard["character"]["ability_scores"]["constitution"] == 14
    assert wizard["character"]["hit_points"] == {"current": 12, "maximum": 12}
    assert wizard["abilities"]["remaining_points"] == 10


def test_standard_array_random_assignment(client):
    wizard_id = _start(client)["id"]
    client.post(f"/api/wizard/{wizard_id}/abilities/method", json={"method": "standard-array"})

    response = client.post(f"/api/wizard/{wizard_id}/abilities/random")

    scores = response.get_json()["wizard"]["character"]["ability_scores"]
    assert sorted(scores.values()) == [8, 10, 12, 13, 14, 15]


def test_navigation_and_review_guard(client):
    wizard_id = _start(client)["id"]

    assert client.post(f"/api/wizard/{wizard_id}/next").get_json()["wizard"]["wizard"]["step"] == 1
    assert client.post(f"/api/wizard/{wizard_id}/review").status_code == 400
    assert client.post(f"/api/wizard/{wizard_id}/complete").status_code == 400
    assert client.post(f"/api/wizard/{wizard_id}/dance").status_code == 404


def test_generation_unavailable_without_backend(client):
    wizard_id = _start(client)["id"]

    response = client.post(f"/api/wizard/{wizard_id}/generate-character")

    assert response.status_code == 503


def test_generate_character_merges_and_jumps_to_review(client):
    fake = FakeGenerator()
    with patch("character_forge.webapp.wizard_manager._GENERATOR", fake):
        wizard_id = _start(client)["id"]
        client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"race": "Dwarf"}})
        response = client.post(f"/api/wizard/{wizard_id}/generate-character")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["generated"] is True
    wizard = payload["wizard"]
    character = wizard["character"]
    assert wizard["wizard"]["step_name"] == "Review"
    assert character["name"] == "Thorin Oakhelm"
    assert character["id"]
    assert character["hit_points"] == {"current": 12, "maximum": 12}
    assert character["equipment"][0] == {"name": "Rope", "category": "Gear", "description": ""}
    assert wizard["abilities"]["scores"]["strength"] == 16
    assert wizard["last_error"] is None
    assert "Race: Dwarf" in fake.prompts[0]


def test_failed_generation_records_error_without_changes(client):
    fake = FakeGenerator(error=CharacterGenerationError("upstream timed out"))
    with patch("character_forge.webapp.wizard_manager._GENERATOR", fake):
        wizard_id = _start(client)["id"]
        response = client.post(f"/api/wizard/{wizard_id}/generate-character")

    assert response.status_code == 502
    wizard = response.get_json()["wizard"]
    assert wizard["last_error"] == "upstream timed out"
    assert wizard["pending"]["character"] is False
    assert wizard["character"]["name"] == ""
    assert wizard["version"] == 0

    # The next successful action clears the error.
    cleared = client.post(f"/api/wizard/{wizard_id}/next").get_json()["wizard"]
    assert cleared["last_error"] is None


def test_malformed_generation_is_reported(client):
    fake = FakeGenerator(character_text="I cannot help with that.")
    with patch("character_forge.webapp.wizard_manager._GENERATOR", fake):
        wizard_id = _start(client)["id"]
        response = client.post(f"/api/wizard/{wizard_id}/generate-character")

    assert response.status_code == 502
    assert response.get_json()["wizard"]["character"]["name"] == ""


def test_generate_backstory_updates_record(client):
    fake = FakeGenerator(backstory="Raised by wolves.")
    with patch("character_forge.webapp.wizard_manager._GENERATOR", fake):
        wizard_id = _start(client)["id"]
        response = client.post(f"/api/wizard/{wizard_id}/generate-backstory")

    assert response.get_json()["wizard"]["character"]["backstory"] == "Raised by wolves."


def test_restart_resets_character(client):
    wizard_id = _start(client)["id"]
    client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"name": "Temp"}})
    client.post(f"/api/wizard/{wizard_id}/next")

    wizard = client.post(f"/api/wizard/{wizard_id}/restart").get_json()["wizard"]

    assert wizard["wizard"]["step"] == 0
    assert wizard["character"]["name"] == ""


def test_random_equipment_appends_without_duplicates(client):
    wizard_id = _start(client)["id"]
    client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"equipment": ["Rope"]}})

    wizard = client.post(f"/api/wizard/{wizard_id}/equipment/random").get_json()["wizard"]

    names = [item["name"] for item in wizard["character"]["equipment"]]
    assert names[0] == "Rope"
    assert len(names) == len(set(names))
    assert len(names) >= 3


def test_dice_roll_reveal(client):
    response = client.post("/api/dice/roll", json={"sides": 8})

    payload = response.get_json()
    assert len(payload["frames"]) == 10
    assert payload["frames"][-1] == payload["result"]
    assert client.post("/api/dice/roll", json={"sides": 7}).status_code == 400


def test_reference_and_status(client):
    reference = client.get("/api/reference").get_json()
    assert len(reference["classes"]) == 12
    assert reference["standard_array"] == [15, 14, 13, 12, 10, 8]

    status = client.get("/api/generator-status").get_json()
    assert status["configured"] is False


def test_sheet_endpoints(client):
    wizard_id = _start(client)["id"]
    client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"name": "Sir Gawain"}})

    html = client.get(f"/api/wizard/{wizard_id}/sheet.html")
    assert html.status_code == 200
    assert b"Sir Gawain" in html.data

    with patch("character_forge.webapp.app._SHEET.generate", return_value=b"%PDF-1.7"):
        pdf = client.get(f"/api/wizard/{wizard_id}/sheet.pdf")
    assert pdf.status_code == 200
    assert pdf.data == b"%PDF-1.7"
    assert "Sir_Gawain_character_sheet.pdf" in pdf.headers["Content-Disposition"]


def test_method_switch_keeps_manual_derived_values(client):
    wizard_id = _start(client)["id"]
    client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"armor_class": 18, "speed": 40}})

    client.post(f"/api/wizard/{wizard_id}/abilities/method", json={"method": "roll"})
    wizard = client.post(f"/api/wizard/{wizard_id}/update", json={"changes": {"race": "Human"}}).get_json()["wizard"]

    assert wizard["character"]["armor_class"] == 18
    assert wizard["character"]["speed"] == 40


@pytest.mark.parametrize("error", [RuntimeError("backend crashed"), OverflowError("math range error")])
def test_unexpected_generation_error_clears_pending(client, error):
    fake = FakeGenerator(error=error)
    with patch("character_forge.webapp.wizard_manager._GENERATOR", fake):
        wizard_id = _start(client)["id"]
        response = client.post(f"/api/wizard/{wizard_id}/generate-character")
        backstory = client.post(f"/api/wizard/{wizard_id}/generate-backstory")

    assert response.status_code == 502
    assert backstory.status_code == 502
    wizard = backstory.get_json()["wizard"]
    assert wizard["pending"] == {"character": False, "backstory": False}
    assert wizard["last_error"] == str(error)


def test_prompt_failure_clears_pending(client):
    fake = FakeGenerator()
    with patch("character_forge.webapp.wizard_manager._GENERATOR", fake):
        wizard_id = _start(client)["id"]
        session = get_session(wizard_id)
        with patch.object(session, "build_prompt", side_effect=ValueError("invalid literal for int()")):
            failed = client.post(f"/api/wizard/{wizard_id}/generate-character")
        retried = client.post(f"/api/wizard/{wizard_id}/generate-character")

    assert failed.status_code == 502
    assert failed.get_json()["wizard"]["pending"]["character"] is False
    assert retried.status_code == 200
    assert retried.get_json()["generated"] is True


class InterferingGenerator(FakeGenerator):
    """Runs ``action`` against the session while a request is in flight."""

    def __init__(self, action, **kwargs):
        super().__init__(**kwargs)
        self.action = action
        self.session = None

    def complete(self, system_prompt, user_prompt, json_mode=False):
        self.action(self.session)
        return super().complete(system_prompt, user_prompt, json_mode)


def _session_with(client, generator):
    with patch("character_forge.webapp.wizard_manager._GENERATOR", generator):
        wizard_id = _start(client)["id"]
    generator.session = get_session(wizard_id)
    return wizard_id, generator.session


def test_character_discarded_when_user_navigates_during_request(client):
    fake = InterferingGenerator(lambda session: session.navigate("next"))
    wizard_id, session = _session_with(client, fake)

    response = client.post(f"/api/wizard/{wizard_id}/generate-character")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["generated"] is False
    wizard = payload["wizard"]
    assert wizard["character"]["name"] == ""
    assert wizard["wizard"]["step"] == 1
    assert wizard["pending"]["character"] is False
    assert wizard["last_error"] is None
    assert session.allocator.scores.strength == 10


def test_backstory_discarded_when_user_edits_during_request(client):
    fake = InterferingGenerator(lambda session: session.update_character({"backstory": "Typed by hand."}))
    wizard_id, _ = _session_with(client, fake)

    response = client.post(f"/api/wizard/{wizard_id}/generate-backstory")

    payload = response.get_json()
    assert payload["generated"] is False
    assert payload["wizard"]["character"]["backstory"] == "Typed by hand."
    assert payload["wizard"]["pending"]["backstory"] is False


def test_second_request_while_generating_is_rejected(client):
    rejected = []

    def generate_again(session):
        try:
            session.generate_character()
        except GenerationInProgressError as exc:
            rejected.append(exc)

    fake = InterferingGenerator(generate_again)
    wizard_id, _ = _session_with(client, fake)

    response = client.post(f"/api/wizard/{wizard_id}/generate-character")

    assert len(rejected) == 1
    assert response.get_json()["generated"] is True
    assert response.get_json()["wizard"]["pending"]["character"] is False


def test_in_flight_generation_returns_conflict(client):
    with patch("character_forge.webapp.wizard_manager._GENERATOR", FakeGenerator()):
        wizard_id = _start(client)["id"]
    get_session(wizard_id).pending["backstory"] = True

    response = client.post(f"/api/wizard/{wizard_id}/generate-backstory")

    assert response.status_code == 409
    assert get_session(wizard_id).record.character.backstory == ""


def test_equipment_suggestions_endpoint(client):
    response = client.get("/api/reference/equipment?category=weapons&q=SWORD")

    assert response.status_code == 200
    items = response.get_json()["items"]
    assert items
    assert all("sword" in item.lower() for item in items)
    assert client.get("/api/reference/equipment?category=vehicles").status_code == 400
