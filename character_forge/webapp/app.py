"""Flask application exposing the character creation wizard via a JSON API."""
from __future__ import annotations

import io
import logging

from flask import Flask, Response, jsonify, request, send_file

from character_forge.config import configure_logging
from character_forge.rules.dice import DiceRollReveal

from .character_sheet import CharacterSheet, sheet_filename
from .reference_catalog import equipment_suggestions, reference_catalog
from .wizard_manager import (
    GenerationInProgressError,
    GeneratorUnavailableError,
    SessionNotFoundError,
    WizardError,
    create_session,
    generator_configured,
    get_session,
    reset_sessions,
    settings,
)

logger = logging.getLogger(__name__)

app = Flask(__name__)
_SHEET = CharacterSheet()

NAVIGATION_ACTIONS = ("next", "previous", "review", "complete", "restart")
ABILITY_ACTIONS = ("method", "set", "assign", "roll", "random", "reset")


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@app.errorhandler(WizardError)
def handle_wizard_error(exc: WizardError):
    if isinstance(exc, SessionNotFoundError):
        status_code = 404
    elif isinstance(exc, GeneratorUnavailableError):
        status_code = 503
    elif isinstance(exc, GenerationInProgressError):
        status_code = 409
    else:
        status_code = 400
    return jsonify({"error": str(exc)}), status_code


@app.get("/api/generator-status")
def generator_status():
    return jsonify({"configured": generator_configured(), "backend": settings().backend})


@app.get("/api/reference")
def get_reference():
    return jsonify(reference_catalog())


@app.get("/api/reference/equipment")
def get_equipment_suggestions():
    category = request.args.get("category", "")
    try:
        items = equipment_suggestions(category, request.args.get("q", ""))
    except KeyError:
        return jsonify({"error": f"Unknown equipment category: {category}"}), 400
    return jsonify({"category": category, "items": items})


@app.post("/api/dice/roll")
def roll_dice():
    data = _payload()
    try:
        reveal = DiceRollReveal(sides=int(data.get("sides", 20))).roll()
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(
        {
            "sides": reveal.sides,
            "frames": reveal.frames,
            "result": reveal.result,
            "critical": reveal.critical,
            "interval_ms": reveal.interval_ms,
        }
    )


@app.post("/api/wizard")
def start_wizard():
    session = create_session()
    return jsonify({"wizard": session.serialize()})


@app.get("/api/wizard/<wizard_id>")
def get_wizard(wizard_id: str):
    return jsonify({"wizard": get_session(wizard_id).serialize()})


@app.post("/api/wizard/<wizard_id>/update")
def update_character(wizard_id: str):
    session = get_session(wizard_id)
    data = _payload()
    changes = data.get("changes", data)
    session.update_character(changes)
    return jsonify({"wizard": session.serialize()})


@app.post("/api/wizard/<wizard_id>/<action>")
def navigate(wizard_id: str, action: str):
    if action not in NAVIGATION_ACTIONS:
        return jsonify({"error": f"Unknown action: {action}"}), 404
    session = get_session(wizard_id)
    session.navigate(action)
    return jsonify({"wizard": session.serialize()})


@app.post("/api/wizard/<wizard_id>/abilities/<action>")
def abilities(wizard_id: str, action: str):
    if action not in ABILITY_ACTIONS:
        return jsonify({"error": f"Unknown ability action: {action}"}), 404
    session = get_session(wizard_id)
    accepted = session.allocate(action, _payload())
    return jsonify({"accepted": accepted, "wizard": session.serialize()})


@app.post("/api/wizard/<wizard_id>/equipment/random")
def random_equipment(wizard_id: str):
    session = get_session(wizard_id)
    session.add_random_equipment()
    return jsonify({"wizard": session.serialize()})


@app.post("/api/wizard/<wizard_id>/generate-character")
def generate_character(wizard_id: str):
    session = get_session(wizard_id)
    generated = session.generate_character(_payload())
    status_code = 502 if not generated and session.last_error else 200
    return jsonify({"generated": generated, "wizard": session.serialize()}), status_code


@app.post("/api/wizard/<wizard_id>/generate-backstory")
def generate_backstory(wizard_id: str):
    session = get_session(wizard_id)
    generated = session.generate_backstory()
    status_code = 502 if not generated and session.last_error else 200
    return jsonify({"generated": generated, "wizard": session.serialize()}), status_code


@app.get("/api/wizard/<wizard_id>/sheet.html")
def sheet_html(wizard_id: str):
    character = get_session(wizard_id).record.to_dict()
    return Response(_SHEET.render_html(character), mimetype="text/html")


@app.get("/api/wizard/<wizard_id>/sheet.pdf")
def sheet_pdf(wizard_id: str):
    character = get_session(wizard_id).record.to_dict()
    logger.info("Rendering PDF sheet for wizard %s", wizard_id)
    pdf = _SHEET.generate(character)
    return send_file(
        io.BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=sheet_filename(character.get("name")),
    )


@app.get("/api/reset")
def reset_wizards():
    reset_sessions()
    return jsonify({"status": "reset"})


def create_app() -> Flask:
    """Factory primarily for testing."""
    return app


if __name__ == "__main__":
    configure_logging(settings())
    app.run(debug=True)
