# src/story_advisor/api/routes.py
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictInt, ValidationError
from quart import Blueprint, current_app, jsonify, request

from story_advisor.context_window.budget import (
    DEFAULT_CONTEXT_WINDOW,
    calculate_token_budget,
)
from story_advisor.context_window.context_builder import build_story_advisor_context
from story_advisor.context_window.prompt_context import build_context_prompt_string
from story_advisor.context_window.snapshot import build_context_snapshot
from story_advisor.core.config import APP_CONFIG
from story_advisor.screenplay.scene_detection import (
    build_scene_context_prompt,
    detect_current_scene,
    extract_selection_context,
)

story_advisor_bp = Blueprint('story_advisor', __name__)
app_logger = logging.getLogger("quart.app")


class StoryAdvisorContextRequest(BaseModel):
    document: Optional[str] = ""
    cursor_position: Optional[StrictInt] = None
    query: Optional[str] = ""
    model_id: Optional[str] = None
    conversation_history: Optional[List[Dict[str, Any]]] = Field(default_factory=list)
    system_prompt_base: Optional[str] = ""


class SceneRequest(BaseModel):
    document: Optional[str] = ""
    cursor_position: Optional[StrictInt] = None


class SelectionRequest(BaseModel):
    document: Optional[str] = ""
    selection_start: Optional[StrictInt] = None
    selection_end: Optional[StrictInt] = None


def _error(message, status_code):
    return jsonify({"status": "error", "message": message}), status_code


def _describe_validation_error(e: ValidationError) -> str:
    problems = []
    for err in e.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        problems.append(f"'{field}': {err.get('msg', 'invalid value')}")
    return "Invalid request: " + "; ".join(problems)


async def _parse_body(model_cls):
    """
    Validate the JSON body against ``model_cls``.

    Returns (model, None) on success or (None, error_response) for a
    non-object body, a validation failure, or an oversized document.
    """
    data = await request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, _error("Request body must be a JSON object.", 400)

    try:
        body = model_cls(**data)
    except ValidationError as e:
        app_logger.warning(f"Story advisor request rejected: {e}")
        return None, _error(_describe_validation_error(e), 400)

    if len(body.document or "") > APP_CONFIG.MAX_DOCUMENT_CHARS:
        return None, _error(
            f"Document exceeds the maximum of {APP_CONFIG.MAX_DOCUMENT_CHARS} characters.", 413
        )
    return body, None


def _context_windows():
    return current_app.extensions["story_advisor"]["context_windows"]


def _structure_cache():
    return current_app.extensions["story_advisor"]["structure_cache"]


@story_advisor_bp.route("/v1/story-advisor/context", methods=["POST"])
async def build_context():
    """
    Build the Story Advisor context for a screenplay.

    Body: document, cursor_position, query, model_id, conversation_history,
    system_prompt_base. Returns the payload, the rendered prompt block and a
    budget snapshot.
    """
    body, error_response = await _parse_body(StoryAdvisorContextRequest)
    if error_response:
        return error_response

    document = body.document or ""
    query = body.query or ""
    model_id = body.model_id or APP_CONFIG.DEFAULT_MODEL_ID
    history = body.conversation_history or []
    system_prompt_base = body.system_prompt_base or ""

    try:
        context_windows = _context_windows()
        budget = calculate_token_budget(
            model_id, history, system_prompt_base, query, context_windows
        )
        context = build_story_advisor_context(
            document,
            body.cursor_position,
            query,
            model_id,
            history,
            system_prompt_base,
            context_windows=context_windows,
            structure_cache=_structure_cache(),
            budget=budget,
        )
        prompt = build_context_prompt_string(context)
        snapshot = build_context_snapshot(context, budget, prompt)
    except Exception as e:
        app_logger.error(f"Story advisor context build failed: {e}", exc_info=True)
        return _error("Failed to build story advisor context.", 500)

    app_logger.info(snapshot.to_summary_text())
    return jsonify({
        "status": "success",
        "context": context.to_dict(),
        "prompt": prompt,
        "snapshot": snapshot.to_event(),
    })


@story_advisor_bp.route("/v1/story-advisor/scene", methods=["POST"])
async def locate_scene():
    """Scene under the cursor plus its short [SCENE CONTEXT] block."""
    body, error_response = await _parse_body(SceneRequest)
    if error_response:
        return error_response

    scene = detect_current_scene(body.document or "", body.cursor_position)
    return jsonify({
        "status": "success",
        "scene": scene.to_dict() if scene else None,
        "prompt": build_scene_context_prompt(scene),
    })


@story_advisor_bp.route("/v1/story-advisor/selection", methods=["POST"])
async def selection_context():
    """Selected text with its surrounding context, for rewrite prompts."""
    body, error_response = await _parse_body(SelectionRequest)
    if error_response:
        return error_response

    selection = extract_selection_context(
        body.document or "", body.selection_start, body.selection_end
    )
    return jsonify({
        "status": "success",
        "selection": selection.to_dict() if selection else None,
    })


@story_advisor_bp.route("/v1/story-advisor/models", methods=["GET"])
async def list_model_context_windows():
    """Effective model → context window table."""
    return jsonify({
        "status": "success",
        "default_model_id": APP_CONFIG.DEFAULT_MODEL_ID,
        "default_context_window": DEFAULT_CONTEXT_WINDOW,
        "models": dict(sorted(_context_windows().items())),
    })
