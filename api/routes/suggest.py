"""
api/routes/suggest.py -- Natural-language action suggestions for the protocol builder.

Route (require_approved):
  POST /api/ai/suggest  -- {prompt, protocol} -> {actions: [...]}

Quota: each account gets settings.suggest_usage_limit successful calls. The
check happens before the outbound call (429 once used up) and the counter is
bumped only after a successful answer, so failures are free. The bump is a
read-modify-write on the row loaded at the start of the request; concurrent
calls from one account can under-count.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import SuggestRequest
from auth.dependencies import require_approved
from auth.models import User
from core.config import get_settings
from core.errors import InternalError, QuotaExceededError, ValidationError
from suggest.models import SuggestionResult

logger = logging.getLogger("logicgrid.api")

router = APIRouter(prefix="/api/ai", tags=["Suggestions"])


@router.post("/suggest", response_model=SuggestionResult, response_model_exclude_none=True)
def suggest(
    request: Request,
    body: SuggestRequest,
    current_user: User = Depends(require_approved),
) -> SuggestionResult:
    limit = get_settings().suggest_usage_limit
    if current_user.suggestion_usage >= limit:
        raise QuotaExceededError(f"Demo limit reached ({limit} requests max per account).")
    if not body.prompt.strip():
        raise ValidationError("Prompt is required.")

    suggester = request.app.state.suggester
    if suggester is None:
        raise InternalError("Suggestion service is not configured.")

    actions = suggester.suggest(body.prompt, body.protocol)
    request.app.state.user_store.set_suggestion_usage(current_user.id, current_user.suggestion_usage + 1)
    logger.info("Suggestion served: user_id=%s actions=%d", current_user.id, len(actions))
    return SuggestionResult(actions=actions)
