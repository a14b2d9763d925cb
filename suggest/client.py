"""
suggest/client.py -- Client for the natural-language action-suggestion service.

The route layer depends only on the Suggester protocol; GeminiSuggester is the
production implementation. Tests substitute a fake suggester or a mocked
requests session.

Failure policy: anything that prevents a clean list of actions (transport
error, non-200, unparsable model output) raises SuggestionError. An empty
candidate list, or a candidate with no text, is a valid "nothing to do" and
returns [].

The API key travels in the x-goog-api-key header, never in the URL, so
request-line logging (urllib3 debug output, proxies) does not expose it.
"""

import json
import logging
from typing import Any, Optional, Protocol

import requests
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from core.errors import SuggestionError
from suggest.models import Action, SuggestionResult

logger = logging.getLogger("logicgrid.suggest")

GEMINI_API = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_RESULT_ADAPTER = TypeAdapter(SuggestionResult)

_UNUSABLE = "Suggestion service returned unusable output."

SYSTEM_PROMPT = """
You are a configuration assistant for LogicGrid, a dynamic rule engine UI.

Your ONLY job is to convert natural language into a JSON object with this structure:

{
  "actions": [
    {
      "type": "addColumn" | "removeColumn" | "reorderColumn" | "updateColumn" |
              "setColumns" | "setScoringConfigs" | "applyTemplate" |
              "setProtocolMeta" | "saveProtocol" | "loadProtocol" | "noop",

      // FOR addColumn:
      "preset": "text_input" | "score_input" | "status" | "result",
      "name": "Custom Name",
      "id": "CustomID",      // ALWAYS send "id" if "name" is present.

      // FOR setScoringConfigs:
      "scoringConfigs": [
        {
          "triggerColumn": "NameOfColumnThatTriggersRule",
          "scope": "neither" | "positive" | "negative",
          "rules": [
            {
              "conditions": [
                { "col": "ColName", "op": ">" | "<" | "==" | "!=" | ">=" | "<=", "thresh": "5", "base": "zero" }
              ],
              "updates": [
                { "col": "TargetCol", "val": "NewValue" }
              ]
            }
          ]
        }
      ]
    }
  ]
}

IMPORTANT RULES:
1. For "addColumn":
   - IF the user specifies a name, you MUST include both "name" AND "id".
   - "id" should be the name with spaces removed (e.g. "Awesome Column" -> "AwesomeColumn").
   - If no name is specified, send only the preset and use its defaults.

2. For scoring rules ("If X > 5 then Y = 10"):
   - Use "type": "setScoringConfigs".
   - Include ALL existing scoring configs from the current protocol JSON plus the new one.
   - If a rule mentions a column that does not exist yet, ALSO emit an "addColumn" action before it.
   - "op" must be one of: ">", ">=", "<", "<=", "==", "!=", "always".
   - "base" defaults to "zero". Use "negative" or "positive" when comparing to a control.

3. Preset mappings:
   - "score", "int", "number" -> "score_input"
   - "text", "string", "notes", "comment" -> "text_input"
   - "dropdown", "status", "state" -> "status"
   - "calc", "result", "output" -> "result"

4. NEVER include explanations.
"""


class Suggester(Protocol):
    def suggest(self, prompt: str, document: Any) -> list[Action]: ...


class GeminiSuggester:
    """Suggester backed by the Gemini generateContent endpoint.

    Usage:
        suggester = GeminiSuggester(api_key="...", model="gemini-2.5-flash")
        actions = suggester.suggest("add a score column", {"columns": []})
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        # Shared session for connection pooling; max_redirects kept low for a known API.
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    def _build_request(self, prompt: str, document: Any) -> dict[str, Any]:
        combined = (
            f"Current protocol JSON:\n{json.dumps(document)}\n\n"
            f"User request:\n{prompt}\n\n"
            "Return ONLY a JSON object that matches the AISuggestResponse schema."
        )
        return {
            "contents": [{"role": "user", "parts": [{"text": combined}]}],
            "system_instruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "generationConfig": {"response_mime_type": "application/json"},
        }

    def suggest(self, prompt: str, document: Any) -> list[Action]:
        if not self.api_key:
            raise SuggestionError("Suggestion service is not configured.")
        try:
            resp = self._session.post(
                GEMINI_API.format(model=self.model),
                headers={"x-goog-api-key": self.api_key},
                json=self._build_request(prompt, document),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Suggestion request failed: %s", type(e).__name__)
            raise SuggestionError() from e

        if resp.status_code != 200:
            logger.warning("Suggestion service returned HTTP %d", resp.status_code)
            raise SuggestionError()

        try:
            body = resp.json()
        except ValueError as e:
            raise SuggestionError("Suggestion service returned invalid JSON.") from e
        if not isinstance(body, dict):
            raise SuggestionError("Suggestion service returned invalid JSON.")

        text = _first_candidate_text(body)
        if not text:
            return []

        try:
            result = _RESULT_ADAPTER.validate_json(text)
        except PydanticValidationError as e:
            logger.warning("Unparsable suggestion output (%d chars)", len(text))
            raise SuggestionError(_UNUSABLE) from e
        return list(result.actions)


def _first_candidate_text(body: dict[str, Any]) -> str:
    """Return the trimmed text of the first part of the first candidate, or "".

    Raises SuggestionError when the envelope has the wrong shape.
    """
    candidates = body.get("candidates") or []
    if not isinstance(candidates, list):
        raise SuggestionError(_UNUSABLE)
    if not candidates:
        return ""
    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    parts = (content.get("parts") if isinstance(content, dict) else None) or []
    if not isinstance(candidate, dict) or not isinstance(parts, list):
        raise SuggestionError(_UNUSABLE)
    if not parts:
        return ""
    if not isinstance(parts[0], dict):
        raise SuggestionError(_UNUSABLE)
    text = parts[0].get("text") or ""
    if not isinstance(text, str):
        raise SuggestionError(_UNUSABLE)
    return text.strip()
