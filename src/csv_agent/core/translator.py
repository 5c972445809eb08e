import json
import re
from typing import Any, Dict, List, Optional

from groq import Groq
from pydantic import ValidationError

from src.csv_agent.core.values import to_text
from src.csv_agent.models import ErrorStep, KNOWN_OPERATIONS, Step, parse_step
from src.csv_agent.utils.exceptions import TranslationError
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)

DESCRIPTION_SAMPLE_ROWS = 5


# ---------------------------------------------------------------------------
# PROMPTS
# ---------------------------------------------------------------------------

def _build_system_prompt(columns: List[str]) -> str:
    return f"""You are a helpful and proactive data editing agent. Convert the user's natural
language command into ONE JSON object describing a single operation on a CSV table.

The available columns are: {", ".join(columns)}

Every object has "op" and a short, user-friendly "explanation". Allowed shapes:

  {{"op": "filter", "column": str, "condition": COND, "value": str, "explanation": str}}
  {{"op": "sort", "columns": [str], "directions": ["asc"|"desc"], "explanation": str}}
  {{"op": "dedupe", "keys": [str], "explanation": str}}
  {{"op": "remove_column", "column": str, "explanation": str}}
  {{"op": "rename_column", "old_name": str, "new_name": str, "explanation": str}}
  {{"op": "fill_na", "column": str, "value": str, "explanation": str}}
  {{"op": "conditional_format", "column": str, "condition": COND, "value": str,
    "color": "red"|"green"|"blue"|"yellow"|"purple", "explanation": str}}
  {{"op": "error", "message": str, "suggestions": [str], "explanation": str}}

COND is one of: equals, not_equals, gt, lt, gte, lte, contains, not_contains.

RULES:
1. Use column names exactly as listed.
2. For sorting, default each direction to "asc" when the user does not say.
3. Infer the filter condition from the user's language ("above" -> gt, "at most" -> lte, ...).
4. Highlighting requests ("highlight price green where > 50") are conditional_format.
5. If the command is vague or incomplete ("clean the data", "make it nice"), use "error":
   explain what is needed in "message" and give 3-4 concrete commands in "suggestions"
   based on the columns above.
6. Return ONLY the JSON object. No prose, no code fences.
"""


def _build_description_prompt() -> str:
    return (
        "You are a helpful data analyst. Write a concise, one-sentence description for each "
        "column of a CSV file based on its name and a sample of its data. Respond with a JSON "
        'object of the form {"columns": [{"columnName": str, "description": str}, ...]}.'
    )


# ---------------------------------------------------------------------------
# RESPONSE PARSING
# ---------------------------------------------------------------------------

def _extract_json(raw: str) -> Dict[str, Any]:
    """
    Pull a JSON object out of the LLM response.
    Handles bare JSON, ```json ... ``` fences and stray text around the object.
    """
    text = (raw or "").strip()
    match = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    if match:
        text = match.group(1).strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise TranslationError("AI response did not contain a JSON object.")
        try:
            payload = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise TranslationError(f"AI response was not valid JSON: {e}")
    if not isinstance(payload, dict):
        raise TranslationError("AI response was not a JSON object.")
    return payload


def _to_step(payload: Dict[str, Any]) -> Step:
    """Only the op tag is checked here; parameter problems surface later as no-ops."""
    op = payload.get("op")
    if op not in KNOWN_OPERATIONS:
        raise TranslationError(f"Invalid or missing operation in AI response: {op!r}")
    # Older prompt formats nested parameters under "params".
    params = payload.get("params")
    if isinstance(params, dict):
        payload = {**params, "op": op, "explanation": payload.get("explanation", "")}
    if isinstance(payload.get("value"), (list, dict)):
        payload = {**payload, "value": json.dumps(payload["value"])}
    if op == "error" and not payload.get("message"):
        payload = {**payload, "message": "I couldn't understand that request. Could you please rephrase it?"}
    try:
        return parse_step(payload)
    except ValidationError as e:
        raise TranslationError(f"AI response did not match the '{op}' operation: {e.error_count()} problem(s)")


def _user_message_for(exc: Exception) -> str:
    text = str(exc)
    if "429" in text or "rate_limit" in text or "RESOURCE_EXHAUSTED" in text:
        return ("You have exceeded your API quota. Please wait a moment before trying "
                "again or check your billing details.")
    if "401" in text or "invalid_api_key" in text or "API_KEY_INVALID" in text:
        return "The provided API key is invalid. Please check your configuration."
    return "Sorry, I encountered an issue processing your request. Please try rephrasing."


# ---------------------------------------------------------------------------
# MAIN ENTRY POINT
# ---------------------------------------------------------------------------

class CommandTranslator:
    """
    Turns natural-language commands into Step values through a Groq chat model.

    The client is handed in by the caller; nothing here reads credentials
    from the environment. Every public method degrades instead of raising.
    """

    def __init__(
        self,
        client: Optional[Any],
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 1024,
        max_retries: int = 2,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        response = self.client.chat.completions.create(
            messages=messages,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content

    def parse_command(self, command: str, available_columns: List[str]) -> Step:
        """
        Translate one user command into a Step.

        Returns:
            The Step the model produced, or an ErrorStep carrying a user-facing
            message when the model is unavailable or its output is unusable.
        """
        logger.info(f"Translating command: '{command}'")
        if self.client is None:
            return ErrorStep(
                message="No AI provider is configured. Set GROQ_API_KEY to enable commands.",
                explanation="Failed to process the command.",
            )

        messages = [
            {"role": "system", "content": _build_system_prompt(available_columns)},
            {"role": "user", "content": f'Command: "{command}"'},
        ]

        last_exc: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                raw = self._complete(messages)
                step = _to_step(_extract_json(raw))
                logger.debug(f"Translated command (attempt {attempt + 1}): {step!r}")
                return step
            except TranslationError as e:
                last_exc = e
                logger.warning(f"Unusable AI response on attempt {attempt + 1}: {e.message}")
            except Exception as e:
                last_exc = e
                logger.warning(f"LLM API attempt {attempt + 1} failed: {e}")

        logger.error(f"Command translation failed after {self.max_retries + 1} attempts: {last_exc}")
        return ErrorStep(
            message=_user_message_for(last_exc),
            explanation="Failed to process the command.",
        )

    def describe_columns(self, headers: List[str], rows: List[Dict[str, Any]]) -> Dict[str, str]:
        """One-sentence description per column. Returns {} on any failure."""
        if self.client is None or not headers:
            return {}

        sample = [[to_text(row.get(h)) for h in headers] for row in rows[:DESCRIPTION_SAMPLE_ROWS]]
        messages = [
            {"role": "system", "content": _build_description_prompt()},
            {
                "role": "user",
                "content": f"Column Headers: {json.dumps(headers)}\nData Sample (rows):\n{json.dumps(sample)}",
            },
        ]
        try:
            payload = _extract_json(self._complete(messages))
        except Exception as e:
            logger.warning(f"Column description request failed: {e}")
            return {}

        descriptions: Dict[str, str] = {}
        for item in payload.get("columns", []):
            if not isinstance(item, dict):
                continue
            name, text = item.get("columnName"), item.get("description")
            if name in headers and isinstance(text, str) and text.strip():
                descriptions[name] = text.strip()
        logger.info(f"Received descriptions for {len(descriptions)} of {len(headers)} columns")
        return descriptions


def build_translator(
    api_key: Optional[str],
    model: str,
    temperature: float = 0.1,
    max_tokens: int = 1024,
    max_retries: int = 2,
) -> CommandTranslator:
    """Construct a translator backed by a Groq client, or an offline one without a key."""
    client = Groq(api_key=api_key) if api_key else None
    if client is None:
        logger.warning("GROQ_API_KEY is not set; commands will be answered with an error step.")
    return CommandTranslator(
        client,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        max_retries=max_retries,
    )
