"""
session.py
─────────────────────────────────────────────────────────────────────────────
Session controller: the only stateful piece of the application.

Owns the committed dataset, its schema, the step log and undo history, the
conditional format rules, the on-screen sort and the single pending preview.
Status gating (idle -> interpreting -> previewing -> awaiting_confirmation
-> applying -> idle) guarantees at most one step is in flight at a time.

The engine functions it calls are pure; every mutation here is a single
attribute assignment of a freshly built value. The controller holds no lock:
callers serialize access (the API runs every handler on the event loop).
─────────────────────────────────────────────────────────────────────────────
"""

import uuid
from typing import Any, Dict, List, Optional

from src.csv_agent.core.export import dataset_to_csv, steps_to_json
from src.csv_agent.core.formatting import cell_color, remove_rule, rule_from_step
from src.csv_agent.core.history import can_undo, commit, current_entry, start_history, undo
from src.csv_agent.core.ingestion import ingest_file
from src.csv_agent.core.preview import preview_step
from src.csv_agent.core.sorting import next_sort_config, sort_rows
from src.csv_agent.core.step_applier import apply_step
from src.csv_agent.core.translator import CommandTranslator
from src.csv_agent.models import (
    AgentStatus,
    ColumnSchema,
    ConditionalFormatRule,
    ConditionalFormatStep,
    Dataset,
    DatasetContext,
    ErrorStep,
    FormattingColor,
    History,
    Message,
    PreviewResult,
    RemoveColumnStep,
    RenameColumnStep,
    Row,
    SortConfig,
)
from src.csv_agent.utils.exceptions import FileProcessingError, SessionStateError
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)


def schema_after_step(schema: ColumnSchema, step: Any) -> ColumnSchema:
    """Carry schema entries through a committed step. Types are never re-inferred."""
    if isinstance(step, RenameColumnStep):
        if step.old_name not in schema or step.new_name in schema:
            return dict(schema)
        return {
            (step.new_name if name == step.old_name else name): info
            for name, info in schema.items()
        }
    if isinstance(step, RemoveColumnStep):
        return {name: info for name, info in schema.items() if name != step.column}
    return dict(schema)


def derive_schema(base_schema: ColumnSchema, steps) -> ColumnSchema:
    schema = dict(base_schema)
    for step in steps:
        schema = schema_after_step(schema, step)
    return schema


class SessionController:
    """
    Orchestrates one editing session over a single uploaded file.

    Args:
        translator: Turns commands into steps. Passed in so the session never
            touches credentials or the network setup itself.
    """

    def __init__(self, translator: CommandTranslator):
        self.translator = translator
        self.reset()

    # ── state ────────────────────────────────────────────────────────────────
    def reset(self) -> None:
        self.filename: str = ""
        self.load_id: Optional[str] = None
        self.dataset: Dataset = Dataset()
        self.schema: ColumnSchema = {}
        self._base_schema: ColumnSchema = {}
        self.history: History = History()
        self.steps: List[Any] = []
        self.rules: List[ConditionalFormatRule] = []
        self.sort_config: Optional[SortConfig] = None
        self.pending: Optional[PreviewResult] = None
        self.status: AgentStatus = AgentStatus.IDLE
        self.messages: List[Message] = []

    @property
    def has_data(self) -> bool:
        return bool(self.dataset.headers)

    @property
    def can_undo(self) -> bool:
        return can_undo(self.history)

    def _say(self, content: str, suggestions: Optional[List[str]] = None, sender: str = "agent") -> Message:
        message = Message(
            id=uuid.uuid4().hex,
            sender=sender,
            content=content,
            suggestions=suggestions or [],
        )
        self.messages = self.messages + [message]
        return message

    def _require_idle(self) -> None:
        if not self.has_data:
            raise SessionStateError("No dataset loaded. Please upload a CSV file first.")
        if self.status != AgentStatus.IDLE:
            raise SessionStateError(
                f"Cannot start a new command while the session is '{self.status.value}'. "
                "Confirm or cancel the pending change first."
            )

    def _drop_stale_sort(self) -> None:
        if self.sort_config and self.sort_config.key not in self.dataset.headers:
            self.sort_config = None

    # ── loading ──────────────────────────────────────────────────────────────
    def load(self, content: bytes, filename: str) -> DatasetContext:
        """
        Replace the session with a freshly parsed file.

        Raises:
            FileProcessingError: The file could not be parsed. The session is
                left empty with the error recorded in the message log.
        """
        self.reset()
        self.filename = filename
        self.load_id = uuid.uuid4().hex
        self.status = AgentStatus.APPLYING
        try:
            context = ingest_file(content, filename)
        except FileProcessingError as e:
            self.reset()
            self._say(f"Error parsing CSV: {e.message}")
            raise
        except Exception:
            self.reset()
            raise

        self.dataset = context.dataset
        self.schema = dict(context.columns)
        self._base_schema = dict(context.columns)
        self.history = start_history(context.dataset)
        self.status = AgentStatus.IDLE
        self._say(
            f"Loaded {filename}. {len(context.dataset.rows)} rows and "
            f"{len(context.dataset.headers)} columns. Ready for your instructions."
        )
        return context

    def apply_descriptions(self, descriptions: Dict[str, str], load_id: Optional[str] = None) -> bool:
        """
        Attach column descriptions; names that no longer exist are ignored.

        Args:
            load_id: The load the descriptions were computed for. When it no
                longer matches the session's current load they are dropped.
        """
        if load_id is not None and load_id != self.load_id:
            logger.info("Dropping column descriptions computed for a previous upload")
            return False
        schema = dict(self.schema)
        base = dict(self._base_schema)
        for name, text in descriptions.items():
            if name not in schema:
                logger.debug(f"Dropping description for vanished column '{name}'")
                continue
            schema[name] = schema[name].model_copy(update={"description": text})
            if name in base:
                base[name] = base[name].model_copy(update={"description": text})
        self.schema = schema
        self._base_schema = base
        return True

    # ── commands ─────────────────────────────────────────────────────────────
    def submit_command(self, command: str) -> Optional[PreviewResult]:
        """Translate a command and preview it. Returns None when nothing awaits confirmation."""
        self._require_idle()
        self._say(command, sender="user")
        self.status = AgentStatus.INTERPRETING
        self.pending = None
        try:
            step = self.translator.parse_command(command, list(self.dataset.headers))
        except Exception:
            self.status = AgentStatus.IDLE
            raise
        return self._handle_step(step)

    def propose_step(self, step: Any) -> Optional[PreviewResult]:
        """Preview a step built directly by the client rather than the translator."""
        self._require_idle()
        self.status = AgentStatus.INTERPRETING
        return self._handle_step(step)

    def _handle_step(self, step: Any) -> Optional[PreviewResult]:
        if isinstance(step, ErrorStep):
            self._say(
                step.message or "I couldn't understand that request. Could you please rephrase it?",
                suggestions=step.suggestions,
            )
            self.status = AgentStatus.IDLE
            return None

        if isinstance(step, ConditionalFormatStep):
            self.rules = self.rules + [rule_from_step(step)]
            self._say(f"Applied formatting rule: {step.explanation}")
            self.status = AgentStatus.IDLE
            return None

        self.status = AgentStatus.PREVIEWING
        try:
            preview = preview_step(self.dataset, step)
        except Exception:
            self.status = AgentStatus.IDLE
            raise
        self.pending = preview
        self.status = AgentStatus.AWAITING_CONFIRMATION
        return preview

    def confirm(self) -> Dataset:
        """Commit the pending step."""
        if self.pending is None or self.status != AgentStatus.AWAITING_CONFIRMATION:
            raise SessionStateError("There is no pending change to apply.")

        step = self.pending.step
        self.status = AgentStatus.APPLYING
        try:
            dataset = apply_step(self.dataset, step)
            steps = self.steps + [step]
            self.history = commit(self.history, dataset, steps)
        except Exception:
            self.status = AgentStatus.AWAITING_CONFIRMATION
            raise

        self.dataset = dataset
        self.steps = steps
        self.schema = schema_after_step(self.schema, step)
        self._drop_stale_sort()
        self.pending = None
        self.status = AgentStatus.IDLE
        self._say(f"Applied: {step.explanation}")
        return dataset

    def cancel(self) -> None:
        """Discard the pending preview. Nothing committed is touched."""
        if self.pending is None:
            return
        self.pending = None
        self.status = AgentStatus.IDLE

    def undo(self) -> bool:
        """Revert the last committed step. Returns False when there is nothing to undo."""
        if self.status not in (AgentStatus.IDLE, AgentStatus.AWAITING_CONFIRMATION):
            raise SessionStateError(f"Cannot undo while the session is '{self.status.value}'.")
        if not self.can_undo:
            return False

        self.history = undo(self.history)
        entry = current_entry(self.history)
        self.dataset = entry.dataset
        self.steps = list(entry.steps)
        self.schema = derive_schema(self._base_schema, self.steps)
        self._drop_stale_sort()
        self.pending = None
        self.status = AgentStatus.IDLE
        self._say("Undo successful. Reverted to the previous state.")
        return True

    # ── display ──────────────────────────────────────────────────────────────
    def toggle_sort(self, key: str) -> Optional[SortConfig]:
        if key not in self.dataset.headers:
            logger.info(f"Ignoring sort on unknown column '{key}'")
            return self.sort_config
        self.sort_config = next_sort_config(self.sort_config, key)
        return self.sort_config

    def display_rows(self) -> List[Row]:
        return sort_rows(self.dataset.rows, self.sort_config, self.schema)

    def cell_color(self, value: Any, column: str) -> Optional[FormattingColor]:
        return cell_color(value, column, self.rules)

    def remove_format(self, rule_id: str) -> bool:
        remaining = remove_rule(self.rules, rule_id)
        removed = len(remaining) != len(self.rules)
        self.rules = remaining
        return removed

    # ── export ───────────────────────────────────────────────────────────────
    def export_csv(self) -> str:
        return dataset_to_csv(self.dataset)

    def export_steps(self) -> str:
        return steps_to_json(self.steps)
