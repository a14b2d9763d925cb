"""
suggest/models.py -- Typed actions returned by the action-suggestion service.

The service answers a natural-language request with a list of edits to apply to
the client's protocol document. Each edit is one variant of a closed union
keyed by "type"; a variant carries only the fields that edit needs.

Field names are snake_case in Python and camelCase on the wire (the browser
client and the model prompt both speak camelCase). Unknown fields from the
model are dropped rather than rejected so a chatty answer still parses.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


class ColumnRef(_WireModel):
    """Points at one column by id, display name, or position."""

    by_id: Optional[str] = None
    by_name: Optional[str] = None
    by_index: Optional[int] = None


class ColumnSpec(_WireModel):
    preset: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    abbr: Optional[str] = None


class ConditionSpec(_WireModel):
    col: str
    op: str
    thresh: str = ""
    base: str = "zero"  # "zero" | "negative" | "positive"


class UpdateSpec(_WireModel):
    col: str
    val: str


class RuleSpec(_WireModel):
    conditions: list[ConditionSpec] = Field(default_factory=list)
    updates: list[UpdateSpec] = Field(default_factory=list)


class ScoringConfigSpec(_WireModel):
    trigger_column: str
    scope: str = "neither"  # "neither" | "positive" | "negative"
    require_negative: bool = False
    require_positive: bool = False
    rules: list[RuleSpec] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Action variants
# ---------------------------------------------------------------------------


class AddColumn(_WireModel):
    type: Literal["addColumn"] = "addColumn"
    preset: Optional[str] = None
    position: Optional[str] = None
    target_id: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None


class RemoveColumn(_WireModel):
    type: Literal["removeColumn"] = "removeColumn"
    target: Optional[ColumnRef] = None
    target_id: Optional[str] = None
    index: Optional[int] = None


class ReorderColumn(_WireModel):
    type: Literal["reorderColumn"] = "reorderColumn"
    target: Optional[ColumnRef] = None
    index: Optional[int] = None
    new_index: int


class UpdateColumn(_WireModel):
    type: Literal["updateColumn"] = "updateColumn"
    target: Optional[ColumnRef] = None
    index: Optional[int] = None
    changes: dict[str, Any] = Field(default_factory=dict)


class SetColumns(_WireModel):
    type: Literal["setColumns"] = "setColumns"
    columns: list[ColumnSpec] = Field(default_factory=list)


class SetScoringConfigs(_WireModel):
    type: Literal["setScoringConfigs"] = "setScoringConfigs"
    scoring_configs: list[ScoringConfigSpec] = Field(default_factory=list)


class ApplyTemplate(_WireModel):
    type: Literal["applyTemplate"] = "applyTemplate"
    template_key: str


class SetProtocolMeta(_WireModel):
    type: Literal["setProtocolMeta"] = "setProtocolMeta"
    name: Optional[str] = None
    protocol_id: Optional[int] = None
    version_number: Optional[int] = None


class SaveProtocol(_WireModel):
    type: Literal["saveProtocol"] = "saveProtocol"
    name: Optional[str] = None


class LoadProtocol(_WireModel):
    type: Literal["loadProtocol"] = "loadProtocol"
    id: Union[int, str, None] = None
    name: Optional[str] = None


class Noop(_WireModel):
    type: Literal["noop"] = "noop"


Action = Annotated[
    Union[
        AddColumn,
        RemoveColumn,
        ReorderColumn,
        UpdateColumn,
        SetColumns,
        SetScoringConfigs,
        ApplyTemplate,
        SetProtocolMeta,
        SaveProtocol,
        LoadProtocol,
        Noop,
    ],
    Field(discriminator="type"),
]


class SuggestionResult(_WireModel):
    """Response body of POST /api/ai/suggest."""

    actions: list[Action] = Field(default_factory=list)
