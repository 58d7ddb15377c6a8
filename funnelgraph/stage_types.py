"""
Funnel stage data type definitions using Pydantic

These models mirror the stage snapshot the funnel editor persists
(stages, components, canvas positions and explicit connections), plus the
branch point types derived from them.

Field names are a contract with the persistence layer: snapshots use the
editor's camelCase keys, Python code uses snake_case attributes.
"""

from typing import List, Dict, Any, Optional, Literal, Union, Iterable
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# Handle id the flow canvas uses for stage-level (not per-component) edges
DEFAULT_SOURCE_HANDLE = "default"

# Prefix the flow canvas puts on per-component handle ids
COMPONENT_HANDLE_PREFIX = "comp-"


# ============================================================================
# Stage Structure
# ============================================================================

class Position(BaseModel):
    """Free-form canvas position (display only)."""
    x: float = 0.0
    y: float = 0.0


class Connection(BaseModel):
    """
    Explicit edge drawn on the flow canvas.

    A hint for visual layout only. The authoritative navigation lives on the
    branch point; disagreement between the two is reported by the validator.
    """
    model_config = ConfigDict(populate_by_name=True)

    from_stage_id: Optional[str] = Field(None, alias='fromStageId', description="Source stage id (filled from the owning stage)")
    to_stage_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices('toStageId', 'targetId', 'to_stage_id'),
        serialization_alias='toStageId',
        description="Target stage id",
    )
    source_branch_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices('sourceBranchId', 'sourceHandle', 'source_branch_id'),
        serialization_alias='sourceBranchId',
        description="Branch id (or component id) the edge was drawn from; None for stage-level edges",
    )

    @field_validator('source_branch_id', mode='before')
    @classmethod
    def normalise_source_handle(cls, v):
        """
        The canvas stores stage-level edges under the 'default' handle and
        component edges under 'comp-<component id>'.
        """
        if v in (None, '', DEFAULT_SOURCE_HANDLE):
            return None
        if isinstance(v, str) and v.startswith(COMPONENT_HANDLE_PREFIX):
            return v[len(COMPONENT_HANDLE_PREFIX):] or None
        return v


class Component(BaseModel):
    """
    Widget placed on a stage.

    Opaque to the graph except for the navigation fields in `config` that the
    branch extractor reads.
    """
    model_config = ConfigDict(extra='allow')

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="Component type, e.g. 'options', 'button', 'text'")
    name: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('config', mode='before')
    @classmethod
    def none_config_is_empty(cls, v):
        return {} if v is None else v


class Stage(BaseModel):
    """
    One screen of the funnel; a node in the flow graph.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Immutable stage id")
    name: str = Field("", description="Display name")
    components: List[Component] = Field(default_factory=list)
    position: Optional[Position] = Field(None, description="Canvas position (display only)")
    connections: List[Connection] = Field(
        default_factory=list,
        validation_alias=AliasChoices('connections', 'explicitConnections'),
        serialization_alias='connections',
    )

    @model_validator(mode='after')
    def fill_connection_sources(self):
        for conn in self.connections:
            if conn.from_stage_id is None:
                conn.from_stage_id = self.id
        return self


# ============================================================================
# Branch Points
# ============================================================================

ActionKind = Literal["next", "submit", "goto", "link"]


class BranchAction(BaseModel):
    """
    Navigation action of a branch point.

    - next: advance to the following stage in order
    - submit: finish the funnel
    - goto: jump to `target_stage_id`
    - link: leave the funnel for an external `url`
    """
    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    target_stage_id: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode='after')
    def goto_needs_target(self):
        if self.kind == 'goto' and not self.target_stage_id:
            raise ValueError("goto action requires target_stage_id")
        return self

    @classmethod
    def next(cls) -> 'BranchAction':
        return cls(kind='next')

    @classmethod
    def submit(cls) -> 'BranchAction':
        return cls(kind='submit')

    @classmethod
    def goto(cls, target_stage_id: str) -> 'BranchAction':
        return cls(kind='goto', target_stage_id=target_stage_id)

    @classmethod
    def link(cls, url: Optional[str] = None) -> 'BranchAction':
        return cls(kind='link', url=url)

    @property
    def is_terminal(self) -> bool:
        """True when the action always ends the funnel (submit or external link)."""
        return self.kind in ('submit', 'link')


class BranchPoint(BaseModel):
    """An option or button capable of directing the respondent elsewhere."""
    model_config = ConfigDict(frozen=True)

    branch_id: str = Field(..., min_length=1, description="Stable within the owning stage")
    stage_id: str
    component_id: Optional[str] = Field(None, description="None for the implicit auto-advance branch")
    option_id: Optional[str] = None
    label: Optional[str] = None
    action: BranchAction


# ============================================================================
# Coercion helpers
# ============================================================================

def coerce_stage(stage: Union[Stage, Dict[str, Any]]) -> Stage:
    """Accept a Stage model or a raw snapshot dict."""
    if isinstance(stage, Stage):
        return stage
    return Stage.model_validate(stage)


def coerce_stages(stages: Optional[Iterable[Union[Stage, Dict[str, Any]]]]) -> List[Stage]:
    """Accept a list of Stage models and/or raw snapshot dicts."""
    if not stages:
        return []
    return [coerce_stage(s) for s in stages]
