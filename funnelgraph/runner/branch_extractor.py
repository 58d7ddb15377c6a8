"""
Branch Point Extractor

Derives the branch points of a stage from its components: every option or
button that can send the respondent somewhere.

Each component kind (see component_kinds.yaml) has one extraction function.
Adding a navigating widget means adding a case here; the resolver never looks
at component config.

Branch ids are built from component id (+ option id), so calling the
extractor twice on an unchanged stage returns the same ids in the same order.
"""

from typing import Any, Callable, Dict, List, Optional, Union

from ..component_kinds import (
    BUTTON,
    CHOICE,
    ITEM_CHOICE,
    LEVEL,
    LOADING,
    load_component_kinds,
)
from ..stage_types import BranchAction, BranchPoint, Component, Stage, coerce_stage


AUTO_BRANCH_ID = '__auto__'
BRANCH_ID_SEPARATOR = ':'


def make_branch_id(component_id: str, option_id: Optional[str] = None) -> str:
    """Branch id for a component, or for one of its options."""
    if option_id is None:
        return component_id
    return f"{component_id}{BRANCH_ID_SEPARATOR}{option_id}"


def extract_branch_points(
    stage: Union[Stage, Dict[str, Any]],
    kinds: Optional[Dict[str, str]] = None,
) -> List[BranchPoint]:
    """
    Extract branch points from a stage, in component order then option order.

    Args:
        stage: Stage model or raw snapshot dict
        kinds: Component type -> kind mapping (defaults to component_kinds.yaml)

    Returns:
        List of BranchPoint; empty for content-only stages. The implicit
        auto-advance branch is added by the resolver, not here.
    """
    stage = coerce_stage(stage)
    if kinds is None:
        kinds = load_component_kinds()

    branch_points: List[BranchPoint] = []
    for component in stage.components:
        extractor = _EXTRACTORS.get(kinds.get(component.type))
        if extractor is None:
            continue
        branch_points.extend(extractor(stage.id, component))
    return branch_points


def auto_branch_point(stage_id: str) -> BranchPoint:
    """Implicit branch of a stage without branch points: advance to the next stage."""
    return BranchPoint(
        branch_id=AUTO_BRANCH_ID,
        stage_id=stage_id,
        action=BranchAction.next(),
    )


# ============================================================================
# Per-kind extraction
# ============================================================================

def _destination_action(destination: Optional[str], destination_stage_id: Optional[str]) -> BranchAction:
    """
    Map an option's destination fields to an action.

    'specific' without a target stage falls back to next, as does any value
    the player does not recognise.
    """
    if destination == 'submit':
        return BranchAction.submit()
    if destination == 'specific' and destination_stage_id:
        return BranchAction.goto(destination_stage_id)
    return BranchAction.next()


def _navigation_action(
    navigation: Optional[str],
    destination_stage_id: Optional[str],
    url: Optional[str],
) -> BranchAction:
    """Map a single-action widget's navigation mode (next/submit/specific/link)."""
    if navigation == 'submit':
        return BranchAction.submit()
    if navigation == 'link' and url:
        return BranchAction.link(url)
    if navigation == 'specific' and destination_stage_id:
        return BranchAction.goto(destination_stage_id)
    return BranchAction.next()


def _label(value: Any) -> Optional[str]:
    """Display label; rich-text or other structured values are dropped."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _option_branches(stage_id: str, component: Component, items_key: str) -> List[BranchPoint]:
    branch_points = []
    for index, item in enumerate(component.config.get(items_key) or []):
        if not isinstance(item, dict):
            continue
        raw_id = item.get('id')
        option_id = str(raw_id) if raw_id not in (None, '') else str(index)
        branch_points.append(BranchPoint(
            branch_id=make_branch_id(component.id, option_id),
            stage_id=stage_id,
            component_id=component.id,
            option_id=option_id,
            label=_label(item.get('text') or item.get('buttonText')),
            action=_destination_action(item.get('destination'), item.get('destinationStageId')),
        ))
    return branch_points


def _choice_branches(stage_id: str, component: Component) -> List[BranchPoint]:
    return _option_branches(stage_id, component, 'options')


def _item_choice_branches(stage_id: str, component: Component) -> List[BranchPoint]:
    return _option_branches(stage_id, component, 'imageButtonItems')


def _single_branch(stage_id: str, component: Component, label: Optional[str], action: BranchAction) -> List[BranchPoint]:
    return [BranchPoint(
        branch_id=make_branch_id(component.id),
        stage_id=stage_id,
        component_id=component.id,
        label=label,
        action=action,
    )]


def _button_branches(stage_id: str, component: Component) -> List[BranchPoint]:
    config = component.config
    action = _navigation_action(
        config.get('buttonAction') or 'next',
        config.get('destinationStageId') or config.get('buttonDestinationStageId'),
        config.get('buttonLink'),
    )
    return _single_branch(stage_id, component, _label(config.get('buttonText')), action)


def _loading_branches(stage_id: str, component: Component) -> List[BranchPoint]:
    config = component.config
    navigation = config.get('loadingNavigation') or 'next'
    # Older configs pick the specific stage through loadingDestination
    if navigation == 'next' and config.get('loadingDestination') == 'specific':
        navigation = 'specific'
    action = _navigation_action(
        navigation,
        config.get('loadingDestinationStageId'),
        config.get('loadingDestinationUrl'),
    )
    return _single_branch(stage_id, component, _label(config.get('loadingTitle')), action)


def _level_branches(stage_id: str, component: Component) -> List[BranchPoint]:
    config = component.config
    navigation = config.get('levelNavigation') or 'none'
    if navigation == 'none':
        return []
    if navigation == 'next' and config.get('levelDestination') == 'specific':
        navigation = 'specific'
    action = _navigation_action(
        navigation,
        config.get('levelDestinationStageId'),
        config.get('levelDestinationUrl'),
    )
    return _single_branch(stage_id, component, _label(config.get('levelTitle')), action)


_EXTRACTORS: Dict[Optional[str], Callable[[str, Component], List[BranchPoint]]] = {
    CHOICE: _choice_branches,
    ITEM_CHOICE: _item_choice_branches,
    BUTTON: _button_branches,
    LOADING: _loading_branches,
    LEVEL: _level_branches,
}
