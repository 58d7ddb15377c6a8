"""
Component Kind Registry

Loads the component type -> branch kind mapping from component_kinds.yaml.

Only the kind matters to the graph: text, media, timer, alert and spacer
widgets have no kind and never produce branch points.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CHOICE = 'choice'
ITEM_CHOICE = 'item_choice'
BUTTON = 'button'
LOADING = 'loading'
LEVEL = 'level'

KNOWN_KINDS = (CHOICE, ITEM_CHOICE, BUTTON, LOADING, LEVEL)

KINDS_PATH = Path(__file__).parent / "component_kinds.yaml"


def get_default_component_kinds() -> Dict[str, str]:
    """
    Built-in mapping, used when component_kinds.yaml is missing or unreadable.
    """
    defaults = {
        CHOICE: ['options', 'single', 'multiple', 'yesno', 'single_choice', 'multiple_choice'],
        ITEM_CHOICE: ['image_button', 'image-button'],
        BUTTON: ['button'],
        LOADING: ['loading'],
        LEVEL: ['level'],
    }
    return {component_type: kind for kind, types in defaults.items() for component_type in types}


def parse_component_kinds(data: Optional[dict]) -> Dict[str, str]:
    """
    Flatten the YAML layout ({kinds: {kind: [types]}}) into {type: kind}.

    Unknown kinds are skipped with a warning; a type listed twice keeps its
    first kind.
    """
    mapping: Dict[str, str] = {}
    for kind, types in ((data or {}).get('kinds') or {}).items():
        if kind not in KNOWN_KINDS:
            logger.warning("Ignoring unknown component kind %r in component kinds config", kind)
            continue
        for component_type in types or []:
            mapping.setdefault(str(component_type), kind)
    return mapping


@lru_cache(maxsize=1)
def load_component_kinds(path: Optional[str] = None) -> Dict[str, str]:
    """
    Load component kinds from YAML.

    Returns:
        Dict mapping component type -> kind
        Example: {"options": "choice", "button": "button"}
    """
    kinds_path = Path(path) if path else KINDS_PATH

    if not kinds_path.exists():
        logger.warning("component_kinds.yaml not found at %s; using built-in defaults", kinds_path)
        return get_default_component_kinds()

    try:
        with open(kinds_path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load component kinds from %s: %s", kinds_path, e)
        return get_default_component_kinds()

    mapping = parse_component_kinds(data)
    if not mapping:
        logger.warning("component_kinds.yaml at %s defines no kinds; using built-in defaults", kinds_path)
        return get_default_component_kinds()
    return mapping


def kind_for(component_type: str, kinds: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Branch kind for a component type, or None if it never navigates."""
    if kinds is None:
        kinds = load_component_kinds()
    return kinds.get(component_type)
