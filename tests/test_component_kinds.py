"""
Tests for the component kind registry (component_kinds.yaml).
"""

from funnelgraph.component_kinds import (
    BUTTON,
    CHOICE,
    KINDS_PATH,
    get_default_component_kinds,
    kind_for,
    load_component_kinds,
    parse_component_kinds,
)


class TestComponentKinds:
    """Test loading the type -> kind mapping."""

    def test_shipped_yaml_exists(self):
        assert KINDS_PATH.exists()

    def test_shipped_yaml_matches_defaults(self):
        """The packaged config and the built-in fallback agree."""
        assert load_component_kinds() == get_default_component_kinds()

    def test_kind_for(self):
        assert kind_for('options') == CHOICE
        assert kind_for('button') == BUTTON
        assert kind_for('text') is None

    def test_parse_skips_unknown_kinds(self):
        mapping = parse_component_kinds({'kinds': {'choice': ['poll'], 'teleporter': ['portal']}})

        assert mapping == {'poll': 'choice'}

    def test_first_kind_wins(self):
        mapping = parse_component_kinds({'kinds': {'choice': ['w'], 'button': ['w']}})

        assert mapping == {'w': 'choice'}

    def test_missing_file_falls_back(self, tmp_path):
        mapping = load_component_kinds(str(tmp_path / 'absent.yaml'))

        assert mapping == get_default_component_kinds()

    def test_invalid_yaml_falls_back(self, tmp_path):
        path = tmp_path / 'broken.yaml'
        path.write_text('kinds: [unclosed')

        assert load_component_kinds(str(path)) == get_default_component_kinds()

    def test_custom_file(self, tmp_path):
        path = tmp_path / 'kinds.yaml'
        path.write_text('kinds:\n  button:\n    - cta\n')

        assert load_component_kinds(str(path)) == {'cta': 'button'}
