"""
Stage fixtures for testing.

Provides sample stage snapshots in the editor's JSON layout.
"""


def content_stage(stage_id: str, name: str = None) -> dict:
    """Stage with only non-navigating components (auto-advance)."""
    return {
        'id': stage_id,
        'name': name or stage_id.title(),
        'components': [
            {'id': f'{stage_id}-text', 'type': 'text', 'config': {'content': 'Hello'}},
        ],
    }


def options_component(component_id: str, options: list) -> dict:
    """
    Options component.

    Each option is (option_id, destination, destination_stage_id).
    """
    return {
        'id': component_id,
        'type': 'options',
        'config': {
            'options': [
                {
                    'id': option_id,
                    'text': f'Option {option_id}',
                    'destination': destination,
                    'destinationStageId': target,
                }
                for option_id, destination, target in options
            ],
        },
    }


def button_component(component_id: str, action: str = 'next', target: str = None, link: str = None) -> dict:
    config = {'buttonText': 'Continue', 'buttonAction': action}
    if target is not None:
        config['destinationStageId'] = target
    if link is not None:
        config['buttonLink'] = link
    return {'id': component_id, 'type': 'button', 'config': config}


def stage(stage_id: str, *components: dict, connections: list = None) -> dict:
    data = {'id': stage_id, 'name': stage_id.title(), 'components': list(components)}
    if connections is not None:
        data['explicitConnections'] = connections
    return data


def scenario_a_stages() -> list:
    """
    Intro → Choice → Result

    Choice has two options: opt1 = next (positional), opt2 = goto Result.
    """
    return [
        content_stage('intro'),
        stage('choice', options_component('q1', [
            ('opt1', 'next', None),
            ('opt2', 'specific', 'result'),
        ])),
        stage('result', button_component('finish', 'submit')),
    ]


def scenario_b_stages() -> list:
    """Stage x jumps to a stage id that does not exist."""
    return [
        content_stage('start'),
        stage('x', button_component('go', 'specific', 'missing-id')),
        stage('end', button_component('finish', 'submit')),
    ]


def scenario_c_stages() -> list:
    """
    s1 → s2 → s4; s3 is never targeted.

    s2 jumps over s3 straight to s4.
    """
    return [
        content_stage('s1'),
        stage('s2', button_component('skip', 'specific', 's4')),
        content_stage('s3'),
        stage('s4', button_component('finish', 'submit')),
    ]


def linear_stages(*stage_ids: str) -> list:
    """Content-only stages advancing in order."""
    return [content_stage(s) for s in stage_ids]


def looping_stages() -> list:
    """
    entry → a ⇄ b → done

    a goes to b; b offers "again" (back to a) or "done".
    """
    return [
        content_stage('entry'),
        stage('a', button_component('to-b', 'specific', 'b')),
        stage('b', options_component('q', [
            ('again', 'specific', 'a'),
            ('finish', 'specific', 'done'),
        ])),
        stage('done', button_component('submit', 'submit')),
    ]
