"""Options shared by the plan/apply/destroy commands."""

import click


def engine_options(func):
    """Attach state/provider/parallelism overrides to a command."""
    decorators = [
        click.option('--state', 'state_path', type=click.Path(), help='State file path (overrides config)'),
        click.option('--parallelism', type=click.IntRange(min=1), help='Maximum concurrent provider operations'),
        click.option('--refresh', is_flag=True, help='Read live resources before planning to detect drift'),
        click.option('--fail-fast', is_flag=True, help='Stop starting new actions after the first failure'),
        click.option('--lock', type=click.Choice(['file', 'process', 'none']), help='State lock mode'),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def engine_overrides(state_path, parallelism, refresh, fail_fast, lock) -> dict:
    """Nested settings overrides; unset flags map to None and are ignored."""
    return {
        "parallelism": parallelism,
        "refresh": True if refresh else None,
        "fail_fast": True if fail_fast else None,
        "state": {"path": state_path, "lock": lock},
    }
