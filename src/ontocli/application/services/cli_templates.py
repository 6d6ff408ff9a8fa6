"""Jinja2 templates for generated command-line modules.

Every template receives plain strings and lists that the generator has
already sorted; templates never iterate over mappings. Each block after
the header opens with two blank lines and ends with a single newline,
so blocks can be concatenated in any order.
"""

from jinja2 import Environment, StrictUndefined

MODULE_HEADER = '''\
"""{{ cli_name_doc }} command-line interface.

Generated by ontocli from an ontology with {{ command_count }} command(s).
Do not edit by hand; regenerate instead.
"""

{% if async_handlers %}
import asyncio
{% endif %}
from dataclasses import dataclass
{% if uses_path %}
from pathlib import Path
{% endif %}
{% if uses_optional %}
from typing import Optional
{% endif %}

import typer

CLI_NAME = {{ cli_name | pyrepr }}
__version__ = {{ version | pyrepr }}
'''

ARGUMENT_HOLDER = '''

@dataclass(frozen=True)
class {{ command.class_name }}:
{% if doc_blocks %}
    """Arguments of `{{ command.doc_name }}`."""
{% endif %}
{% for field in command.fields %}
    {{ field.ident }}: {{ field.annotation }}{% if field.default is not none %} = {{ field.default }}{% endif %}

{% else %}
{% if not doc_blocks %}
    pass
{% endif %}
{% endfor %}
'''

HANDLER_STUB = '''

{% if async_handlers %}async {% endif %}def {{ command.handler_name }}(args: {{ command.class_name }}) -> None:
{% if doc_blocks %}
    """{{ command.docstring }}

    Bound to {{ command.binding_doc }}.
    """
{% endif %}
    raise NotImplementedError({{ ("handler " ~ command.binding ~ " is not implemented") | pyrepr }})
'''

DISPATCH_TABLE = '''

DISPATCH = {
{% for command in commands %}
    ({{ command.noun | pyrepr }}, {{ command.verb | pyrepr }}): {{ command.handler_name }},
{% endfor %}
}
'''

ROOT_APP = '''

app = typer.Typer(
    name=CLI_NAME,
    help={{ help | pyrepr }},
    add_completion={{ completions }},
    no_args_is_help=True,
{% if colored_help %}
    rich_markup_mode="rich",
{% endif %}
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{CLI_NAME} {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit."
    ),
) -> None:
{% if doc_blocks %}
    """{{ help_doc }}"""
{% else %}
    pass
{% endif %}
'''

NOUN_APP = '''

{{ noun.app_name }} = typer.Typer(
    name={{ noun.name | pyrepr }},
    help={{ noun.help | pyrepr }},
    no_args_is_help=True,
{% if colored_help %}
    rich_markup_mode="rich",
{% endif %}
)
app.add_typer({{ noun.app_name }}, name={{ noun.name | pyrepr }})
'''

COMMAND_WIRING = '''

@{{ noun_app }}.command({{ command.verb | pyrepr }}, help={{ command.help | pyrepr }})
def {{ command.function_name }}(
{% for param in command.params %}
    {{ param.ident }}: {{ param.annotation }} = {{ param.declaration }},
{% endfor %}
) -> None:
{% if doc_blocks %}
    """{{ command.docstring }}
{% if command.params %}

    Args:
{% for param in command.params %}
        {{ param.ident }}: {{ param.doc }}
{% endfor %}
{% endif %}
    """
{% endif %}
    arguments = {{ command.class_name }}(
{% for param in command.params %}
        {{ param.ident }}={{ param.ident }},
{% endfor %}
    )
{% if async_handlers %}
    asyncio.run(DISPATCH[({{ command.noun | pyrepr }}, {{ command.verb | pyrepr }})](arguments))
{% else %}
    DISPATCH[({{ command.noun | pyrepr }}, {{ command.verb | pyrepr }})](arguments)
{% endif %}
'''

MANPAGE = '''

MANPAGE = {{ manpage | pyrepr }}


@app.command("manpage", help="Print the manual page in roff format.")
def manpage() -> None:
{% if doc_blocks %}
    """Print the manual page in roff format."""
{% endif %}
    typer.echo(MANPAGE)
'''

MODULE_FOOTER = '''

if __name__ == "__main__":
    app()
'''

TEMPLATES = {
    "module_header": MODULE_HEADER,
    "argument_holder": ARGUMENT_HOLDER,
    "handler_stub": HANDLER_STUB,
    "dispatch_table": DISPATCH_TABLE,
    "root_app": ROOT_APP,
    "noun_app": NOUN_APP,
    "command_wiring": COMMAND_WIRING,
    "manpage": MANPAGE,
    "module_footer": MODULE_FOOTER,
}


def create_environment() -> Environment:
    """Environment shared by all templates.

    StrictUndefined turns a missing context value into a render error
    instead of an empty string in the generated code.
    """
    env = Environment(
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        autoescape=False,
    )
    env.filters["pyrepr"] = repr
    return env
