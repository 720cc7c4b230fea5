"""Command-line interface for gql-pyengine."""

import asyncio
import importlib
import importlib.util
import json
import logging
import sys
from pathlib import Path

import click

from .core.config import EngineConfig
from .core.engine import GraphQLEngine
from .core.errors import GraphQLError, ValidationErrors
from .core.parser import parse
from .core.types import Schema
from .core.validator import validate_document


def load_schema(target: str) -> Schema:
    """Load a Schema from "package.module:attr" or "path/to/file.py:attr"."""
    module_name, sep, attr = target.rpartition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected MODULE:ATTR, got {target!r}", param_hint="--schema")

    if module_name.endswith(".py"):
        path = Path(module_name).resolve()
        if not path.is_file():
            raise click.BadParameter(f"no such file: {module_name}", param_hint="--schema")
        spec = importlib.util.spec_from_file_location(path.stem, path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    else:
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise click.BadParameter(f"cannot import {module_name}: {exc}", param_hint="--schema")

    schema = getattr(module, attr, None)
    if not isinstance(schema, Schema):
        raise click.BadParameter(f"{target} is not a Schema", param_hint="--schema")
    return schema


def setup_logging(verbose: bool):
    """Route engine debug logging to stderr when verbose."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


schema_option = click.option(
    "--schema",
    "-s",
    "schema_target",
    required=True,
    help="Schema to use, as MODULE:ATTR or FILE.py:ATTR.",
)
verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)


@click.group()
@click.version_option(package_name="gql-pyengine")
def main():
    """GraphQL query engine for Python.

    Parse, validate and execute GraphQL queries against Python schemas.
    """
    pass


@main.command("parse")
@click.argument("query", type=click.File("r"))
@verbose_option
def parse_command(query, verbose: bool):
    """Check the syntax of a query document.

    Examples:

        gql-pyengine parse ./query.graphql

        echo '{ hello }' | gql-pyengine parse -
    """
    setup_logging(verbose)
    try:
        document = parse(query.read())
    except GraphQLError as exc:
        click.echo(f"Parse error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Operations: {len(document.operations)}")
    for operation in document.operations:
        click.echo(f"  {operation.kind.value} {operation.name or '<anonymous>'}")
    click.echo(f"Fragments: {len(document.fragments)}")
    if verbose:
        for name, fragment in document.fragments.items():
            click.echo(f"  {name} on {fragment.on}")


@main.command()
@click.argument("query", type=click.File("r"))
@schema_option
@click.option("--operation", "-o", "operation_name", default=None, help="Operation to validate.")
@click.option("--max-depth", type=click.IntRange(min=1), default=None, help="Maximum query depth.")
@verbose_option
def validate(query, schema_target: str, operation_name: str | None, max_depth: int | None, verbose: bool):
    """Validate a query document against a schema.

    Examples:

        gql-pyengine validate --schema myapp.schema:schema ./query.graphql
    """
    setup_logging(verbose)
    schema = load_schema(schema_target)
    try:
        document = parse(query.read(), operation_name=operation_name)
        validate_document(schema, document, operation_name, max_depth=max_depth)
    except ValidationErrors as exc:
        for error in exc.errors:
            click.echo(f"Validation error: {error.message}", err=True)
        sys.exit(1)
    except GraphQLError as exc:
        click.echo(f"Parse error: {exc}", err=True)
        sys.exit(1)

    click.echo("Valid.")


@main.command()
@click.argument("query", type=click.File("r"))
@schema_option
@click.option("--variables", "-V", default=None, help="Variables as a JSON object.")
@click.option("--operation", "-o", "operation_name", default=None, help="Operation to run.")
@click.option("--max-depth", type=click.IntRange(min=1), default=None, help="Maximum query depth.")
@verbose_option
def run(
    query,
    schema_target: str,
    variables: str | None,
    operation_name: str | None,
    max_depth: int | None,
    verbose: bool,
):
    """Execute a query and print the JSON response.

    Examples:

        gql-pyengine run -s examples/demo_starwars.py:schema ./hero.graphql

        gql-pyengine run -s myapp.schema:schema -V '{"id": "1000"}' ./human.graphql
    """
    setup_logging(verbose)
    schema = load_schema(schema_target)

    parsed_variables = None
    if variables:
        try:
            parsed_variables = json.loads(variables)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"invalid JSON: {exc}", param_hint="--variables")
        if not isinstance(parsed_variables, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--variables")

    engine = GraphQLEngine(schema, EngineConfig(max_depth=max_depth))
    response = asyncio.run(
        engine.execute(query.read(), parsed_variables, operation_name=operation_name)
    )
    click.echo(json.dumps(response.to_dict(), indent=2, default=str))
    if response.data is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
