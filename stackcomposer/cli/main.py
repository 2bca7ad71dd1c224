"""Click commands: ``compose`` runs one pass, ``graph`` shows the order."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, NoReturn

import click

from stackcomposer import __version__
from stackcomposer.composer import compose as run_composition
from stackcomposer.config import load_config
from stackcomposer.errors import ComposerError
from stackcomposer.graph.builder import DependencyGraphBuilder
from stackcomposer.graph.graph import DependencyGraph
from stackcomposer.manifest.loader import CompositionPlan, load_manifest
from stackcomposer.models.config import ComposerConfig
from stackcomposer.models.remote import RemoteScope
from stackcomposer.observability.logging import get_logger, setup_logging
from stackcomposer.observability.metrics import write_metrics
from stackcomposer.parameters import resolve_parameters
from stackcomposer.publishing import (
    ConfigPublisher,
    FileConfigPublisher,
    HttpConfigPublisher,
    build_publisher,
)
from stackcomposer.remote.resolver import RemoteReferenceResolver
from stackcomposer.remote.stores import InMemoryParameterStore, ParameterStore, SsmParameterStore


def _parse_pairs(_ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param=param)
        pairs[key] = value
    return pairs


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise click.BadParameter(f"cannot read {what} {path}: {exc}") from exc


def _load_context(context_file: Path | None, inline: dict[str, str]) -> dict[str, str]:
    """Context values; inline ``--context`` entries win over the file.

    The file may be a flat JSON object or a ``cdk.json``-style document with
    a top-level ``context`` object.
    """
    context: dict[str, str] = {}
    if context_file is not None:
        data = _read_json(context_file, "context file")
        if isinstance(data, dict) and isinstance(data.get("context"), dict):
            data = data["context"]
        if not isinstance(data, dict):
            raise click.BadParameter(f"context file {context_file} must hold a JSON object")
        context.update({str(key): str(value) for key, value in data.items() if value is not None})
    context.update(inline)
    return context


def _load_offline_store(path: Path) -> InMemoryParameterStore:
    """``{"us-east-1": {"/name": "value"}, "123456789012/eu-west-1": {...}}``."""
    data = _read_json(path, "offline store")
    if not isinstance(data, dict):
        raise click.BadParameter(f"offline store {path} must hold a JSON object")
    store = InMemoryParameterStore()
    for scope_key, values in data.items():
        if not isinstance(values, dict):
            raise click.BadParameter(f"offline store {path}: scope {scope_key!r} must map names to values")
        account, _, region = str(scope_key).rpartition("/")
        scope = RemoteScope(region=region, account=account or None)
        for name, value in values.items():
            store.put(scope, name, str(value))
    return store


def _build_resolver(config: ComposerConfig, offline_store: Path | None) -> RemoteReferenceResolver:
    store: ParameterStore
    if offline_store is not None:
        store = _load_offline_store(offline_store)
    else:
        store = SsmParameterStore(
            role_arn_template=config.resolver.role_arn_template,
            with_decryption=config.resolver.with_decryption,
        )
    return RemoteReferenceResolver(
        store,
        timeout_seconds=config.resolver.timeout_seconds,
        max_retries=config.resolver.max_retries,
        backoff_seconds=config.resolver.backoff_seconds,
        concurrency=config.resolver.concurrency,
    )


def _prepare_plan(
    config: ComposerConfig,
    manifest_path: Path,
    context: dict[str, str],
    params: dict[str, str],
) -> CompositionPlan:
    manifest = load_manifest(manifest_path)
    resolved = resolve_parameters(manifest.parameter_specs(), overrides=params, context=context, environ=os.environ)
    return manifest.build(resolved, stack_name=config.deployment.stack_name)


def _export_metrics(path: str) -> None:
    """Runs when the command ends, whether it succeeded or failed."""
    try:
        write_metrics(path)
    except OSError as exc:
        get_logger("cli").warning("metrics_export_failed", path=path, error=str(exc))
        return
    get_logger("cli").debug("metrics_exported", path=path)


def _fail(exc: ComposerError) -> NoReturn:
    get_logger("cli").critical(
        "composition_failed",
        error_type=type(exc).__name__,
        identifier=exc.identifier,
        error=str(exc),
    )
    click.echo(f"error: {exc} [{exc.identifier}]", err=True)
    raise SystemExit(1) from exc


_manifest_argument = click.argument(
    "manifest",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
_context_option = click.option(
    "--context",
    "contexts",
    multiple=True,
    callback=_parse_pairs,
    metavar="KEY=VALUE",
    help="Context value (repeatable).",
)
_context_file_option = click.option(
    "--context-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON context file (flat object or cdk.json-style).",
)
_param_option = click.option(
    "--param",
    "params",
    multiple=True,
    callback=_parse_pairs,
    metavar="KEY=VALUE",
    help="Parameter override; wins over environment and context (repeatable).",
)
_offline_store_option = click.option(
    "--offline-store",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Resolve remote references from a JSON file instead of SSM.",
)


@click.group()
@click.version_option(__version__, prog_name="stackcomposer")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Overrides STACKCOMPOSER_LOG_LEVEL.",
)
@click.option(
    "--metrics-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write Prometheus metrics here when the command ends. Overrides STACKCOMPOSER_METRICS_FILE.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, metrics_file: Path | None) -> None:
    """Compose a web application deployment from declarative resources."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.UsageError(f"invalid configuration: {exc}") from exc
    if log_level:
        config.log.level = log_level
    if metrics_file is not None:
        config.metrics.textfile = str(metrics_file)
    setup_logging(config.log.level, config.log.format)
    if config.metrics.textfile:
        ctx.call_on_close(lambda: _export_metrics(config.metrics.textfile))
    ctx.obj = config


@cli.command("compose")
@_manifest_argument
@_context_option
@_context_file_option
@_param_option
@_offline_store_option
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), help="Write the artifact to this file.")
@click.option("--publish-url", default=None, help="PUT the artifact to this URL.")
@click.option("--region", default=None, help="Deployment region written into the artifact.")
@click.pass_obj
def compose_command(
    config: ComposerConfig,
    manifest: Path,
    contexts: dict[str, str],
    context_file: Path | None,
    params: dict[str, str],
    offline_store: Path | None,
    output: Path | None,
    publish_url: str | None,
    region: str | None,
) -> None:
    """Run one composition pass and print the runtime config artifact."""
    publisher: ConfigPublisher | None
    if publish_url:
        publisher = HttpConfigPublisher(url=publish_url, timeout=config.publisher.timeout_seconds)
    elif output is not None:
        publisher = FileConfigPublisher(output)
    else:
        publisher = build_publisher(config.publisher)

    try:
        plan = _prepare_plan(config, manifest, _load_context(context_file, contexts), params)
        resolver = _build_resolver(config, offline_store)
        result = asyncio.run(
            run_composition(plan, resolver, region=region or config.deployment.region, publisher=publisher)
        )
    except ComposerError as exc:
        _fail(exc)

    click.echo(result.artifact.to_json().decode("utf-8"), nl=False)


@cli.command("graph")
@_manifest_argument
@_context_option
@_context_file_option
@_param_option
@_offline_store_option
@click.pass_obj
def graph_command(
    config: ComposerConfig,
    manifest: Path,
    contexts: dict[str, str],
    context_file: Path | None,
    params: dict[str, str],
    offline_store: Path | None,
) -> None:
    """Resolve remote references, finalize the graph and print its order."""
    try:
        plan = _prepare_plan(config, manifest, _load_context(context_file, contexts), params)
        resolver = _build_resolver(config, offline_store)
        graph = asyncio.run(_finalize(plan, resolver))
    except ComposerError as exc:
        _fail(exc)

    for position, node in enumerate(graph, start=1):
        deps = ", ".join(node.dependencies) or "-"
        click.echo(f"{position:>3}. {node.path} [{node.kind}] <- {deps}")


async def _finalize(plan: CompositionPlan, resolver: RemoteReferenceResolver) -> DependencyGraph:
    builder = DependencyGraphBuilder(stack_name=plan.stack_name)
    for spec in plan.specs:
        builder.add_node(spec)
    refs = plan.remote_refs.fresh()
    await resolver.resolve_all(refs)
    return builder.finalize(refs)
