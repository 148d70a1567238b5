"""Command-line interface for seo-orchestrator."""

import json
import logging
import math
import sys
from dataclasses import replace
from typing import Optional, Tuple, Dict, Any

import click

from . import __version__
from .client import SeoClient
from .config import OrchestratorConfig
from .logging_config import setup_logging
from .providers import BUILTIN_BACKENDS
from .providers.base import ProviderSettings


@click.group()
@click.version_option(version=__version__, prog_name="seo-orchestrator")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="JSON config file (defaults to SEO_AI_* environment variables)")
@click.option("--backend", "-b", help="Default backend")
@click.option("--model", "-m", help="Model for the default backend")
@click.option("--chain", help="Comma-separated fallback chain, e.g. openai,anthropic")
@click.option("--no-cache", is_flag=True, help="Disable the response cache")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json-logs", is_flag=True, help="Log as JSON lines")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], backend: Optional[str], model: Optional[str],
        chain: Optional[str], no_cache: bool, verbose: bool, json_logs: bool) -> None:
    """AI backend orchestration for SEO titles, descriptions and keywords."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["backend"] = backend
    ctx.obj["model"] = model
    ctx.obj["chain"] = chain
    ctx.obj["no_cache"] = no_cache
    ctx.obj["verbose"] = verbose

    setup_logging(logging.DEBUG if verbose else logging.WARNING, json_output=json_logs)


def load_config(ctx: click.Context) -> OrchestratorConfig:
    """Build the config from file or environment plus command line overrides."""
    if ctx.obj.get("config_path"):
        config = OrchestratorConfig.from_file(ctx.obj["config_path"])
    else:
        config = OrchestratorConfig.from_env()

    if ctx.obj.get("backend"):
        config.default_backend = ctx.obj["backend"].lower()
    if ctx.obj.get("chain"):
        config.fallback_chain = [name.strip().lower() for name in ctx.obj["chain"].split(",") if name.strip()]
    if ctx.obj.get("no_cache"):
        config.cache_enabled = False
    if ctx.obj.get("model"):
        settings = config.providers.get(config.default_backend) or ProviderSettings()
        config.providers[config.default_backend] = replace(settings, model=ctx.obj["model"])
    return config


def get_client(ctx: click.Context) -> SeoClient:
    """Create client from context."""
    return SeoClient(load_config(ctx), transport=ctx.obj.get("transport"))


def fail(ctx: click.Context, error: Exception) -> None:
    if ctx.obj.get("verbose"):
        import traceback
        click.echo(traceback.format_exc(), err=True)
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def build_analysis(summary: Optional[str], content: Optional[str], keywords: Tuple[str, ...],
                   headings: Tuple[str, ...]) -> Dict[str, Any]:
    analysis: Dict[str, Any] = {}
    if summary:
        analysis["summary"] = summary
    if content:
        analysis["main_content"] = content
    if keywords:
        analysis["keywords"] = list(keywords)
    if headings:
        analysis["headings"] = [{"text": heading} for heading in headings]
    if not analysis:
        raise click.UsageError("Provide at least one of --summary, --content, --keyword or --heading")
    return analysis


def analysis_options(func: Any) -> Any:
    func = click.option("--heading", "headings", multiple=True, help="Page heading (repeatable)")(func)
    func = click.option("--keyword", "-k", "keywords", multiple=True, help="Known keyword (repeatable)")(func)
    func = click.option("--content", "-c", help="Main page content")(func)
    func = click.option("--summary", "-s", help="Content summary")(func)
    return func


@cli.command()
@click.argument("prompt")
@click.option("--system", help="System message")
@click.option("--max-tokens", "-t", type=int, help="Maximum tokens in response")
@click.option("--temperature", type=float, help="Sampling temperature")
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON")
@click.pass_context
def generate(ctx: click.Context, prompt: str, system: Optional[str], max_tokens: Optional[int],
             temperature: Optional[float], json_output: bool) -> None:
    """Generate free-form text with fallback across backends.

    Example:
        seo-orchestrator generate "Write a tagline for a bakery"
        seo-orchestrator --chain openai,anthropic generate "Hello" --max-tokens 50
    """
    options: Dict[str, Any] = {}
    if system:
        options["system_message"] = system
    if max_tokens is not None:
        options["max_tokens"] = max_tokens
    if temperature is not None:
        options["temperature"] = temperature

    try:
        with get_client(ctx) as client:
            text = client.generate(prompt, options)
            if json_output:
                click.echo(json.dumps({"content": text}, indent=2))
            else:
                click.echo(text)
    except Exception as e:
        fail(ctx, e)


@cli.command()
@analysis_options
@click.option("--max-length", type=int, default=60, show_default=True, help="Maximum title length")
@click.pass_context
def title(ctx: click.Context, summary: Optional[str], content: Optional[str], keywords: Tuple[str, ...],
          headings: Tuple[str, ...], max_length: int) -> None:
    """Generate an SEO page title.

    Example:
        seo-orchestrator title --summary "Guide to sourdough baking" -k sourdough -k bread
    """
    analysis = build_analysis(summary, content, keywords, headings)
    try:
        with get_client(ctx) as client:
            click.echo(client.generate_title(analysis, {"max_length": max_length}))
    except Exception as e:
        fail(ctx, e)


@cli.command()
@analysis_options
@click.option("--max-length", type=int, default=160, show_default=True, help="Maximum description length")
@click.pass_context
def description(ctx: click.Context, summary: Optional[str], content: Optional[str],
                keywords: Tuple[str, ...], headings: Tuple[str, ...], max_length: int) -> None:
    """Generate an SEO meta description.

    Example:
        seo-orchestrator description --summary "Guide to sourdough baking"
    """
    analysis = build_analysis(summary, content, keywords, headings)
    try:
        with get_client(ctx) as client:
            click.echo(client.generate_description(analysis, {"max_length": max_length}))
    except Exception as e:
        fail(ctx, e)


@cli.command()
@analysis_options
@click.option("--max-keywords", type=int, default=10, show_default=True, help="Maximum number of keywords")
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON")
@click.pass_context
def keywords(ctx: click.Context, summary: Optional[str], content: Optional[str],
             keywords: Tuple[str, ...], headings: Tuple[str, ...], max_keywords: int,
             json_output: bool) -> None:
    """Generate SEO keywords, one per line.

    Example:
        seo-orchestrator keywords --content "$(cat article.txt)" --max-keywords 5
    """
    analysis = build_analysis(summary, content, keywords, headings)
    try:
        with get_client(ctx) as client:
            result = client.generate_keywords(analysis, {"max_keywords": max_keywords})
            if json_output:
                click.echo(json.dumps(result, indent=2))
            else:
                for keyword in result:
                    click.echo(keyword)
    except Exception as e:
        fail(ctx, e)


@cli.command()
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON")
@click.pass_context
def providers(ctx: click.Context, json_output: bool) -> None:
    """Show backend availability and the fallback chain.

    Example:
        seo-orchestrator providers
        seo-orchestrator --chain anthropic,openai providers --json-output
    """
    try:
        with get_client(ctx) as client:
            status = client.provider_status()
            chain = client.registry.get_fallback_chain_names()

            if json_output:
                for data in status.values():
                    if math.isinf(data["tokens"]):
                        data["tokens"] = None
                click.echo(json.dumps({"fallback_chain": chain, "providers": status}, indent=2))
                return

            click.echo(f"Fallback chain: {' -> '.join(chain)}")
            for name, data in status.items():
                icon = "[OK]" if data["available"] else "[--]"
                marker = " (in chain)" if data["in_chain"] else ""
                click.echo(f"{icon} {name}{marker}")
                click.echo(f"    Model: {data['model']}")
    except Exception as e:
        fail(ctx, e)


@cli.command()
def models() -> None:
    """List supported models by backend.

    Example:
        seo-orchestrator models
    """
    for i, spec in enumerate(BUILTIN_BACKENDS.values()):
        if i:
            click.echo("")
        click.echo(f"{spec.name}:")
        for model in spec.supported_models:
            default = " (default)" if model == spec.default_model else ""
            click.echo(f"  - {model}{default}")


def main() -> None:
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
