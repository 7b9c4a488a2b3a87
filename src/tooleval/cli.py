"""CLI entry point for tooleval."""

from __future__ import annotations

import asyncio
import importlib
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import click

from tooleval import __version__
from tooleval.config import Config, ConfigError, load_config_or_default
from tooleval.diff import Category, DiffResult, compare
from tooleval.judges.composite import CompositeScorer
from tooleval.loader import LoadError, load_prompt, load_prompt_dir, load_suite, load_suite_dir
from tooleval.models import EvalSuite
from tooleval.progress import ProgressReporter
from tooleval.prompt import PromptError, PromptVariant
from tooleval.providers import get_provider
from tooleval.result import ResultError, RunSummary, default_path, load_summary, score_run
from tooleval.runner import Runner, RunnerConfig


@click.group()
@click.version_option(version=__version__, prog_name="tooleval")
def cli() -> None:
    """tooleval — run, score and diff tool-using LLM agent evals."""


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_object(dotted_path: str) -> Any:
    """Import and return an object from a dotted path like 'pkg.mod:attr'."""
    # Ensure CWD is in sys.path so local modules can be imported
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    module_path, attr_name = dotted_path.rsplit(":", 1)
    try:
        mod = importlib.import_module(module_path)
    except ImportError as e:
        raise click.BadParameter(f"Cannot import module '{module_path}': {e}") from e
    try:
        return getattr(mod, attr_name)
    except AttributeError:
        raise click.BadParameter(
            f"Module '{module_path}' has no attribute '{attr_name}'"
        )


def _build_provider(ref: str, cfg: Config, model: Optional[str]) -> tuple:
    """Return ``(provider, model)`` for a config provider name or 'module:attr'."""
    if ":" in ref:
        obj = _resolve_object(ref)
        provider = obj() if isinstance(obj, type) or not hasattr(obj, "complete") else obj
        if not hasattr(provider, "complete"):
            raise click.BadParameter(f"'{ref}' is not a provider")
        return provider, model or ""

    pcfg = cfg.providers.get(ref)
    if pcfg is None:
        raise click.BadParameter(f"provider '{ref}' not found in config")
    try:
        api_key = cfg.resolve_api_key(ref)
    except ConfigError as e:
        raise click.BadParameter(str(e)) from e
    try:
        provider = get_provider(
            ref, api_key,
            base_url=pcfg.base_url,
            max_retries=cfg.retry.max_retries,
            base_backoff=cfg.retry.base_delay,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    return provider, model or pcfg.model


def _resolve_prompt_path(prompt: Optional[str], eval_suite: EvalSuite, suite_path: str) -> str:
    if prompt:
        return prompt
    if not eval_suite.prompt:
        raise click.BadParameter("No prompt specified. Use --prompt or set 'prompt' in the suite.")
    candidate = Path(eval_suite.prompt)
    if not candidate.is_absolute() and not candidate.exists():
        candidate = Path(suite_path).parent / eval_suite.prompt
    return str(candidate)


@cli.command()
@click.option("--suite", required=True, type=click.Path(exists=True), help="Path to YAML suite file.")
@click.option("--prompt", default=None, type=click.Path(exists=True),
              help="Path to YAML prompt file. Overrides the suite's prompt field.")
@click.option("--provider", "provider_ref", required=True,
              help="Provider name from the config, or 'module:attr' of a provider object.")
@click.option("--config", "config_path", default="eval.yaml", show_default=True,
              help="Path to config file (defaults are used if missing).")
@click.option("--model", default=None, help="Model identifier. Overrides the provider config.")
@click.option("--concurrency", default=None, type=int, help="Max cases in flight. Overrides config.")
@click.option("--timeout", default=None, type=float, help="Per-case timeout in seconds. Overrides config.")
@click.option("--threshold", default=None, type=float, help="Composite pass threshold. Overrides config.")
@click.option("--tag", multiple=True, help="Filter cases by tag (repeatable).")
@click.option("--output", default=None, help="Result file path. Defaults to a timestamped file in output_dir.")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed per-case output and debug logs.")
def run(
    suite: str,
    prompt: Optional[str],
    provider_ref: str,
    config_path: str,
    model: Optional[str],
    concurrency: Optional[int],
    timeout: Optional[float],
    threshold: Optional[float],
    tag: tuple,
    output: Optional[str],
    verbose: bool,
) -> None:
    """Run an eval suite against a model provider, score it and save the result."""
    _setup_logging(verbose)

    try:
        cfg = load_config_or_default(config_path)
        if concurrency is not None:
            cfg.concurrency = concurrency
        if timeout is not None:
            cfg.timeout = timeout
        if threshold is not None:
            cfg.threshold = threshold
        cfg.validate()
    except ConfigError as e:
        click.echo(f"Error in config: {e}", err=True)
        sys.exit(1)

    # Load suite
    try:
        eval_suite = load_suite(suite)
    except LoadError as e:
        click.echo(f"Error loading suite: {e}", err=True)
        sys.exit(1)

    # Filter by tags if specified
    if tag:
        original_count = len(eval_suite.cases)
        eval_suite = eval_suite.filter_by_tag(list(tag))
        if not eval_suite.cases:
            click.echo(
                f"No cases match tags {sorted(set(tag))} (suite has {original_count} cases).",
                err=True,
            )
            sys.exit(1)

    try:
        prompt_variant = load_prompt(_resolve_prompt_path(prompt, eval_suite, suite))
        prompt_variant.validate()
        provider, model_name = _build_provider(provider_ref, cfg, model)
    except (LoadError, PromptError) as e:
        click.echo(f"Error loading prompt: {e}", err=True)
        sys.exit(1)
    except click.BadParameter as e:
        click.echo(f"Error: {e.format_message()}", err=True)
        sys.exit(1)

    runner = Runner(RunnerConfig(
        concurrency=cfg.concurrency, timeout=cfg.timeout, model=model_name,
    ))
    reporter = ProgressReporter()
    reporter.start(len(eval_suite.cases))
    try:
        summary = asyncio.run(
            _run_and_score(runner, eval_suite, prompt_variant, provider, cfg.threshold, reporter)
        )
    except Exception as e:
        click.echo(f"Error during run: {e}", err=True)
        sys.exit(1)
    finally:
        reporter.finish()

    path = output or default_path(
        cfg.output_dir, summary.suite_name, datetime.fromisoformat(summary.start_time),
    )
    summary.save(path)

    _print_run_results(summary, verbose)
    click.echo(f"Results saved to {path}")

    if summary.stats.passed_cases < summary.stats.total_cases:
        sys.exit(1)


async def _run_and_score(
    runner: Runner,
    eval_suite: EvalSuite,
    prompt_variant: PromptVariant,
    provider: Any,
    threshold: float,
    reporter: ProgressReporter,
) -> RunSummary:
    run_result = await runner.run(eval_suite, prompt_variant, provider, progress=reporter)
    return await score_run(run_result, eval_suite, CompositeScorer(threshold), judge_provider=provider)


def _print_run_results(summary: RunSummary, verbose: bool) -> None:
    """Print run results as a formatted table."""
    click.echo(f"\n{'='*60}")
    click.echo(f"Suite: {summary.suite_name}  |  Run: {summary.run_id}")
    click.echo(f"{'='*60}")

    if verbose:
        for r in summary.results:
            if r.error:
                status = click.style("ERROR", fg="yellow")
            elif r.passed:
                status = click.style("PASS", fg="green")
            else:
                status = click.style(r.status.upper() or "FAIL", fg="red")
            click.echo(f"  {status}  {r.case_name} (score={r.score:.2f}, {r.duration:.2f}s)")
            if not r.passed and r.reason:
                click.echo(f"         reason: {r.reason}")

    s = summary.stats
    click.echo(f"\nTotal: {s.total_cases}  Passed: {s.passed_cases}  Failed: {s.failed_cases}  "
               f"Errored: {s.errored_cases}  Pass rate: {s.pass_rate:.0%}")
    click.echo(f"Avg score: {s.avg_score:.2f}  Latency p50/p95: {s.latency_p50:.2f}s/{s.latency_p95:.2f}s  "
               f"Tokens: {s.total_input_tokens} in / {s.total_output_tokens} out")
    click.echo()


@cli.command()
@click.argument("run_a", type=click.Path(exists=True))
@click.argument("run_b", type=click.Path(exists=True))
@click.option("--threshold", default=0.0, show_default=True,
              help="Max absolute score delta still counted as unchanged.")
@click.option("--only", "only", multiple=True,
              type=click.Choice([c.value for c in Category]),
              help="Show only these categories (repeatable).")
@click.option("--json", "as_json", is_flag=True, help="Print the diff as JSON.")
def diff(run_a: str, run_b: str, threshold: float, only: tuple, as_json: bool) -> None:
    """Compare two run result files.

    Examples:
      tooleval diff results/run-a.json results/run-b.json
      tooleval diff a.json b.json --threshold 0.1 --only regressed
    """
    if threshold < 0:
        click.echo("Error: --threshold must be >= 0.", err=True)
        sys.exit(1)

    try:
        summary_a = load_summary(run_a)
        summary_b = load_summary(run_b)
    except ResultError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    result = compare(summary_a, summary_b, threshold).filter([Category(c) for c in only])

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    _print_diff_table(result)


def _print_diff_table(dr: DiffResult) -> None:
    sep = "-" * 82
    click.echo(f"\nComparing: {dr.run_a} vs {dr.run_b}  (threshold {dr.threshold})")
    click.echo(sep)
    click.echo(f"  {'CASE':<25}  {'CHANGE':<10}  {'SCORE A':>8}  {'SCORE B':>8}  {'DELTA':>8}")
    click.echo(sep)

    for cd in dr.cases:
        name = cd.case_name if len(cd.case_name) <= 25 else cd.case_name[:22] + "..."
        if cd.category in (Category.NEW, Category.REMOVED):
            delta = cd.category.value
        else:
            delta = f"{cd.score_delta:+.2f}"

        change = f"{cd.category.value:<10}"
        if cd.category == Category.REGRESSED:
            change = click.style(change, fg="red")
        elif cd.category == Category.IMPROVED:
            change = click.style(change, fg="green")
        click.echo(f"  {name:<25}  {change}  {cd.score_a:>8.2f}  {cd.score_b:>8.2f}  {delta:>8}")

    s = dr.summary
    click.echo(sep)
    click.echo(f"  {s['improved']} improved  {s['regressed']} regressed  {s['unchanged']} unchanged  "
               f"{s['new']} new  {s['removed']} removed")
    click.echo(sep)

    if dr.regressions:
        click.echo(click.style(f"\n⚠ {len(dr.regressions)} regression(s) detected!", fg="red", bold=True))
    click.echo()


@cli.command()
@click.option("--suite", default=None, help="Suite file to validate.")
@click.option("--config", "config_path", default="eval.yaml", show_default=True, help="Config file to validate.")
def validate(suite: Optional[str], config_path: str) -> None:
    """Validate config and suite files."""
    if suite:
        try:
            s = load_suite(suite)
            s.validate()
        except (LoadError, ValueError) as e:
            click.echo(f"Suite validation failed: {e}", err=True)
            sys.exit(1)
        click.echo(f"Suite {s.name!r} is valid ({len(s.cases)} cases).")

    try:
        load_config_or_default(config_path).validate()
    except ConfigError as e:
        click.echo(f"Config validation failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"Config {config_path!r} is valid.")


@cli.group("list")
def list_cmd() -> None:
    """List available suites or prompts."""


@list_cmd.command("suites")
@click.option("--dir", "directory", default=".", show_default=True, help="Project directory.")
def list_suites(directory: str) -> None:
    """List eval suites under DIR/suites."""
    try:
        suites = load_suite_dir(os.path.join(directory, "suites"))
    except LoadError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not suites:
        click.echo("No eval suites found.")
        return
    for s in suites:
        click.echo(f"  {s.name:<20} {s.description or '(no description)':<40} ({len(s.cases)} cases)")


@list_cmd.command("prompts")
@click.option("--dir", "directory", default=".", show_default=True, help="Project directory.")
def list_prompts(directory: str) -> None:
    """List prompt templates under DIR/prompts."""
    try:
        prompts = load_prompt_dir(os.path.join(directory, "prompts"))
    except LoadError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not prompts:
        click.echo("No prompt templates found.")
        return
    for p in prompts:
        click.echo(f"  {p.name:<20} {p.description or '(no description)'}")
