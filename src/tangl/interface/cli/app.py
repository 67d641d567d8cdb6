from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the CLI lifecycle: logging bootstrap, configuration loading and
merging with command-line overrides, construction of the git backend and
namespace model, command dispatch and result rendering (human readable or
JSON).
"""

import argparse
import json
import os
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

from tangl.core.derivation import DerivationEngine, DerivationReport
from tangl.core.namespace import NamespaceService
from tangl.domain.config import get_default_config, load_config, validate_config
from tangl.domain.conflict_models import ConflictStatistics
from tangl.domain.errors import NamespaceError, TanglError
from tangl.domain.qualified_path import BRANCH_MARKER, QualifiedPath
from tangl.infra.fs import get_default_log_path, normalize_path
from tangl.infra.git import GitBackend, build_model
from tangl.infra.logging import LoggingConfig, configure_logging, get_logger
from tangl.interface.cli import args as cli_args

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

# Rendered output of a command: machine-readable payload and terminal lines
CommandOutput = Tuple[Dict[str, Any], List[str]]

# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute the main CLI application workflow.

    Args:
        argv: Optional list of command line arguments. Defaults to sys.argv.

    Returns:
        int: Process exit code (0 ok, 1 tool error, 2 usage or namespace
        error, 130 interrupted).
    """
    parser = cli_args.build_parser()
    args = parser.parse_args(argv)

    # 1. Configuration hierarchy: defaults or saved file, then CLI overrides
    base_conf = get_default_config() if args.use_defaults else load_config()
    base_conf.update(cli_args.args_to_overrides(args))
    conf, warnings = validate_config(base_conf)

    # 2. Logging bootstrap
    configure_logging(LoggingConfig.from_settings(conf, get_default_log_path()))
    for w in warnings:
        logger.warning(f"Configuration Constraint: {w}")

    if args.dump_config:
        print(json.dumps(conf, ensure_ascii=False, indent=2))
        return EXIT_OK

    if not args.command:
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    logger.debug(f"Running command '{args.command}'")

    # 3. Dispatch
    try:
        data, lines = _COMMANDS[args.command](args, conf)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        print("Interrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except NamespaceError as e:
        logger.debug(f"Namespace error: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_USAGE
    except TanglError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR

    # 4. Output rendering
    if args.json_output:
        print(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        for line in lines:
            print(line)
    return EXIT_OK

# -----------------------------------------------------------------------------
# CONTEXT
# -----------------------------------------------------------------------------

def _backend(args: argparse.Namespace) -> GitBackend:
    # Without --repo git discovers the repository from the working directory
    if not args.repo_path:
        return GitBackend()
    return GitBackend(normalize_path(args.repo_path, os.getcwd()))


def _services(args: argparse.Namespace, conf: Dict[str, Any]) -> Tuple[GitBackend, NamespaceService]:
    backend = _backend(args)
    model = build_model(backend)
    return backend, NamespaceService(backend, model, conf["temporary_branch_prefix"])

# -----------------------------------------------------------------------------
# COMMAND HANDLERS
# -----------------------------------------------------------------------------

def _cmd_status(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    backend = _backend(args)
    text = rewrite_branch_names(backend.status(), backend.list_branches())
    return {"status": text}, [text.rstrip("\n")]


def _cmd_init(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _backend(args).init()
    return {"initialized": True}, ["Initialized repository with area 'main'"]


def _cmd_tree(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    tree = service.render_tree(conf["show_tags"])
    return {"tree": tree}, [tree]


def _cmd_check(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    statistics = service.check_features(conf["conflict_base_branch"])
    lines: List[str] = []
    if args.verbose:
        lines.extend(str(s) for s in statistics.iter_all())
    summary = statistics.summary()
    lines.append(f"{summary['ok']} ok, {summary['conflict']} conflicting, {summary['error']} errors")
    return _statistics_to_dict(statistics), lines


def _cmd_checkout(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    target = service.checkout(args.branch)
    return {"checked_out": str(target)}, [f"Switched to {target}"]


def _cmd_feature(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    if args.delete:
        deleted = service.delete_feature(args.delete)
        return {"deleted": str(deleted)}, [f"Deleted feature {deleted}"]
    if args.name:
        created = service.create_feature(args.name)
        return {"created": str(created)}, [f"Created new feature {created.strip_n_left(3)}"]
    tree = service.feature_tree(conf["show_tags"])
    if tree is None:
        return {"tree": None}, ["No features in this area"]
    return {"tree": tree}, [tree]


def _cmd_product(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    if args.delete:
        deleted = service.delete_product(args.delete)
        return {"deleted": str(deleted)}, [f"Deleted product {deleted}"]
    if args.name:
        created = service.create_product(args.name)
        return {"created": str(created)}, [f"Created new product {created.strip_n_left(3)}"]
    tree = service.product_tree()
    if tree is None:
        return {"tree": None}, ["No products in this area"]
    return {"tree": tree}, [tree]


def _cmd_tag(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    if args.delete:
        deleted = service.delete_tag(args.delete)
        return {"deleted": str(deleted)}, [f"Deleted tag {deleted}"]
    if args.tag:
        created = service.create_tag(args.tag)
        return {"created": str(created)}, [f"Created tag {created}"]
    tags = [str(t) for t in service.list_tags()]
    return {"tags": tags}, tags or ["No tags on current branch"]


def _cmd_derive(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    backend = _backend(args)
    engine = DerivationEngine(backend, build_model(backend), conf["temporary_branch_prefix"])
    optimize = conf["optimize_merge_order"]

    if args.abort:
        report = engine.abort()
    elif args.continue_:
        report = engine.continue_(optimize)
    elif args.show_status:
        report = engine.status()
    else:
        report = engine.begin(args.features, optimize)
    return _report_to_dict(report), _report_lines(report)


def _cmd_spread(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    report = service.spread()
    lines = [f"Spread {report.source} to {p}" for p in report.merged]
    lines.extend(f"Conflict while spreading to {p}, merge aborted" for p in report.failed)
    data = {
        "source": str(report.source),
        "merged": [str(p) for p in report.merged],
        "failed": [str(p) for p in report.failed],
    }
    return data, lines or ["Nothing to spread"]


def _cmd_untie(args: argparse.Namespace, conf: Dict[str, Any]) -> CommandOutput:
    _, service = _services(args, conf)
    result = service.untie(args.commit, args.feature)
    data = {"commit": result.commit, "feature": str(result.feature), "succeeded": result.succeeded}
    if result.succeeded:
        return data, [f"Untied commit {result.commit} to {result.feature}"]
    return data, [f"Unable to untie commit {result.commit}"]


_COMMANDS: Dict[str, Callable[[argparse.Namespace, Dict[str, Any]], CommandOutput]] = {
    "status": _cmd_status,
    "init": _cmd_init,
    "tree": _cmd_tree,
    "check": _cmd_check,
    "checkout": _cmd_checkout,
    "feature": _cmd_feature,
    "product": _cmd_product,
    "tag": _cmd_tag,
    "derive": _cmd_derive,
    "spread": _cmd_spread,
    "untie": _cmd_untie,
}

# -----------------------------------------------------------------------------
# VIEW RENDERING
# -----------------------------------------------------------------------------

def rewrite_branch_names(text: str, branches: List[str]) -> str:
    """Replace marker-form branch names in git output by qualified paths."""
    marked = [b for b in branches if BRANCH_MARKER in b]
    for branch in sorted(marked, key=len, reverse=True):
        text = text.replace(branch, str(QualifiedPath.from_git_branch(branch)))
    return text


def _statistics_to_dict(statistics: ConflictStatistics) -> Dict[str, Any]:
    return {
        "summary": statistics.summary(),
        "results": [
            {
                "kind": s.kind.value,
                "paths": [str(p) for p in s.paths],
                "cause": str(s.cause) if s.cause is not None else None,
            }
            for s in statistics.iter_all()
        ],
    }


def _report_to_dict(report: DerivationReport) -> Dict[str, Any]:
    return {
        "action": report.action,
        "metadata": report.metadata.to_dict() if report.metadata else None,
        "merge_order": [str(p) for p in report.merge_order],
        "merged": [str(p) for p in report.merged],
        "remaining": [str(p) for p in report.remaining],
        "resolving": str(report.resolving) if report.resolving else None,
        "reset_to": report.reset_to,
    }


def _report_lines(report: DerivationReport) -> List[str]:
    """
    Format a derivation report for the terminal.

    Args:
        report: The derivation report to render.
    """
    if report.action == "status":
        if report.metadata is None:
            return ["No derivation on this product"]
        meta = report.metadata
        lines = [f"Derivation {meta.id}: {meta.state.value}"]
        lines.extend(f"  completed {p}" for p in meta.completed_paths())
        lines.extend(f"  missing   {p}" for p in meta.missing_paths())
        return lines

    if report.action == "aborted":
        return [
            "Aborting current derivation process",
            f"Reset to state before derivation ({report.reset_to})",
        ]

    lines = [f"{len(report.merged)} feature(s) merged successfully:"]
    lines.extend(f"  {p}" for p in report.merged)

    if report.is_finished:
        lines.append("")
        lines.append("No missing features remain. Derivation complete.")
        return lines

    lines.append("")
    lines.append(f"{len(report.remaining)} conflicting feature(s) remain:")
    lines.extend(f"  {p}" for p in report.remaining)
    if report.resolving is not None:
        lines.append("")
        lines.append(f"Now merging: {report.resolving}")
        lines.append(
            "Please solve all conflicts and commit your changes. "
            "Thereafter, run 'tangl derive --continue' to continue the derivation."
        )
        lines.append("Use 'tangl derive --abort' to abort the current derivation process.")
    return lines

# -----------------------------------------------------------------------------
# CLI ENTRYPOINT
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
