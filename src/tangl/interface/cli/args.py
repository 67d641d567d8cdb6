from __future__ import annotations

"""
CLI Argument Definition and Mapping.

Defines the command-line schema (global options plus one subcommand per
namespace or derivation operation) and translates parsed arguments into
configuration overrides.
"""

import argparse
from typing import Any, Dict

# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the tangl CLI.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog="tangl",
        description="Feature and product management for software product lines on top of git.",
    )

    # --- Global options ---
    p.add_argument(
        "--repo",
        dest="repo_path",
        default=None,
        help="Repository directory (defaults to the current directory).",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="Elevate logging verbosity to DEBUG.",
    )
    p.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print results as JSON.",
    )
    p.add_argument(
        "--use-defaults",
        action="store_true",
        help="Ignore the saved configuration file.",
    )
    p.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the effective configuration and exit.",
    )

    sub = p.add_subparsers(dest="command", metavar="<command>")

    # --- Repository ---
    sub.add_parser("status", help="Show git status of the repository.")
    sub.add_parser("init", help="Initialize a repository with a 'main' area.")

    tree = sub.add_parser("tree", help="Display the tree below the current branch.")
    _add_show_tags(tree)

    check = sub.add_parser("check", help="Check all features of the area for conflicts.")
    check.add_argument("-v", "--verbose", action="store_true", help="Print every checked pair.")
    check.add_argument(
        "--base",
        dest="base_branch",
        default=None,
        help="Branch the experiments start from (defaults to the current branch).",
    )

    checkout = sub.add_parser("checkout", help="Check out a branch relative to the current one.")
    checkout.add_argument("branch", help="Relative or absolute namespace path.")

    # --- Namespace management ---
    feature = sub.add_parser("feature", help="Create, delete or list features.")
    feature.add_argument("name", nargs="?", default=None, help="Feature to create.")
    feature.add_argument("-D", "--delete", dest="delete", default=None, help="Feature to delete.")
    _add_show_tags(feature)

    product = sub.add_parser("product", help="Create, delete or list products.")
    product.add_argument("name", nargs="?", default=None, help="Product to create.")
    product.add_argument("-D", "--delete", dest="delete", default=None, help="Product to delete.")

    tag = sub.add_parser("tag", help="Create, delete or list tags of the current branch.")
    tag.add_argument("tag", nargs="?", default=None, help="Tag to create.")
    tag.add_argument("-d", "--delete", dest="delete", default=None, help="Tag to delete.")

    # --- Derivation ---
    derive = sub.add_parser("derive", help="Derive features into the current product.")
    derive.add_argument("features", nargs="*", help="Features relative to the feature root.")
    mode = derive.add_mutually_exclusive_group()
    mode.add_argument("--continue", dest="continue_", action="store_true",
                      help="Continue the ongoing derivation process.")
    mode.add_argument("--abort", action="store_true",
                      help="Abort the ongoing derivation process.")
    mode.add_argument("--status", dest="show_status", action="store_true",
                      help="Show the state of the last derivation.")
    derive.add_argument("--no-optimization", action="store_true",
                        help="Disable optimization of merge order.")

    sub.add_parser("spread", help="Merge the current branch into all its descendants.")

    untie = sub.add_parser("untie", help="Move a product commit back into its feature.")
    untie.add_argument("-c", "--commit", default=None, help="Specific commit to untie.")
    untie.add_argument("-f", "--feature", default=None, help="Feature to untie to.")

    return p


def _add_show_tags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--show-tags",
        dest="show_tags",
        action="store_true",
        help="Include tags in the tree.",
    )

# -----------------------------------------------------------------------------
# ARGUMENT MAPPING
# -----------------------------------------------------------------------------

def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate the argparse Namespace into configuration overrides.

    Only flags the user actually set produce an override.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Dict[str, Any]: Configuration overrides subset.
    """
    overrides: Dict[str, Any] = {}

    if args.debug:
        overrides["log_level"] = "DEBUG"
    if getattr(args, "show_tags", False):
        overrides["show_tags"] = True
    if getattr(args, "base_branch", None):
        overrides["conflict_base_branch"] = args.base_branch
    if getattr(args, "no_optimization", False):
        overrides["optimize_merge_order"] = False

    return overrides
