"""CLI Module - developer command line for the evaluation core.

Usage:
    personalized-eval --help                          Show all commands
    personalized-eval kinds                           List registered prompt kinds
    personalized-eval prompt evaluation params.json   Preview a built prompt
    personalized-eval weights --type scenario         Show category weights
    personalized-eval evaluate challenge.json answer.txt --user-id u1 --thread-id t1
"""

from personalized_eval.cli.main import app, main

__all__ = ["app", "main"]
