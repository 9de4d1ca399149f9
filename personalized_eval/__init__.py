"""Personalized evaluation core.

Builds personalized prompts for evaluating user responses, generating
challenges, recommending focus areas and analyzing personality, and turns the
AI's answers into immutable evaluation records with growth tracking.
"""

from personalized_eval.modules.context.service import gather_user_context
from personalized_eval.modules.prompts.registry import build_prompt

__version__ = "0.1.0"

__all__ = ["__version__", "build_prompt", "gather_user_context"]
