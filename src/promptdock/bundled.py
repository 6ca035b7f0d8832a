"""Default prompt set shipped with the package.

Used only when neither the local cache nor the remote registry can supply
prompts, so it must never be empty.
"""

from __future__ import annotations

from typing import Any

from .models import Prompt

BUNDLED_VERSION = "2026.10.0"

_RAW: list[dict[str, Any]] = [
    {
        "id": "idea-wizard",
        "title": "The Idea Wizard",
        "description": "Generate 30 improvement ideas, rigorously evaluate each, then distill to the very best 5",
        "category": "ideation",
        "tags": ["brainstorming", "improvement", "evaluation"],
        "author": "Jeffrey Emanuel",
        "version": "1.0.0",
        "created": "2025-01-09",
        "content": (
            "Come up with your very best ideas for improving this project to make it more robust, reliable, "
            "performant, intuitive, user-friendly, ergonomic, useful, compelling, etc.\n\n"
            "Before proposing anything, carefully evaluate each idea: think through how it would work, how users "
            "would perceive it, and how we would implement it. Generate 30 ideas, then winnow them down to the 5 "
            "best and explain your reasoning for each."
        ),
    },
    {
        "id": "readme-reviser",
        "title": "The README Reviser",
        "description": "Update README and documentation to reflect the current state of the code",
        "category": "documentation",
        "tags": ["documentation", "readme", "maintenance"],
        "author": "Jeffrey Emanuel",
        "version": "1.0.0",
        "created": "2025-01-09",
        "content": (
            "Update the README and other documentation to reflect all of the recent changes to the project. "
            "Frame every improvement as how the project works today rather than as a changelog of what was "
            "changed. Remove anything that is no longer accurate and add examples for new behaviour."
        ),
    },
    {
        "id": "robot-mode-maker",
        "title": "The Robot-Mode Maker",
        "description": "Create an agent-optimized CLI interface with JSON output and token-efficient help",
        "category": "automation",
        "tags": ["cli", "agents", "json"],
        "author": "Jeffrey Emanuel",
        "version": "1.0.0",
        "created": "2025-01-09",
        "content": (
            "Add a robot mode to this command line tool designed for use by coding agents: every command gets "
            "a --json flag with stable machine-readable output, help text is short and token-efficient, and "
            "errors are reported as structured objects with a code and a message."
        ),
    },
    {
        "id": "bug-hunter",
        "title": "The Fresh-Eyes Bug Hunter",
        "description": "Carefully re-read recently written code with fresh eyes to find and fix bugs",
        "category": "debugging",
        "tags": ["bugs", "review", "quality"],
        "author": "Jeffrey Emanuel",
        "version": "1.0.0",
        "created": "2025-01-12",
        "content": (
            "Carefully read over all of the new code you just wrote and other existing code you just modified "
            "with fresh eyes, looking super carefully for any obvious bugs, errors, problems, issues or "
            "confusion. Fix anything you uncover and explain the root cause of each problem."
        ),
    },
]

BUNDLED_PROMPTS: list[Prompt] = [Prompt.model_validate(item) for item in _RAW]
BUNDLED_BUNDLES: list[Any] = []
BUNDLED_WORKFLOWS: list[Any] = []
