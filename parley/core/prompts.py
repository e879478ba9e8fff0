"""Prompt templates used by the client, the compressor, and the next-speaker check."""

from __future__ import annotations

import os
import platform
from datetime import date
from typing import Any, Dict

CORE_SYSTEM_PROMPT = """
You are an interactive command-line agent that helps users with software
engineering tasks. Follow the conventions of the project you are working in,
read before you edit, and prefer small verifiable changes. Use the available
tools to inspect files and run commands instead of guessing. Keep answers
short and direct; explain a command before running anything that modifies the
user's system. When a task is finished, say so and stop.
""".strip()

USER_MEMORY_SEPARATOR = "\n\n---\n\n"

COMPRESSION_PROMPT = """
You are the component that summarizes internal chat history into a compact
structured snapshot. The conversation so far will be discarded and replaced by
your snapshot, so it must hold everything needed to continue the work.

First reason privately in a <scratchpad> about the user's goal, the actions
taken, the files touched, and what remains. Then output a single
<state_snapshot> element containing:

<state_snapshot>
    <overall_goal>The user's high-level objective in one sentence.</overall_goal>
    <key_knowledge>Facts, constraints, and conventions established so far.</key_knowledge>
    <file_system_state>Files created, read, modified, or deleted, with notes.</file_system_state>
    <recent_actions>The last few significant actions and their outcomes.</recent_actions>
    <current_plan>Numbered steps, each marked [DONE], [IN PROGRESS], or [TODO].</current_plan>
</state_snapshot>

Be dense. Omit pleasantries and anything irrelevant to continuing the task.
""".strip()

COMPRESSION_REQUEST = "First, reason in your scratchpad. Then, generate the <state_snapshot>."

COMPRESSION_ACKNOWLEDGEMENT = "Got it. Thanks for the additional context!"

ENVIRONMENT_ACKNOWLEDGEMENT = "Got it. Thanks for the context!"

CONTINUE_REQUEST = "Please continue."

NEXT_SPEAKER_PROMPT = """
Analyze *only* your immediately preceding response (your last turn in this
conversation) and decide who should speak next.

Rules, applied in order:
1. Model continues: your last response explicitly states an immediate next
   action *you* intend to take ("Next, I will...", "Now I'll..."), or it is
   visibly incomplete (cut off mid-thought).
2. Question to user: your last response ends with a direct question to the
   user.
3. Waiting for user: your last response completed a thought or task and does
   not meet rule 1 or 2.

Respond *only* in JSON matching this schema:
{"reasoning": "<short justification>", "next_speaker": "user" | "model"}
""".strip()

NEXT_SPEAKER_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "reasoning": {
            "type": "string",
            "description": "Brief explanation justifying the 'next_speaker' choice.",
        },
        "next_speaker": {
            "type": "string",
            "enum": ["user", "model"],
            "description": "Who should speak next based on the last response.",
        },
    },
    "required": ["reasoning", "next_speaker"],
}


def get_core_system_prompt(user_memory: str = "") -> str:
    """Return the system prompt, with the user's saved memory appended if any."""

    memory = (user_memory or "").strip()
    if not memory:
        return CORE_SYSTEM_PROMPT
    return f"{CORE_SYSTEM_PROMPT}{USER_MEMORY_SEPARATOR}{memory}"


def get_environment_context(working_dir: str) -> str:
    """Describe the session environment for the first turn of a chat."""

    today = date.today().strftime("%A, %B %d, %Y")
    system = platform.system() or os.name
    return (
        "This is the parley command-line client. We are setting up the context for our chat.\n"
        f"Today's date is {today}.\n"
        f"My operating system is: {system}\n"
        f"I'm currently working in the directory: {working_dir}"
    )
