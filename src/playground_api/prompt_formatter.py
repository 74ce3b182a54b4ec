# src/playground_api/prompt_formatter.py
"""Turn chat history or a task description into a single backend prompt.

Everything here is pure: the same inputs always render the same string.
"""

import math
from typing import Iterable, Optional, Union

from playground_api.config import ChatMessage

ROLE_LABELS = {
    "user": "Human",
    "assistant": "Assistant",
}

TASK_TEMPLATES = {
    "completion": "{prompt}",
    "summarization": "Please provide a concise summary of the following text:\n\n{prompt}\n\nSummary:",
    "translation": "Translate the following text to English:\n\n{prompt}\n\nTranslation:",
    "question-answering": "Answer the following question based on the provided context:\n\n{prompt}\n\nAnswer:",
    "code-generation": "Generate code based on the following description:\n\n{prompt}\n\nCode:",
    "code-explanation": "Explain the following code:\n\n{prompt}\n\nExplanation:",
    "creative-writing": "Write a creative piece based on the following prompt:\n\n{prompt}\n\nStory:",
}

ASSISTANT_CUE = "\n\nAssistant: "


def _role_and_content(message: Union[ChatMessage, dict]):
    if isinstance(message, dict):
        return message.get("role", "user"), message.get("content", "")
    return message.role, message.content


def render_message(message: Union[ChatMessage, dict]) -> str:
    """`Human: ...` / `Assistant: ...`; inline system messages pass through unlabeled."""
    role, content = _role_and_content(message)
    label = ROLE_LABELS.get(role)
    if label is None:
        return content
    return f"{label}: {content}"


def format_chat_prompt(messages: Iterable[Union[ChatMessage, dict]], system_prompt: Optional[str] = None) -> str:
    prompt = f"System: {system_prompt}\n\n" if system_prompt else ""
    prompt += "\n\n".join(render_message(m) for m in messages)
    return prompt + ASSISTANT_CUE


def format_task_prompt(prompt: str, task: str) -> str:
    """Wrap *prompt* in the template for *task*; unknown tasks get the raw text."""
    template = TASK_TEMPLATES.get(task)
    if template is None:
        return prompt
    return template.format(prompt=prompt)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up.

    Not a tokenizer; analytics and usage numbers are built on it.
    """
    if not text:
        return 0
    return math.ceil(len(text) / 4)
