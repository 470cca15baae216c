import asyncio
from dataclasses import dataclass
from typing import Callable, List, Union

import pytest

from shotcraft._core.error import CompletionFailure
from shotcraft.dataset import Dataset

Reply = Union[str, Exception, Callable[[str], str]]

REASONING = 'reasoning'
GRADING = 'grading'
ANSWER = 'answer'


@dataclass
class Call:
    prompt: str
    model: str
    temperature: float
    kind: str


def classify(prompt: str) -> str:
    if prompt.startswith('Write the reasoning'):
        return REASONING
    if prompt.startswith('Grade the reply'):
        return GRADING
    return ANSWER


class ScriptedClient:
    """
    Fake completion client that replies by request kind.

    Each reply is a string, a callable receiving the prompt, or an exception
    instance to raise.
    """

    def __init__(
        self,
        reasoning: Reply = 'think it through',
        answer: Reply = 'an answer',
        grade: Reply = '3',
    ):
        self.replies = {REASONING: reasoning, ANSWER: answer, GRADING: grade}
        self.calls: List[Call] = []

    async def complete(self, prompt: str, model: str, temperature: float) -> str:
        kind = classify(prompt)
        self.calls.append(Call(prompt, model, temperature, kind))
        reply = self.replies[kind]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply

    def calls_of(self, kind: str) -> List[Call]:
        return [c for c in self.calls if c.kind == kind]


class SlowScriptedClient(ScriptedClient):
    """ScriptedClient that sleeps before replying and records peak in-flight calls."""

    def __init__(self, delay: float = 0.02, **replies: Reply):
        super().__init__(**replies)
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def complete(self, prompt: str, model: str, temperature: float) -> str:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return await super().complete(prompt, model, temperature)
        finally:
            self.in_flight -= 1


@pytest.fixture
def scripted_client():
    return ScriptedClient()


@pytest.fixture
def failure():
    return CompletionFailure('service unavailable', model='test-model')


@pytest.fixture
def qa_records():
    return [
        {'question': 'What is the capital of France?', 'answer': 'Paris'},
        {'question': 'What is 2 + 2?', 'answer': '4'},
        {'question': 'Which planet is known as the red planet?', 'answer': 'Mars'},
        {'question': 'What is H2O?', 'answer': 'Water'},
        {'question': 'Who wrote Hamlet?', 'answer': 'Shakespeare'},
        {'question': 'What colour is the sky on a clear day?', 'answer': 'Blue'},
    ]


@pytest.fixture
def qa_dataset(qa_records):
    return Dataset.from_records(qa_records)
