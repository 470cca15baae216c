import pytest

from shotcraft._core.error import GenerationError
from shotcraft.modules import (
    ChainOfThoughtModule,
    ModuleType,
    PromptModule,
    create_module,
)


@pytest.fixture
def cot_module(scripted_client):
    return ChainOfThoughtModule(
        'question', 'answer', model='deepseek-chat', client=scripted_client
    )


class TestPromptModule:
    def test_chain_of_thought_template(self, cot_module):
        assert cot_module.type is ModuleType.CHAIN_OF_THOUGHT
        assert '"question" field' in cot_module.template
        assert 'reasoning: think step by step' in cot_module.template

    def test_generic_template_has_no_reasoning_line(self, scripted_client):
        module = PromptModule('question', 'answer', client=scripted_client)
        assert module.type is ModuleType.GENERIC
        assert 'reasoning:' not in module.template

    def test_render_appends_question(self, cot_module):
        prompt = cot_module.render('What is 2 + 2?')
        assert prompt == cot_module.template + '\nquestion: What is 2 + 2?'

    @pytest.mark.asyncio
    async def test_run_uses_module_model(self, cot_module, scripted_client):
        answer = await cot_module.run('What is 2 + 2?')

        assert answer == 'an answer'
        call = scripted_client.calls[0]
        assert call.model == 'deepseek-chat'
        assert call.temperature == 0.0
        assert call.prompt.endswith('question: What is 2 + 2?')

    @pytest.mark.asyncio
    async def test_run_propagates_generation_error(self, failure):
        class FailingClient:
            async def complete(self, prompt, model, temperature):
                raise failure

        module = ChainOfThoughtModule('question', 'answer', client=FailingClient())
        with pytest.raises(GenerationError):
            await module.run('anything')

    def test_extend_returns_new_module(self, cot_module):
        extended = cot_module.extend(lambda t: t + 'EXEMPLARS')

        assert extended is not cot_module
        assert extended.template.endswith('EXEMPLARS')
        assert not cot_module.template.endswith('EXEMPLARS')
        assert extended.is_extended
        assert not cot_module.is_extended
        assert isinstance(extended, ChainOfThoughtModule)

    def test_copy_strips_injected_exemplars(self, cot_module):
        extended = cot_module.extend(lambda t: t + 'EXEMPLARS')
        copied = extended.copy()

        assert copied.template == cot_module.template
        assert copied.model == cot_module.model
        assert copied.input_field == 'question'
        assert copied.output_field == 'answer'
        assert copied.client is cot_module.client

    @pytest.mark.asyncio
    async def test_copy_renders_same_prompt_as_original(self, cot_module, scripted_client):
        """Running a copy sends exactly what the unextended original sends."""
        copied = cot_module.extend(lambda t: t + 'EXEMPLARS').copy()

        await cot_module.run('Who wrote Hamlet?')
        await copied.run('Who wrote Hamlet?')

        first, second = scripted_client.calls
        assert first.prompt == second.prompt
        assert first.model == second.model

    def test_custom_template(self, scripted_client):
        module = PromptModule('q', 'a', template='Answer briefly.', client=scripted_client)
        assert module.render('hi') == 'Answer briefly.\nq: hi'


class TestCreateModule:
    @pytest.mark.parametrize(
        'module_type, expected',
        [
            ('cot', ChainOfThoughtModule),
            ('COT', ChainOfThoughtModule),
            (ModuleType.GENERIC, PromptModule),
        ],
    )
    def test_builds_matching_class(self, module_type, expected):
        module = create_module(module_type, 'q', 'a', model='m')
        assert type(module) is expected

    def test_unknown_type(self):
        with pytest.raises(KeyError):
            create_module('tree-of-thought', 'q', 'a', model='m')
