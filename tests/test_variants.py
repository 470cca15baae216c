import random

import pytest

from shotcraft._core.error import ConfigurationError
from shotcraft.exemplars import Exemplar
from shotcraft.modules import ChainOfThoughtModule
from shotcraft.variants import VariantFactory, validate_counts


@pytest.fixture
def module(scripted_client):
    return ChainOfThoughtModule('question', 'answer', model='m', client=scripted_client)


@pytest.fixture
def exemplars():
    return [Exemplar(source_index=i, text=f'<exemplar {i}>\n') for i in range(5)]


class TestVariantFactory:
    def test_builds_student_count_variants(self, module, exemplars):
        variants = VariantFactory(shot_count=2, student_count=4, rng=random.Random(1)).build(
            module, exemplars
        )

        assert len(variants) == 4
        for variant in variants:
            assert len(variant.exemplars) == 2
            # no duplicates within one draw
            assert len(set(variant.exemplar_indices)) == 2

    def test_injected_text_matches_sample(self, module, exemplars):
        (variant,) = VariantFactory(
            shot_count=3, student_count=1, rng=random.Random(3)
        ).build(module, exemplars)

        injected = '\n'.join(e.text for e in variant.exemplars)
        assert variant.module.template == module.template + injected

    def test_base_module_is_untouched(self, module, exemplars):
        original = module.template
        VariantFactory(shot_count=2, student_count=3, rng=random.Random(0)).build(
            module, exemplars
        )
        assert module.template == original

    def test_variants_share_model_and_fields(self, module, exemplars):
        variants = VariantFactory(shot_count=1, student_count=3).build(module, exemplars)
        for variant in variants:
            assert variant.module.model == module.model
            assert variant.module.input_field == module.input_field
            assert variant.module.output_field == module.output_field
            assert variant.module is not module

    def test_seeded_rng_is_reproducible(self, module, exemplars):
        def draw(seed):
            factory = VariantFactory(shot_count=2, student_count=3, rng=random.Random(seed))
            return [v.exemplar_indices for v in factory.build(module, exemplars)]

        assert draw(42) == draw(42)

    def test_shot_count_equal_to_pool_uses_every_exemplar(self, module, exemplars):
        (variant,) = VariantFactory(shot_count=5, student_count=1).build(module, exemplars)
        assert sorted(variant.exemplar_indices) == [0, 1, 2, 3, 4]

    def test_shot_count_above_pool_fails(self, module, exemplars):
        with pytest.raises(ConfigurationError, match='exceeds the exemplar pool'):
            VariantFactory(shot_count=6, student_count=1).build(module, exemplars)


@pytest.mark.parametrize(
    'shot_count, student_count, pool_size',
    [(0, 3, 5), (2, 0, 5), (-1, 3, 5), (2, -3, 5), (3, 3, 2)],
)
def test_validate_counts_rejects(shot_count, student_count, pool_size):
    with pytest.raises(ConfigurationError):
        validate_counts(shot_count, student_count, pool_size)
