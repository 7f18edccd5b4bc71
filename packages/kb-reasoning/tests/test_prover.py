"""
tests/test_prover.py - Unification, condition solving and backward chaining
"""

import pytest

from kb_reasoning import ConceptStore, EngineConfig, Existence, ProofEngine
from kb_reasoning.terms import compound, statement
from kb_reasoning.unification import UnificationOptions, match_arguments


def implies(name, condition, conclusion):
    return statement("Implies", condition, conclusion, name=name)


@pytest.fixture
def store():
    store = ConceptStore(geometry=8)
    store.add_fact(("Rex", "isA", "Dog"))
    store.add_fact(("Dog", "isA", "Mammal"))
    store.add_fact(("Rex", "hasProperty", "vocal"))
    return store


@pytest.fixture
def engine(store):
    engine = ProofEngine(store)
    engine.add_statements(
        [
            implies("dogs_are_animals", compound("isA", "?x", "Dog"), compound("isA", "?x", "Animal")),
            implies(
                "vocal_dogs_bark",
                compound("And", compound("isA", "?x", "Dog"), compound("hasProperty", "?x", "vocal")),
                compound("can", "?x", "bark"),
            ),
        ]
    )
    return engine


# =============================================================================
# MATCHING
# =============================================================================


class TestMatchArguments:
    """One-way argument matching."""

    def test_binds_variables(self):
        rule_args = statement("p", "?x", "Dog").args
        assert match_arguments(rule_args, ["Rex", "Dog"]) == {"x": "Rex"}

    def test_constant_mismatch_is_case_sensitive(self):
        rule_args = statement("p", "?x", "Dog").args
        assert match_arguments(rule_args, ["Rex", "dog"]) is None

    def test_repeated_variable_must_agree(self):
        rule_args = statement("same", "?x", "?x").args
        assert match_arguments(rule_args, ["a", "a"]) == {"x": "a"}
        assert match_arguments(rule_args, ["a", "b"]) is None


# =============================================================================
# PROOF
# =============================================================================


class TestProve:
    """Backward chaining through ProofEngine."""

    def test_direct_fact(self, engine):
        result = engine.prove("isA Rex Dog")
        assert result.valid
        assert result.method == "direct"
        assert result.steps[0]["operation"] == "fact_lookup"

    def test_single_rule(self, engine):
        result = engine.prove("isA Rex Animal")
        assert result.valid
        assert result.method == "backward_chain_unified"
        assert result.bindings == {"x": "Rex"}
        assert result.steps[0]["operation"] == "unification_match"
        assert result.steps[0]["rule"] == "dogs_are_animals"

    def test_confidence_decays_per_hop(self, engine):
        direct = engine.prove("isA Rex Dog")
        derived = engine.prove("isA Rex Animal")
        assert derived.confidence == pytest.approx(direct.confidence * 0.95)
        assert derived.confidence < direct.confidence

    def test_conjunctive_condition(self, engine):
        result = engine.prove(statement("can", "Rex", "bark"))
        assert result.valid
        operations = [s["operation"] for s in result.steps]
        assert operations.count("fact_lookup") == 2

    def test_unprovable(self, engine):
        result = engine.prove("can Dog bark")
        assert not result.valid
        assert result.reason == "no_proof"
        assert not result

    def test_unparseable(self, engine):
        assert engine.prove("lonely").reason == "unparseable_goal"

    def test_min_existence_filters_weak_facts(self, store):
        store.add_fact(("Tom", "isA", "Cat"), existence=Existence.UNPROVEN)
        engine = ProofEngine(store)
        assert not engine.prove("isA Tom Cat").valid

    def test_records_inference_usage(self, engine, store):
        engine.prove("isA Rex Animal")
        assert store.get_usage_stats("Rex")["inference_count"] == 1

    def test_to_dict(self, engine):
        data = engine.prove("isA Rex Animal").to_dict()
        assert data["valid"] is True
        assert data["bindings"] == {"x": "Rex"}
        assert engine.prove("can Dog bark").to_dict() == {"valid": False, "reason": "no_proof"}


class TestChainsAndLimits:
    """Recursive rules, cycles and depth bounds."""

    @pytest.fixture
    def chain_engine(self):
        store = ConceptStore(geometry=8)
        for a, b in [("A", "B"), ("B", "C"), ("C", "D"), ("D", "E")]:
            store.add_fact((a, "parent", b))
        engine = ProofEngine(store)
        engine.add_statements(
            [
                implies("base", compound("parent", "?x", "?y"), compound("ancestor", "?x", "?y")),
                implies(
                    "step",
                    compound("And", compound("parent", "?x", "?z"), compound("ancestor", "?z", "?y")),
                    compound("ancestor", "?x", "?y"),
                ),
            ]
        )
        return engine

    def test_recursive_rule(self, chain_engine):
        result = chain_engine.prove("ancestor A E")
        assert result.valid
        assert result.rule == "step"

    def test_depth_limit(self, chain_engine):
        assert not chain_engine.prove("ancestor A E", max_depth=2).valid
        assert chain_engine.prove("ancestor A B", max_depth=2).valid

    def test_depth_limit_reason(self, chain_engine):
        assert chain_engine.prove("ancestor A E", max_depth=2).reason == "depth_limit"
        assert chain_engine.prove("ancestor E A").reason == "no_proof"

    def test_negation_undecided_at_depth_limit(self, chain_engine):
        """Not(...) must not hold when its inner search was cut off."""
        chain_engine.store.add_fact(("A", "isA", "Person"))
        chain_engine.store.add_fact(("F", "isA", "Person"))
        chain_engine.add_statements(
            [
                implies(
                    "stranger",
                    compound("And", compound("isA", "?x", "Person"), compound("Not", compound("ancestor", "?x", "E"))),
                    compound("stranger", "?x"),
                )
            ]
        )
        result = chain_engine.prove("stranger A", max_depth=3)
        assert not result.valid
        assert result.reason == "depth_limit"
        assert chain_engine.prove("stranger F", max_depth=3).valid

    def test_depth_override_is_restored(self, chain_engine):
        chain_engine.prove("ancestor A E", max_depth=2)
        assert chain_engine.max_depth == EngineConfig().max_depth

    def test_cycle_terminates(self):
        store = ConceptStore(geometry=8)
        engine = ProofEngine(store)
        engine.add_statements(
            [
                implies("p_from_q", compound("q", "?x"), compound("p", "?x")),
                implies("q_from_p", compound("p", "?x"), compound("q", "?x")),
            ]
        )
        assert not engine.prove("p a").valid


class TestConditions:
    """Disjunction and negation as failure."""

    @pytest.fixture
    def bird_engine(self):
        store = ConceptStore(geometry=8)
        store.add_fact(("Tweety", "isA", "Bird"))
        store.add_fact(("Pingu", "isA", "Bird"))
        store.add_fact(("Pingu", "isA", "Penguin"))
        store.add_fact(("Rocket", "has", "jetpack"))
        engine = ProofEngine(store)
        engine.add_statements(
            [
                implies(
                    "birds_fly",
                    compound("And", compound("isA", "?x", "Bird"), compound("Not", compound("isA", "?x", "Penguin"))),
                    compound("can", "?x", "fly"),
                ),
                implies(
                    "lift",
                    compound("Or", compound("has", "?x", "wings"), compound("has", "?x", "jetpack")),
                    compound("airborne", "?x"),
                ),
            ]
        )
        return engine

    def test_negation_as_failure(self, bird_engine):
        result = bird_engine.prove("can Tweety fly")
        assert result.valid
        assert any(s["operation"] == "negation_as_failure" for s in result.steps)
        assert not bird_engine.prove("can Pingu fly").valid

    def test_disjunction(self, bird_engine):
        assert bird_engine.prove("airborne Rocket").valid
        assert not bird_engine.prove("airborne Tweety").valid


class TestLevelPruning:
    """Strict level pruning skips rules with harder premises."""

    def build(self, strict):
        store = ConceptStore(geometry=8)
        store.add_fact(("Widget", "hasPart", "Complex"))
        config = EngineConfig(use_level_optimization=True, strict_level_pruning=strict)
        engine = ProofEngine(store, config)
        engine.add_statements(
            [implies("composite", compound("hasPart", "?y", "Complex"), compound("simple", "?y"))]
        )
        engine.level_manager.register_concept("Widget", 1)
        engine.level_manager.register_concept("Complex", 5)
        return engine

    def test_strict_pruning_blocks_rule(self):
        assert not self.build(strict=True).prove("simple Widget").valid

    def test_without_strict_pruning_rule_applies(self):
        assert self.build(strict=False).prove("simple Widget").valid

    def test_options_default_off(self):
        options = UnificationOptions()
        assert not options.use_level_optimization
        assert options.goal_level is None
