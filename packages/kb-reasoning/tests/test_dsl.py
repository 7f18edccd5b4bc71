"""
tests/test_dsl.py - Fluent API wiring store, inference, proof and geometry
"""

import pytest
import torch

from hdc_core.operators import permute
from kb_reasoning import ConceptStore, EngineConfig, Existence, ReasoningDSL, Truth

GEOMETRY = 8


def point(*values):
    padded = list(values) + [0] * (GEOMETRY - len(values))
    return torch.tensor(padded, dtype=torch.int32)


@pytest.fixture
def r():
    return ReasoningDSL(EngineConfig.from_dict({"vector": {"geometry": GEOMETRY}}))


class TestConstruction:
    def test_geometry_must_match_store(self):
        config = EngineConfig.from_dict({"vector": {"geometry": GEOMETRY}})
        with pytest.raises(ValueError):
            ReasoningDSL(config, ConceptStore(geometry=16))

    def test_keeps_empty_caller_store(self):
        config = EngineConfig.from_dict({"vector": {"geometry": GEOMETRY}})
        mine = ConceptStore(geometry=GEOMETRY)
        r = ReasoningDSL(config, mine)
        assert r.store is mine
        mine.add_fact(("Dog", "IS_A", "mammal"))
        assert r.query("Dog", "IS_A", "mammal").truth == Truth.TRUE_CERTAIN

    def test_shared_store(self, r):
        assert r.prover.store is r.store
        assert r.reasoner.store is r.store


class TestFactsAndQueries:
    """fact(), relation() and query()."""

    def test_transitive_query(self, r):
        r.facts([("Dog", "IS_A", "mammal"), ("mammal", "IS_A", "animal")])
        result = r.query("Dog", "IS_A", "animal")
        assert result.truth == Truth.TRUE_CERTAIN
        assert result.method == "transitive"

    def test_query_records_usage(self, r):
        r.fact("Dog", "IS_A", "mammal")
        r.query("Dog", "IS_A", "mammal")
        assert r.store.get_usage_stats("Dog")["query_count"] == 1

    def test_weak_facts_are_ignored(self, r):
        r.fact("Tom", "IS_A", "Cat", existence=Existence.UNPROVEN)
        assert r.query("Tom", "IS_A", "Cat").truth == Truth.UNKNOWN

    def test_metadata_is_stored(self, r):
        fid = r.fact("Dog", "IS_A", "mammal", source="zoo")
        assert r.store.get_fact(fid).metadata == {"source": "zoo"}

    def test_relation_declaration(self, r):
        r.relation("MARRIED_TO", symmetric=True)
        r.relation("PARENT_OF", inverse="CHILD_OF")
        r.fact("Alice", "MARRIED_TO", "Bob")
        r.fact("Ana", "PARENT_OF", "Ion")
        assert r.query("Bob", "MARRIED_TO", "Alice").method == "symmetric"
        assert r.query("Ion", "CHILD_OF", "Ana").method == "inverse"
        assert r.permuter.has("MARRIED_TO")

    def test_default_with_exception(self, r):
        r.default("birds_fly", "bird", "CAN", "fly", exceptions=["Penguin"])
        r.facts([("Pete", "IS_A", "Penguin"), ("Penguin", "IS_A", "bird"), ("Tweety", "IS_A", "bird")])
        assert r.query("Pete", "CAN", "fly").truth == Truth.FALSE
        assert r.query("Tweety", "CAN", "fly").truth == Truth.TRUE_DEFAULT

    def test_composition(self, r):
        r.composition(
            "grandparent",
            ("?x", "GRANDPARENT_OF", "?z"),
            ("?x", "PARENT_OF", "?y"),
            ("?y", "PARENT_OF", "?z"),
        )
        r.facts([("Ion", "PARENT_OF", "Ana"), ("Ana", "PARENT_OF", "Maria")])
        assert r.query("Ion", "GRANDPARENT_OF", "Maria").rule == "grandparent"


class TestRules:
    """Rule builder and backward chaining."""

    def test_builder_registers_rule(self, r):
        rule = r.rule("dogs_bark").when("IS_A", "?x", "Dog").and_("HAS_PROPERTY", "?x", "vocal").then("CAN", "?x", "bark")
        assert rule.name == "dogs_bark"
        assert r.prover.rules == [rule]

    def test_rules_are_vector_encoded(self, r):
        rule = r.rule("mortal").when("IS_A", "?x", "Human").then("IS_A", "?x", "Mortal")
        assert rule.vector is not None
        assert rule.vector.shape == (GEOMETRY,)

    def test_prove_with_builder_rule(self, r):
        r.rule("dogs_bark").when("IS_A", "?x", "Dog").and_("HAS_PROPERTY", "?x", "vocal").then("CAN", "?x", "bark")
        r.fact("Rex", "IS_A", "Dog")
        r.fact("Rex", "HAS_PROPERTY", "vocal")
        assert r.prove("CAN", "Rex", "bark").valid
        assert r.prove("CAN Rex bark").rule == "dogs_bark"
        assert not r.prove("CAN", "Fido", "bark").valid

    def test_unless(self, r):
        r.rule("birds_fly").when("IS_A", "?x", "Bird").unless("IS_A", "?x", "Penguin").then("CAN", "?x", "fly")
        r.facts([("Tweety", "IS_A", "Bird"), ("Pingu", "IS_A", "Bird"), ("Pingu", "IS_A", "Penguin")])
        assert r.prove("CAN", "Tweety", "fly").valid
        assert not r.prove("CAN", "Pingu", "fly").valid

    def test_rule_needs_condition(self, r):
        with pytest.raises(ValueError):
            r.rule("empty").then("CAN", "?x", "fly")


class TestDeriveAll:
    def test_adds_derived_facts(self, r):
        r.facts([("A", "IS_A", "B"), ("B", "IS_A", "C")])
        derived = r.derive_all()
        assert [d.key for d in derived] == [("A", "IS_A", "C")]
        fact = r.store.get_best_existence_fact("A", "IS_A", "C")
        assert fact.existence == Existence.DEMONSTRATED
        assert fact.metadata["derived_by"] == "transitive_closure"

    def test_second_pass_adds_nothing(self, r):
        r.facts([("A", "IS_A", "B"), ("B", "IS_A", "C")])
        r.derive_all()
        assert r.derive_all() == []


class TestGeometry:
    """causes() and analogy() through the shared store."""

    def test_causes(self, r):
        r.relation("CAUSES")
        fire = point(100, 50, -20)
        r.concept("Fire", fire)
        r.concept("Flood", point(0, 0, 0, 0, 0, -90, -60, -30))
        r.concept("Smoke", permute(fire, r.permuter.get("CAUSES")))
        assert r.causes("Smoke").concept == "Fire"

    def test_causes_of_unknown_effect(self, r):
        r.relation("CAUSES")
        assert not r.causes("Smoke")

    def test_analogy(self, r):
        for label, value in (("Theft", 10), ("Jail", 30), ("Fraud", 40), ("Fine", 60)):
            r.concept(label, point(value))
        result = r.analogy("Theft", "Jail", "Fraud")
        assert result.concept == "Fine"
        assert result.band == Truth.TRUE_CERTAIN


class TestSnapshot:
    def test_restore_rolls_back(self, r):
        r.fact("Dog", "IS_A", "mammal")
        saved = r.snapshot()
        r.fact("Cat", "IS_A", "mammal")
        assert r.restore(saved) == 1
        assert len(r.store) == 1
        assert r.query("Cat", "IS_A", "mammal").truth == Truth.UNKNOWN
