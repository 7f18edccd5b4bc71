"""
kb_reasoning - Symbolic reasoning over a hyperdimensional concept store

Facts and rules are kept as logical statements; concepts also own bounded
diamonds in hdc_core vector space, so abduction and analogy can be answered
geometrically.

This package implements:
- Concept/fact store with existence levels, forgetting and snapshots
- Statement AST, rule extraction and constructivist levels
- Unification and backward chaining (ProofEngine)
- Relation-aware inference and forward chaining (InferenceEngine)
- Abductive and analogical reasoning over diamonds (Reasoner)

Example:
    from kb_reasoning import ConceptStore, InferenceEngine

    store = ConceptStore(geometry=1024)
    store.add_fact(("Dog", "IS_A", "mammal"))
    store.add_fact(("mammal", "IS_A", "animal"))

    engine = InferenceEngine()
    result = engine.infer("Dog", "IS_A", "animal", store.get_facts())
    print(result.truth, result.method)   # Truth.TRUE_CERTAIN transitive
"""

__version__ = "1.0.0"

from .config import EngineConfig, ReasoningThresholds, get_thresholds
from .dsl import ReasoningDSL, RuleBuilder
from .errors import MalformedTripleError, RuleExtractionError, SnapshotError
from .existence import Existence, normalize_is_a
from .inference import (
    CompositionRule,
    DefaultRule,
    InferenceEngine,
    InferenceResult,
    RelationProperties,
    RelationRegistry,
    Triple,
    Truth,
)
from .knowledge_base import Concept, ConceptStore, Fact, ForgetResult
from .levels import LevelManager, compute_goal_level
from .prover import ProofEngine
from .reasoner import (
    AbductionResult,
    AnalogyResult,
    DiamondRetriever,
    Reasoner,
    adversarial_check,
)
from .rules import Rule, extract_rules
from .terms import (
    AndPart,
    Compound,
    Hole,
    Identifier,
    LeafPart,
    Literal,
    NotPart,
    OrPart,
    Reference,
    Statement,
    compound,
    statement,
)
from .unification import ProofResult, UnificationEngine

__all__ = [
    # Config
    "EngineConfig",
    "ReasoningThresholds",
    "get_thresholds",
    # Errors
    "MalformedTripleError",
    "SnapshotError",
    "RuleExtractionError",
    # Store
    "Existence",
    "normalize_is_a",
    "ConceptStore",
    "Concept",
    "Fact",
    "ForgetResult",
    # Terms and rules
    "Identifier",
    "Hole",
    "Literal",
    "Reference",
    "Compound",
    "Statement",
    "LeafPart",
    "AndPart",
    "OrPart",
    "NotPart",
    "statement",
    "compound",
    "Rule",
    "extract_rules",
    # Proof
    "LevelManager",
    "compute_goal_level",
    "UnificationEngine",
    "ProofResult",
    "ProofEngine",
    # Inference
    "Truth",
    "Triple",
    "InferenceResult",
    "InferenceEngine",
    "RelationRegistry",
    "RelationProperties",
    "DefaultRule",
    "CompositionRule",
    # Geometry
    "Reasoner",
    "DiamondRetriever",
    "AbductionResult",
    "AnalogyResult",
    "adversarial_check",
    # DSL
    "ReasoningDSL",
    "RuleBuilder",
]
