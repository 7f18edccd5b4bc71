"""
hdc_core - Hyperdimensional vector algebra and concept regions

Fixed-geometry binary hypervectors (plus a sparse variant) and the bounded
diamonds that summarize a concept's extent in that space. No knowledge of
facts or rules lives here.

Quick Start:
    from hdc_core import from_name, bind, bundle, similarity, BoundedDiamond

    dog = from_name(2048, "Dog")
    mammal = from_name(2048, "mammal")
    is_a = from_name(2048, "IS_A")

    fact = bind(is_a, bind(dog, mammal))
    assert similarity(bind(fact, bind(is_a, mammal)), dog) == 1.0

    region = BoundedDiamond.from_examples("c1", "Dog", [dog])

Modules:
    hdc_core.vectors     - Dense vector generation and similarity
    hdc_core.operators   - bind, bundle, permute
    hdc_core.sparse      - Sparse exponent-set strategy
    hdc_core.strategies  - Strategy facade over both representations
    hdc_core.permuter    - Per-relation permutation registry
    hdc_core.diamond     - Bounded diamonds
    hdc_core.types       - Pydantic configuration
"""

__version__ = "1.0.0"

# Configuration
from .types import COMPONENT_MAX, COMPONENT_MIN, DiamondConfig, VectorConfig

# Errors
from .errors import EmptyOperandsError, GeometryMismatch

# Dense vectors
from .vectors import (
    batch_from_name,
    batch_similarity,
    check_geometry,
    distance,
    from_name,
    is_orthogonal,
    random_vector,
    similarity,
    top_k_similar,
    vector_info,
    zero_vector,
)

# Algebraic operators
from .operators import (
    bind,
    bind_all,
    bundle,
    invert_permutation,
    permute,
    random_permutation,
    sequence_encode,
    shift_permutation,
    solve_analogy,
    unbind,
    unpermute,
    weighted_bundle,
)

# Sparse strategy
from .sparse import (
    SELF_INVERSE_FLOOR,
    SparseVector,
    sparse_bind,
    sparse_bundle,
    sparse_from_name,
    sparse_random,
    sparse_similarity,
)

# Strategy facade
from .strategies import (
    DenseBinaryStrategy,
    FractalSemanticStrategy,
    HDCStrategy,
    get_strategy,
)

# Relations and regions
from .permuter import RelationPermuter
from .diamond import BoundedDiamond, to_point

__all__ = [
    # Config
    "VectorConfig",
    "DiamondConfig",
    "COMPONENT_MIN",
    "COMPONENT_MAX",
    # Errors
    "GeometryMismatch",
    "EmptyOperandsError",
    # Vectors
    "random_vector",
    "from_name",
    "batch_from_name",
    "zero_vector",
    "similarity",
    "distance",
    "batch_similarity",
    "top_k_similar",
    "is_orthogonal",
    "check_geometry",
    "vector_info",
    # Operators
    "bind",
    "unbind",
    "bind_all",
    "bundle",
    "weighted_bundle",
    "permute",
    "unpermute",
    "shift_permutation",
    "random_permutation",
    "invert_permutation",
    "sequence_encode",
    "solve_analogy",
    # Sparse
    "SparseVector",
    "SELF_INVERSE_FLOOR",
    "sparse_random",
    "sparse_from_name",
    "sparse_bind",
    "sparse_bundle",
    "sparse_similarity",
    # Strategies
    "HDCStrategy",
    "DenseBinaryStrategy",
    "FractalSemanticStrategy",
    "get_strategy",
    # Relations and regions
    "RelationPermuter",
    "BoundedDiamond",
    "to_point",
]
