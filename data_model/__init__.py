"""
data_model — struktury danych modelu relacyjnego scopefinder.

Użycie:
  from data_model import Model, Sig, Relation, Fact, parse_scope, ...

Moduły:
  signatures  — Sig, Relation, Multiplicity, nazwy relacji porządku
  expressions — drzewo wyrażeń relacyjnych i formuł
  model       — Fact, Predicate, Function, Command, Model
  scope       — ScopeSpec, parse_scope
"""

from .signatures import (
    SigName,
    Multiplicity,
    Sig,
    Relation,
    ORDERING_OPS,
    BUILTIN_CONSTS,
    ordering_name,
)
from .expressions import (
    Rel,
    Var,
    Const,
    Join,
    Product,
    Union,
    Diff,
    Intersect,
    Restrict,
    Transpose,
    Closure,
    Call,
    Let,
    Card,
    IntLit,
    Truth,
    Not,
    And,
    Or,
    Implies,
    Iff,
    Subset,
    Equal,
    Compare,
    Mult,
    Decl,
    Quant,
    PredCall,
    Expr,
    IntExpr,
    Formula,
    QUANTIFIERS,
    MULTIPLICITIES,
    COMPARISONS,
    join_all,
    product_all,
    union_all,
)
from .model import (
    Fact,
    Predicate,
    Function,
    CommandKind,
    Command,
    Model,
)
from .scope import ScopeSpec, parse_scope, DEFAULT_SCOPE

__all__ = [
    "SigName", "Multiplicity", "Sig", "Relation", "ORDERING_OPS", "BUILTIN_CONSTS",
    "ordering_name",
    "Rel", "Var", "Const", "Join", "Product", "Union", "Diff", "Intersect",
    "Restrict", "Transpose", "Closure", "Call", "Let", "Card", "IntLit",
    "Truth", "Not", "And", "Or", "Implies", "Iff", "Subset", "Equal", "Compare",
    "Mult", "Decl", "Quant", "PredCall", "Expr", "IntExpr", "Formula",
    "QUANTIFIERS", "MULTIPLICITIES", "COMPARISONS",
    "join_all", "product_all", "union_all",
    "Fact", "Predicate", "Function", "CommandKind", "Command", "Model",
    "ScopeSpec", "parse_scope", "DEFAULT_SCOPE",
]
