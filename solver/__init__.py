"""
solver — ograniczony wyszukiwacz modeli relacyjnych scopefinder.

Publiczne API:
  load_model(path)                        → Model
  resolve(scope, model)                   → ScopeTable
  solve(model, goal, table, options)      → SolveResult (SAT / UNSAT / TIMEOUT)
  check(model, target, scope, options)    → CheckResult (VERIFIED / COUNTEREXAMPLE / TIMEOUT)
  run(model, target, scope, options)      → CheckResult (SATISFIABLE / UNSATISFIABLE / TIMEOUT)
  execute(model, command, options)        → CheckResult dla polecenia modelu
  render(result) / to_json(report)        → raport instancji
  Evaluator, AtomPool, RelationStore      elementy niższego poziomu
"""

from .atoms     import AtomPool
from .checker   import CheckResult, Verdict, check, enumerate_instances, execute, run
from .engine    import Problem, SearchOptions, SearchStats, SolveResult, Status, iter_instances, solve
from .errors    import (
    InternalInvariantViolation,
    ModelError,
    ScopeError,
    SearchTimeout,
    SolverError,
)
from .evaluator import EvaluationError, Evaluator
from .instance  import Instance
from .loader    import load_model, load_model_dict, parse_expr, parse_formula
from .report    import render, to_json
from .scope     import ScopeTable, SigBound, cardinality_facts, implicit_facts, parse_scope, resolve
from .store     import Bounds, Conflict, RelationStore

__all__ = [
    "AtomPool",
    "CheckResult", "Verdict", "check", "run", "execute", "enumerate_instances",
    "Problem", "SearchOptions", "SearchStats", "SolveResult", "Status", "solve", "iter_instances",
    "SolverError", "ModelError", "ScopeError", "SearchTimeout", "InternalInvariantViolation",
    "Evaluator", "EvaluationError",
    "Instance",
    "load_model", "load_model_dict", "parse_expr", "parse_formula",
    "render", "to_json",
    "ScopeTable", "SigBound", "resolve", "parse_scope", "cardinality_facts", "implicit_facts",
    "Bounds", "Conflict", "RelationStore",
]
