"""
validator/model_validator.py — główny walidator pliku modelu.

ModelValidator().validate(raw) -> ValidationReport

Etapy:
  A — JSON Schema           (Draft 2020-12, fail-fast)
  B — deklaracje            (unikalność nazw, extends, kolumny, porządek)
  C — wyrażenia i formuły   (nazwy, arność, typy kolumn, kontekst formuła/wyrażenie)
  D — rekursja              (cykle wywołań predykatów i funkcji)
  E — polecenia             (cel, oczekiwany werdykt, składnia i nazwy zakresu)

Typ kolumny wyrażenia to sygnatura najwyższego poziomu (korzeń drzewa) albo
None, gdy nie da się jej ustalić (univ, iden, suma różnych korzeni).
"""

from __future__ import annotations

from typing import TypeAlias

from typing import Any

import jsonschema

from data_model.expressions import COMPARISONS, MULTIPLICITIES, QUANTIFIERS
from data_model.scope import parse_scope
from data_model.signatures import BUILTIN_CONSTS, ORDERING_OPS

from .schema import MODEL_SCHEMA
from .types import ErrorCode, ValidationError, ValidationReport

# Po tylu błędach kolejne etapy nie startują
MAX_ERRORS = 20

# Kształt wyrażenia: krotka korzeni kolumn; None w kolumnie = typ nieznany
Shape: TypeAlias = tuple[str | None, ...]

_REL_BINARY = frozenset({".", "->", "+", "-", "&", "<:", ":>"})
_REL_UNARY  = frozenset({"~", "^", "*"})
_CONNECTIVES = frozenset({"not", "and", "or", "=>", "<=>"})

_EXPECT_BY_KIND = {
    "check": frozenset({"verified", "counterexample"}),
    "run":   frozenset({"satisfiable", "unsatisfiable"}),
}


# ---------------------------------------------------------------------------
# Funkcje pomocnicze
# ---------------------------------------------------------------------------

def _is_decls(node: Any) -> bool:
    """Lista deklaracji kwantyfikatora: [[zmienna, dziedzina], ...]."""
    return (
        isinstance(node, list)
        and len(node) > 0
        and all(
            isinstance(d, list) and len(d) == 2 and isinstance(d[0], str)
            for d in node
        )
    )


def _is_int_node(node: Any) -> bool:
    if isinstance(node, bool):
        return False
    if isinstance(node, int):
        return True
    return isinstance(node, list) and len(node) > 0 and node[0] == "#"


def _merge_col(a: str | None, b: str | None) -> str | None:
    return a if a == b else None


# ---------------------------------------------------------------------------
# ModelValidator
# ---------------------------------------------------------------------------

class ModelValidator:
    """
    Walidator modelu relacyjnego (plik JSON po json.loads).

    Użycie:
        report = ModelValidator().validate(raw)
        if not report.is_valid:
            for e in report.errors:
                print(e.code, e.path, e.message)
    """

    def __init__(self, schema: dict[str, Any] | None = None) -> None:
        self._schema = schema or MODEL_SCHEMA
        self._reset()

    def _reset(self) -> None:
        self._parent:    dict[str, str | None] = {}
        self._tops:      dict[str, str] = {}
        self._ordered:   set[str] = set()
        self._relations: dict[str, Shape] = {}
        self._preds:     dict[str, list] = {}
        self._funcs:     dict[str, list] = {}
        self._func_shapes: dict[str, Shape | None] = {}
        self._visiting:  set[str] = set()
        self._func_bodies: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Publiczny interfejs
    # ------------------------------------------------------------------

    def validate(self, raw: dict[str, Any]) -> ValidationReport:
        """Waliduje model i zwraca ValidationReport."""
        self._reset()
        errors: list[ValidationError] = []
        warnings: list[str] = []

        # A — JSON Schema (fail-fast)
        self._stage_schema(raw, errors)
        if errors:
            return ValidationReport(is_valid=False, errors=errors, warnings=warnings)

        # B — deklaracje (fail-fast)
        self._stage_declarations(raw, errors, warnings)
        if errors:
            return ValidationReport(is_valid=False, errors=errors, warnings=warnings)

        # C — wyrażenia
        self._stage_expressions(raw, errors)

        # D — rekursja
        if len(errors) < MAX_ERRORS:
            self._stage_recursion(raw, errors)

        # E — polecenia
        if len(errors) < MAX_ERRORS:
            self._stage_commands(raw, errors, warnings)

        return ValidationReport(
            is_valid=len(errors) == 0,
            errors=errors[:MAX_ERRORS],
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Stage A — JSON Schema
    # ------------------------------------------------------------------

    def _stage_schema(self, raw: Any, errors: list[ValidationError]) -> None:
        validator = jsonschema.Draft202012Validator(self._schema)
        for e in validator.iter_errors(raw):
            path = (
                "/" + "/".join(str(p) for p in e.absolute_path)
                if e.absolute_path
                else "/"
            )
            errors.append(ValidationError(
                code=ErrorCode.SCHEMA_VIOLATION,
                path=path,
                message=e.message,
                expected_fix=f"Popraw naruszenie schematu JSON na ścieżce {path}.",
            ))
            if len(errors) >= MAX_ERRORS:
                return

    # ------------------------------------------------------------------
    # Stage B — deklaracje
    # ------------------------------------------------------------------

    def _stage_declarations(
        self,
        raw: dict,
        errors: list[ValidationError],
        warnings: list[str],
    ) -> None:
        seen: dict[str, str] = {}

        def declare(name: str, path: str) -> None:
            if name in BUILTIN_CONSTS:
                errors.append(ValidationError(
                    code=ErrorCode.DUPLICATE_NAME,
                    path=path,
                    message=f"Nazwa '{name}' jest zarezerwowana.",
                    expected_fix=f"Zmień nazwę '{name}' (univ, none, iden są wbudowane).",
                    details={"name": name},
                ))
            elif name in seen:
                errors.append(ValidationError(
                    code=ErrorCode.DUPLICATE_NAME,
                    path=path,
                    message=f"Nazwa '{name}' zadeklarowana ponownie (pierwsza: {seen[name]}).",
                    expected_fix=f"Nadaj unikalną nazwę zamiast '{name}'.",
                    details={"name": name, "first": seen[name]},
                ))
            else:
                seen[name] = path

        sigs = raw.get("sigs", [])
        for i, s in enumerate(sigs):
            declare(s["name"], f"/sigs/{i}/name")
            self._parent[s["name"]] = s.get("extends")
            if s.get("ordered"):
                self._ordered.add(s["name"])

        # extends: istnienie i brak cykli
        for i, s in enumerate(sigs):
            parent = s.get("extends")
            if parent is None:
                continue
            if parent not in self._parent:
                errors.append(ValidationError(
                    code=ErrorCode.UNKNOWN_SIG,
                    path=f"/sigs/{i}/extends",
                    message=f"Sygnatura '{s['name']}' rozszerza nieznaną sygnaturę '{parent}'.",
                    expected_fix=f"Zadeklaruj sygnaturę '{parent}' albo popraw 'extends'.",
                    details={"sig": s["name"], "extends": parent},
                ))
                continue
            chain = {s["name"]}
            cur: str | None = parent
            while cur is not None and cur in self._parent:
                if cur in chain:
                    errors.append(ValidationError(
                        code=ErrorCode.BAD_EXTENDS,
                        path=f"/sigs/{i}/extends",
                        message=f"Cykl dziedziczenia przez sygnaturę '{s['name']}'.",
                        expected_fix="Usuń cykl z łańcucha 'extends'.",
                        details={"sig": s["name"]},
                    ))
                    break
                chain.add(cur)
                cur = self._parent[cur]
        if errors:
            return

        for name in self._parent:
            cur = name
            while self._parent[cur] is not None:
                cur = self._parent[cur]
            self._tops[name] = cur

        # porządek: tylko sygnatury najwyższego poziomu bez podsygnatur
        children = {p for p in self._parent.values() if p is not None}
        for i, s in enumerate(sigs):
            if not s.get("ordered"):
                continue
            if s.get("extends") or s.get("abstract") or s["name"] in children:
                errors.append(ValidationError(
                    code=ErrorCode.BAD_ORDERING,
                    path=f"/sigs/{i}/ordered",
                    message=(
                        f"Sygnatura uporządkowana '{s['name']}' musi być konkretną "
                        f"sygnaturą najwyższego poziomu bez podsygnatur."
                    ),
                    expected_fix="Usuń 'ordered' albo 'extends'/'abstract'/podsygnatury.",
                    details={"sig": s["name"]},
                ))

        # pola i relacje
        for i, s in enumerate(sigs):
            for j, f in enumerate(s.get("fields", [])):
                path = f"/sigs/{i}/fields/{j}"
                declare(f["name"], f"{path}/name")
                if self._check_cols(f["cols"], f"{path}/cols", errors):
                    self._relations[f["name"]] = (
                        (self._tops[s["name"]],) + tuple(self._tops[c] for c in f["cols"])
                    )
        for i, r in enumerate(raw.get("relations", [])):
            path = f"/relations/{i}"
            declare(r["name"], f"{path}/name")
            if self._check_cols(r["cols"], f"{path}/cols", errors):
                self._relations[r["name"]] = tuple(self._tops[c] for c in r["cols"])
            if r.get("mult", "set") != "set" and len(r["cols"]) == 1:
                warnings.append(
                    f"{path}: krotność '{r['mult']}' relacji unarnej '{r['name']}' "
                    f"ogranicza liczbę jej krotek."
                )

        for i, p in enumerate(raw.get("predicates", [])):
            declare(p["name"], f"/predicates/{i}/name")
            self._preds[p["name"]] = p.get("params", [])
            self._check_params(p.get("params", []), f"/predicates/{i}/params", errors)
        for i, fn in enumerate(raw.get("functions", [])):
            declare(fn["name"], f"/functions/{i}/name")
            self._funcs[fn["name"]] = fn.get("params", [])
            self._func_bodies[fn["name"]] = fn["body"]
            self._check_params(fn.get("params", []), f"/functions/{i}/params", errors)

    def _check_cols(self, cols: list[str], path: str, errors: list[ValidationError]) -> bool:
        ok = True
        for k, c in enumerate(cols):
            if c not in self._tops:
                ok = False
                errors.append(ValidationError(
                    code=ErrorCode.UNKNOWN_SIG,
                    path=f"{path}/{k}",
                    message=f"Kolumna odwołuje się do nieznanej sygnatury '{c}'.",
                    expected_fix=f"Zadeklaruj sygnaturę '{c}' albo popraw kolumnę.",
                    details={"sig": c},
                ))
        return ok

    def _check_params(self, params: list, path: str, errors: list[ValidationError]) -> None:
        names: set[str] = set()
        for k, (var, sig) in enumerate(params):
            if sig not in self._tops:
                errors.append(ValidationError(
                    code=ErrorCode.UNKNOWN_SIG,
                    path=f"{path}/{k}/1",
                    message=f"Parametr '{var}' ma nieznaną sygnaturę '{sig}'.",
                    expected_fix=f"Zadeklaruj sygnaturę '{sig}' albo popraw typ parametru.",
                    details={"param": var, "sig": sig},
                ))
            if var in names:
                errors.append(ValidationError(
                    code=ErrorCode.DUPLICATE_NAME,
                    path=f"{path}/{k}/0",
                    message=f"Parametr '{var}' powtórzony.",
                    expected_fix="Nadaj parametrom unikalne nazwy.",
                    details={"param": var},
                ))
            names.add(var)

    # ------------------------------------------------------------------
    # Stage C — wyrażenia i formuły
    # ------------------------------------------------------------------

    def _stage_expressions(self, raw: dict, errors: list[ValidationError]) -> None:
        for i, f in enumerate(raw.get("facts", [])):
            self._formula(f["body"], f"/facts/{i}/body", {}, errors)
        for i, p in enumerate(raw.get("predicates", [])):
            scope = {var: (self._tops[sig],) for var, sig in p.get("params", [])}
            self._formula(p["body"], f"/predicates/{i}/body", scope, errors)
        for i, fn in enumerate(raw.get("functions", [])):
            scope = {var: (self._tops[sig],) for var, sig in fn.get("params", [])}
            self._expr(fn["body"], f"/functions/{i}/body", scope, errors)

    def _error(
        self,
        errors: list[ValidationError],
        code: ErrorCode,
        path: str,
        message: str,
        fix: str,
        **details: Any,
    ) -> None:
        if len(errors) < MAX_ERRORS:
            errors.append(ValidationError(
                code=code,
                path=path,
                message=message,
                expected_fix=fix,
                details=details or None,
            ))

    def _name_shape(
        self,
        name: str,
        path: str,
        scope: dict[str, Shape | None],
        errors: list[ValidationError],
    ) -> Shape | None:
        if name in scope:
            return scope[name]
        if name in ("univ", "none"):
            return (None,)
        if name == "iden":
            return (None, None)
        if name in self._tops:
            return (self._tops[name],)
        if name in self._relations:
            return self._relations[name]
        sig, sep, op = name.partition("/")
        if sep and sig in self._ordered and op in ORDERING_OPS:
            return (sig,) if op in ("first", "last") else (sig, sig)
        if sep and sig in self._tops:
            self._error(
                errors, ErrorCode.UNKNOWN_NAME, path,
                f"'{name}': sygnatura '{sig}' nie jest uporządkowana "
                f"albo '{op}' nie jest relacją porządku.",
                f"Oznacz '{sig}' jako ordered i użyj jednej z: {', '.join(ORDERING_OPS)}.",
                name=name,
            )
            return None
        self._error(
            errors, ErrorCode.UNKNOWN_NAME, path,
            f"Nieznana nazwa '{name}'.",
            f"Zadeklaruj '{name}' (sygnatura, relacja, zmienna) albo popraw literówkę.",
            name=name,
        )
        return None

    def _expr(
        self,
        node: Any,
        path: str,
        scope: dict[str, Shape | None],
        errors: list[ValidationError],
    ) -> Shape | None:
        """Sprawdza wyrażenie relacyjne i zwraca jego kształt (None = nieznany/błąd)."""
        if isinstance(node, str):
            return self._name_shape(node, path, scope, errors)
        if not isinstance(node, list) or not node or not isinstance(node[0], str):
            self._error(
                errors, ErrorCode.BAD_EXPRESSION, path,
                f"Oczekiwano wyrażenia relacyjnego, otrzymano {node!r}.",
                "Użyj nazwy albo listy [operator, argumenty...].",
            )
            return None

        op, args = node[0], node[1:]

        if op in _REL_BINARY:
            if len(args) < 2:
                self._error(
                    errors, ErrorCode.BAD_EXPRESSION, path,
                    f"Operator '{op}' wymaga co najmniej 2 argumentów.",
                    f"Podaj [\"{op}\", a, b].",
                )
                return None
            shape = self._expr(args[0], f"{path}/1", scope, errors)
            for k, arg in enumerate(args[1:], start=2):
                right = self._expr(arg, f"{path}/{k}", scope, errors)
                shape = self._combine(op, shape, right, path, errors)
            return shape

        if op in _REL_UNARY:
            if len(args) != 1:
                self._error(
                    errors, ErrorCode.BAD_EXPRESSION, path,
                    f"Operator '{op}' wymaga dokładnie 1 argumentu.",
                    f"Podaj [\"{op}\", a].",
                )
                return None
            shape = self._expr(args[0], f"{path}/1", scope, errors)
            if shape is None:
                return None
            if len(shape) != 2:
                self._error(
                    errors, ErrorCode.ARITY_MISMATCH, path,
                    f"Operator '{op}' wymaga relacji binarnej, arność {len(shape)}.",
                    "Zastosuj operator do relacji o arności 2.",
                    expected=2, actual=len(shape),
                )
                return None
            if op == "~":
                return (shape[1], shape[0])
            if op == "^":
                return shape
            return (None, None)

        if op == "let":
            return self._let(node, path, scope, errors, formula=False)

        if op == "call":
            return self._call(node, path, scope, errors, formula=False)

        self._error(
            errors, ErrorCode.BAD_EXPRESSION, path,
            f"'{op}' nie jest operatorem wyrażenia relacyjnego.",
            "Formuły (in, =, and, ...) i liczby (#) nie mogą stać w miejscu relacji.",
            op=op,
        )
        return None

    def _combine(
        self,
        op: str,
        left: Shape | None,
        right: Shape | None,
        path: str,
        errors: list[ValidationError],
    ) -> Shape | None:
        if left is None or right is None:
            return None
        if op == "->":
            return left + right
        if op == ".":
            if len(left) + len(right) - 2 < 1:
                self._error(
                    errors, ErrorCode.ARITY_MISMATCH, path,
                    "Złączenie dwóch zbiorów unarnych daje arność 0.",
                    "Przynajmniej jeden argument złączenia musi mieć arność >= 2.",
                )
                return None
            a, b = left[-1], right[0]
            if a is not None and b is not None and a != b:
                self._error(
                    errors, ErrorCode.TYPE_MISMATCH, path,
                    f"Złączenie kolumn różnych typów ({a} . {b}) jest zawsze puste.",
                    "Sprawdź kolejność argumentów złączenia.",
                    left=a, right=b,
                )
                return None
            return left[:-1] + right[1:]
        if op in ("<:", ":>"):
            rel, sub = (right, left) if op == "<:" else (left, right)
            if len(sub) != 1:
                self._error(
                    errors, ErrorCode.ARITY_MISMATCH, path,
                    f"Operator '{op}' zawęża relację do zbioru: arność zbioru {len(sub)}.",
                    "Zbiór (po stronie '<' albo '>') musi być unarny.",
                    expected=1, actual=len(sub),
                )
                return None
            col = rel[0] if op == "<:" else rel[-1]
            if sub[0] is not None and col is not None and sub[0] != col:
                self._error(
                    errors, ErrorCode.TYPE_MISMATCH, path,
                    f"Zawężenie kolumny typu {col} do zbioru typu {sub[0]} jest zawsze puste.",
                    "Sprawdź typ zbioru i kolejność argumentów.",
                    left=sub[0], right=col,
                )
                return None
            return rel
        # +, -, &
        if len(left) != len(right):
            self._error(
                errors, ErrorCode.ARITY_MISMATCH, path,
                f"Operator '{op}' wymaga równych arności ({len(left)} vs {len(right)}).",
                "Wyrównaj arność argumentów.",
                left=len(left), right=len(right),
            )
            return None
        if op == "&":
            for a, b in zip(left, right):
                if a is not None and b is not None and a != b:
                    self._error(
                        errors, ErrorCode.TYPE_MISMATCH, path,
                        f"Przecięcie kolumn różnych typów ({a} & {b}) jest zawsze puste.",
                        "Sprawdź typy argumentów przecięcia.",
                        left=a, right=b,
                    )
                    return None
            return left
        if op == "-":
            return left
        return tuple(_merge_col(a, b) for a, b in zip(left, right))

    def _let(
        self,
        node: list,
        path: str,
        scope: dict[str, Shape | None],
        errors: list[ValidationError],
        formula: bool,
    ) -> Shape | None:
        if len(node) != 4 or not isinstance(node[1], str):
            self._error(
                errors, ErrorCode.BAD_EXPRESSION, path,
                "let wymaga postaci [\"let\", zmienna, wartość, ciało].",
                "Popraw strukturę let.",
            )
            return None
        value = self._expr(node[2], f"{path}/2", scope, errors)
        inner = {**scope, node[1]: value}
        if formula:
            self._formula(node[3], f"{path}/3", inner, errors)
            return None
        return self._expr(node[3], f"{path}/3", inner, errors)

    def _call(
        self,
        node: list,
        path: str,
        scope: dict[str, Shape | None],
        errors: list[ValidationError],
        formula: bool,
    ) -> Shape | None:
        if len(node) < 2 or not isinstance(node[1], str):
            self._error(
                errors, ErrorCode.BAD_EXPRESSION, path,
                "call wymaga postaci [\"call\", nazwa, argumenty...].",
                "Podaj nazwę predykatu lub funkcji.",
            )
            return None
        name, args = node[1], node[2:]
        table = self._preds if formula else self._funcs
        other = self._funcs if formula else self._preds
        if name not in table:
            if name in other:
                kind = "funkcja" if formula else "predykat"
                self._error(
                    errors, ErrorCode.BAD_EXPRESSION, path,
                    f"'{name}' to {kind} — niedozwolony w tym miejscu.",
                    "Predykaty wywołuj jako formuły, funkcje jako wyrażenia.",
                    name=name,
                )
            else:
                self._error(
                    errors, ErrorCode.UNKNOWN_NAME, f"{path}/1",
                    f"Nieznany predykat/funkcja '{name}'.",
                    f"Zadeklaruj '{name}' albo popraw literówkę.",
                    name=name,
                )
            return None
        params = table[name]
        if len(args) != len(params):
            self._error(
                errors, ErrorCode.ARITY_MISMATCH, path,
                f"'{name}' wymaga {len(params)} argumentów, podano {len(args)}.",
                f"Podaj dokładnie {len(params)} argumentów dla '{name}'.",
                expected=len(params), actual=len(args),
            )
            return None
        for k, (arg, (var, sig)) in enumerate(zip(args, params), start=2):
            shape = self._expr(arg, f"{path}/{k}", scope, errors)
            if shape is None:
                continue
            if len(shape) != 1:
                self._error(
                    errors, ErrorCode.ARITY_MISMATCH, f"{path}/{k}",
                    f"Argument '{var}' wywołania '{name}' musi być unarny.",
                    "Przekaż zbiór atomów (arność 1).",
                )
            elif shape[0] is not None and shape[0] != self._tops[sig]:
                self._error(
                    errors, ErrorCode.TYPE_MISMATCH, f"{path}/{k}",
                    f"Argument '{var}' wywołania '{name}' ma typ {shape[0]}, oczekiwano {sig}.",
                    f"Przekaż atomy sygnatury '{sig}'.",
                    expected=sig, actual=shape[0],
                )
        if formula:
            return None
        return self._function_shape(name)

    def _function_shape(self, name: str) -> Shape | None:
        if name in self._func_shapes:
            return self._func_shapes[name]
        if name in self._visiting:
            return None  # rekursję zgłasza etap D
        self._visiting.add(name)
        body = self._func_bodies[name]
        scope = {var: (self._tops[sig],) for var, sig in self._funcs[name]}
        shape = self._expr(body, "", scope, [])
        self._visiting.discard(name)
        self._func_shapes[name] = shape
        return shape

    def _int(
        self,
        node: Any,
        path: str,
        scope: dict[str, Shape | None],
        errors: list[ValidationError],
    ) -> None:
        if isinstance(node, int) and not isinstance(node, bool):
            return
        if isinstance(node, list) and len(node) == 2 and node[0] == "#":
            self._expr(node[1], f"{path}/1", scope, errors)
            return
        self._error(
            errors, ErrorCode.BAD_EXPRESSION, path,
            f"Oczekiwano wyrażenia całkowitego, otrzymano {node!r}.",
            "Użyj liczby albo [\"#\", wyrażenie].",
        )

    def _formula(
        self,
        node: Any,
        path: str,
        scope: dict[str, Shape | None],
        errors: list[ValidationError],
    ) -> None:
        if isinstance(node, bool):
            return
        if not isinstance(node, list) or not node or not isinstance(node[0], str):
            self._error(
                errors, ErrorCode.BAD_EXPRESSION, path,
                f"Oczekiwano formuły, otrzymano {node!r}.",
                "Formuła to true/false albo lista [operator, argumenty...].",
            )
            return

        op, args = node[0], node[1:]

        if op in _CONNECTIVES:
            expected = {"not": 1, "=>": 2, "<=>": 2}.get(op)
            if (expected is not None and len(args) != expected) or not args:
                self._error(
                    errors, ErrorCode.BAD_EXPRESSION, path,
                    f"Spójnik '{op}' ma niepoprawną liczbę argumentów ({len(args)}).",
                    "not: 1, =>/<=>: 2, and/or: co najmniej 1.",
                )
                return
            for k, arg in enumerate(args, start=1):
                self._formula(arg, f"{path}/{k}", scope, errors)
            return

        if op in ("in", "=", "!=") or op in COMPARISONS:
            if len(args) != 2:
                self._error(
                    errors, ErrorCode.BAD_EXPRESSION, path,
                    f"Operator '{op}' wymaga 2 argumentów.",
                    f"Podaj [\"{op}\", a, b].",
                )
                return
            lhs, rhs = args
            if op not in ("in", "=", "!=") or _is_int_node(lhs) or _is_int_node(rhs):
                if op == "in":
                    self._error(
                        errors, ErrorCode.BAD_EXPRESSION, path,
                        "'in' wymaga wyrażeń relacyjnych.",
                        "Użyj porównania (=, <, ...) dla liczb.",
                    )
                    return
                self._int(lhs, f"{path}/1", scope, errors)
                self._int(rhs, f"{path}/2", scope, errors)
                return
            left = self._expr(lhs, f"{path}/1", scope, errors)
            right = self._expr(rhs, f"{path}/2", scope, errors)
            if left is None or right is None:
                return
            if len(left) != len(right):
                self._error(
                    errors, ErrorCode.ARITY_MISMATCH, path,
                    f"'{op}' porównuje arności {len(left)} i {len(right)}.",
                    "Wyrównaj arność obu stron.",
                    left=len(left), right=len(right),
                )
                return
            for a, b in zip(left, right):
                if a is not None and b is not None and a != b:
                    self._error(
                        errors, ErrorCode.TYPE_MISMATCH, path,
                        f"'{op}' porównuje kolumny różnych typów ({a} vs {b}).",
                        "Sprawdź typy obu stron.",
                        left=a, right=b,
                    )
                    return
            return

        if op in QUANTIFIERS:
            if len(args) == 2 and _is_decls(args[0]):
                inner = dict(scope)
                for k, (var, domain) in enumerate(args[0]):
                    shape = self._expr(domain, f"{path}/1/{k}/1", inner, errors)
                    if shape is not None and len(shape) != 1:
                        self._error(
                            errors, ErrorCode.ARITY_MISMATCH, f"{path}/1/{k}/1",
                            f"Dziedzina zmiennej '{var}' musi być unarna (arność {len(shape)}).",
                            "Kwantyfikuj po zbiorze atomów.",
                        )
                        shape = None
                    inner[var] = shape
                self._formula(args[1], f"{path}/2", inner, errors)
                return
            if len(args) == 1 and op in MULTIPLICITIES:
                self._expr(args[0], f"{path}/1", scope, errors)
                return
            self._error(
                errors, ErrorCode.BAD_EXPRESSION, path,
                f"'{op}' wymaga [\"{op}\", [[zmienna, dziedzina], ...], ciało] "
                f"albo [\"{op}\", wyrażenie].",
                "Popraw strukturę kwantyfikatora.",
            )
            return

        if op == "let":
            self._let(node, path, scope, errors, formula=True)
            return

        if op == "call":
            self._call(node, path, scope, errors, formula=True)
            return

        self._error(
            errors, ErrorCode.BAD_EXPRESSION, path,
            f"'{op}' nie jest operatorem formuły.",
            "Wyrażenie relacyjne nie jest formułą — użyj np. [\"some\", wyrażenie].",
            op=op,
        )

    # ------------------------------------------------------------------
    # Stage D — rekursja
    # ------------------------------------------------------------------

    def _stage_recursion(self, raw: dict, errors: list[ValidationError]) -> None:
        bodies: dict[str, Any] = {}
        paths: dict[str, str] = {}
        for i, p in enumerate(raw.get("predicates", [])):
            bodies[p["name"]] = p["body"]
            paths[p["name"]] = f"/predicates/{i}/body"
        for i, fn in enumerate(raw.get("functions", [])):
            bodies[fn["name"]] = fn["body"]
            paths[fn["name"]] = f"/functions/{i}/body"

        graph = {name: _called_names(body) & bodies.keys() for name, body in bodies.items()}
        reported: set[str] = set()

        def visit(name: str, stack: list[str]) -> None:
            if name in stack:
                cycle = stack[stack.index(name):] + [name]
                if not reported & set(cycle):
                    reported.update(cycle)
                    self._error(
                        errors, ErrorCode.RECURSIVE_DEFINITION, paths[name],
                        f"Rekurencyjna definicja: {' -> '.join(cycle)}.",
                        "Rozwiń rekursję (np. domknięciem ^) — zakres nie ogranicza głębokości wywołań.",
                        cycle=cycle,
                    )
                return
            for callee in sorted(graph[name]):
                visit(callee, stack + [name])

        for name in bodies:
            visit(name, [])

    # ------------------------------------------------------------------
    # Stage E — polecenia
    # ------------------------------------------------------------------

    def _stage_commands(
        self,
        raw: dict,
        errors: list[ValidationError],
        warnings: list[str],
    ) -> None:
        commands = raw.get("commands", [])
        if not commands:
            warnings.append("Model nie zawiera poleceń (commands).")
        names: set[str] = set()
        for i, c in enumerate(commands):
            path = f"/commands/{i}"
            if c["name"] in names:
                self._error(
                    errors, ErrorCode.DUPLICATE_NAME, f"{path}/name",
                    f"Polecenie '{c['name']}' zadeklarowane ponownie.",
                    "Nadaj poleceniom unikalne nazwy.",
                    name=c["name"],
                )
            names.add(c["name"])

            if c["target"] not in self._preds:
                self._error(
                    errors, ErrorCode.BAD_COMMAND, f"{path}/target",
                    f"Cel polecenia '{c['target']}' nie jest predykatem modelu.",
                    "Wskaż nazwę zadeklarowanego predykatu.",
                    target=c["target"],
                )
            expect = c.get("expect")
            if expect is not None and expect not in _EXPECT_BY_KIND[c["kind"]]:
                self._error(
                    errors, ErrorCode.BAD_COMMAND, f"{path}/expect",
                    f"Werdykt '{expect}' niemożliwy dla polecenia {c['kind']}.",
                    f"Użyj jednego z: {sorted(_EXPECT_BY_KIND[c['kind']])}.",
                    kind=c["kind"], expect=expect,
                )

            try:
                spec = parse_scope(c.get("scope"))
            except ValueError as e:
                self._error(
                    errors, ErrorCode.BAD_SCOPE, f"{path}/scope",
                    str(e),
                    "Użyj składni np. \"3 but 5 Time, exactly 1 Attacker\".",
                )
                continue
            for sig in spec.bounds:
                if sig not in self._tops:
                    self._error(
                        errors, ErrorCode.BAD_SCOPE, f"{path}/scope",
                        f"Zakres odwołuje się do nieznanej sygnatury '{sig}'.",
                        f"Usuń '{sig}' z zakresu albo zadeklaruj sygnaturę.",
                        sig=sig,
                    )


def _called_names(node: Any) -> set[str]:
    """Nazwy wywoływane przez ["call", nazwa, ...] w dowolnym miejscu drzewa."""
    out: set[str] = set()
    if isinstance(node, list):
        if len(node) >= 2 and node[0] == "call" and isinstance(node[1], str):
            out.add(node[1])
        for child in node:
            out |= _called_names(child)
    return out
