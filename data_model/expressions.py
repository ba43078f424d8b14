"""
Drzewo wyrażeń i formuł logiki relacyjnej.

Wyrażenia relacyjne (wartość: zbiór krotek):
  Rel        odwołanie do relacji albo sygnatury (sygnatura = relacja unarna)
  Var        zmienna związana kwantyfikatorem, parametrem albo let
  Const      univ / none / iden
  Join       a . b          złączenie na sąsiednich kolumnach
  Product    a -> b         iloczyn kartezjański
  Union      a + b
  Diff       a - b
  Intersect  a & b
  Restrict   s <: r, r :> s   zawężenie dziedziny / przeciwdziedziny
  Transpose  ~a
  Closure    ^a  (reflexive=True: *a)
  Call       wywołanie funkcji nazwanej
  Let        let x = wartość | ciało   (ciało: wyrażenie albo formuła)

Wyrażenia całkowite:
  Card       #a
  IntLit     stała całkowita

Formuły:
  Truth, Not, And, Or, Implies, Iff
  Subset     a in b
  Equal      a = b   (relacyjne)
  Compare    porównanie całkowitoliczbowe (<, <=, >, >=, =, !=)
  Mult       some/no/one/lone a
  Quant      all/some/no/one/lone x: D, ... | ciało
  PredCall   wywołanie predykatu
"""

from __future__ import annotations

from typing import TypeAlias

from dataclasses import dataclass

QUANTIFIERS: frozenset[str] = frozenset({"all", "some", "no", "one", "lone"})
MULTIPLICITIES: frozenset[str] = frozenset({"some", "no", "one", "lone"})
COMPARISONS: frozenset[str] = frozenset({"<", "<=", ">", ">=", "=", "!="})


# ---------------------------------------------------------------------------
# Wyrażenia relacyjne
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Rel:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class Var:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class Const:
    kind: str  # "univ" | "none" | "iden"

    def __str__(self) -> str:
        return self.kind


@dataclass(frozen=True, slots=True)
class Join:
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"{self.left}.{self.right}"


@dataclass(frozen=True, slots=True)
class Product:
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} -> {self.right})"


@dataclass(frozen=True, slots=True)
class Union:
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} + {self.right})"


@dataclass(frozen=True, slots=True)
class Diff:
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} - {self.right})"


@dataclass(frozen=True, slots=True)
class Intersect:
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} & {self.right})"


@dataclass(frozen=True, slots=True)
class Restrict:
    """s <: r (domain=True) albo r :> s: krotki r o pierwszej/ostatniej kolumnie w s."""
    left: Expr
    right: Expr
    domain: bool = True

    def __str__(self) -> str:
        return f"({self.left} {'<:' if self.domain else ':>'} {self.right})"


@dataclass(frozen=True, slots=True)
class Transpose:
    expr: Expr

    def __str__(self) -> str:
        return f"~{self.expr}"


@dataclass(frozen=True, slots=True)
class Closure:
    expr: Expr
    reflexive: bool = False

    def __str__(self) -> str:
        return f"{'*' if self.reflexive else '^'}{self.expr}"


@dataclass(frozen=True, slots=True)
class Call:
    name: str
    args: tuple[Expr, ...] = ()

    def __str__(self) -> str:
        return f"{self.name}[{', '.join(str(a) for a in self.args)}]"


@dataclass(frozen=True, slots=True)
class Let:
    var: str
    value: Expr
    body: Expr | Formula

    def __str__(self) -> str:
        return f"(let {self.var} = {self.value} | {self.body})"


# ---------------------------------------------------------------------------
# Wyrażenia całkowite
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Card:
    expr: Expr

    def __str__(self) -> str:
        return f"#{self.expr}"


@dataclass(frozen=True, slots=True)
class IntLit:
    value: int

    def __str__(self) -> str:
        return str(self.value)


# ---------------------------------------------------------------------------
# Formuły
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Truth:
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True, slots=True)
class Not:
    formula: Formula

    def __str__(self) -> str:
        return f"not {self.formula}"


@dataclass(frozen=True, slots=True)
class And:
    items: tuple[Formula, ...]

    def __str__(self) -> str:
        return "(" + " and ".join(str(i) for i in self.items) + ")"


@dataclass(frozen=True, slots=True)
class Or:
    items: tuple[Formula, ...]

    def __str__(self) -> str:
        return "(" + " or ".join(str(i) for i in self.items) + ")"


@dataclass(frozen=True, slots=True)
class Implies:
    lhs: Formula
    rhs: Formula

    def __str__(self) -> str:
        return f"({self.lhs} => {self.rhs})"


@dataclass(frozen=True, slots=True)
class Iff:
    lhs: Formula
    rhs: Formula

    def __str__(self) -> str:
        return f"({self.lhs} <=> {self.rhs})"


@dataclass(frozen=True, slots=True)
class Subset:
    lhs: Expr
    rhs: Expr

    def __str__(self) -> str:
        return f"{self.lhs} in {self.rhs}"


@dataclass(frozen=True, slots=True)
class Equal:
    lhs: Expr
    rhs: Expr

    def __str__(self) -> str:
        return f"{self.lhs} = {self.rhs}"


@dataclass(frozen=True, slots=True)
class Compare:
    op: str
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"{self.lhs} {self.op} {self.rhs}"


@dataclass(frozen=True, slots=True)
class Mult:
    kind: str  # some | no | one | lone
    expr: Expr

    def __str__(self) -> str:
        return f"{self.kind} {self.expr}"


@dataclass(frozen=True, slots=True)
class Decl:
    var: str
    domain: Expr

    def __str__(self) -> str:
        return f"{self.var}: {self.domain}"


@dataclass(frozen=True, slots=True)
class Quant:
    kind: str  # all | some | no | one | lone
    decls: tuple[Decl, ...]
    body: Formula

    def __str__(self) -> str:
        decls = ", ".join(str(d) for d in self.decls)
        return f"({self.kind} {decls} | {self.body})"


@dataclass(frozen=True, slots=True)
class PredCall:
    name: str
    args: tuple[Expr, ...] = ()

    def __str__(self) -> str:
        return f"{self.name}[{', '.join(str(a) for a in self.args)}]"


Expr: TypeAlias = Rel | Var | Const | Join | Product | Union | Diff | Intersect | Restrict | Transpose | Closure | Call | Let
IntExpr: TypeAlias = Card | IntLit
Formula: TypeAlias = (
    Truth | Not | And | Or | Implies | Iff | Subset | Equal | Compare | Mult | Quant | PredCall | Let
)


# ---------------------------------------------------------------------------
# Konstruktory pomocnicze
# ---------------------------------------------------------------------------

def join_all(*exprs: Expr) -> Expr:
    """Złączenie lewostronne: join_all(a, b, c) = (a.b).c"""
    out = exprs[0]
    for e in exprs[1:]:
        out = Join(out, e)
    return out


def product_all(*exprs: Expr) -> Expr:
    out = exprs[0]
    for e in exprs[1:]:
        out = Product(out, e)
    return out


def union_all(*exprs: Expr) -> Expr:
    out = exprs[0]
    for e in exprs[1:]:
        out = Union(out, e)
    return out
