"""
validator/schema.py — JSON Schema (draft 2020-12) pliku modelu.

Schemat sprawdza wyłącznie kształt dokumentu; nazwy, arność i typy kolumn
wyrażeń sprawdzają dalsze etapy walidatora.
"""

from __future__ import annotations

from typing import Any

_NAME = {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_']*$"}
_MULT = {"enum": ["set", "one", "lone", "some"]}
_COLS = {"type": "array", "items": _NAME, "minItems": 1}

_PARAMS = {
    "type": "array",
    "items": {
        "type": "array",
        "prefixItems": [_NAME, _NAME],
        "minItems": 2,
        "maxItems": 2,
    },
}

# Wyrażenie: nazwa, liczba całkowita, true/false albo lista [op, args...]
_SEXPR = {
    "anyOf": [
        {"type": "string", "minLength": 1},
        {"type": "integer"},
        {"type": "boolean"},
        {"type": "array", "minItems": 1},
    ]
}

MODEL_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "scopefinder model",
    "type": "object",
    "required": ["model", "sigs"],
    "additionalProperties": False,
    "properties": {
        "model": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "sigs": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "additionalProperties": False,
                "properties": {
                    "name":     _NAME,
                    "extends":  _NAME,
                    "abstract": {"type": "boolean"},
                    "mult":     {"enum": ["one", "lone", "some"]},
                    "ordered":  {"type": "boolean"},
                    "fields": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["name", "cols"],
                            "additionalProperties": False,
                            "properties": {
                                "name": _NAME,
                                "cols": _COLS,
                                "mult": _MULT,
                            },
                        },
                    },
                },
            },
        },
        "relations": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "cols"],
                "additionalProperties": False,
                "properties": {
                    "name": _NAME,
                    "cols": _COLS,
                    "mult": _MULT,
                },
            },
        },
        "facts": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "body"],
                "additionalProperties": False,
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "body": _SEXPR,
                },
            },
        },
        "predicates": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "body"],
                "additionalProperties": False,
                "properties": {
                    "name":   _NAME,
                    "params": _PARAMS,
                    "body":   _SEXPR,
                },
            },
        },
        "functions": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "body"],
                "additionalProperties": False,
                "properties": {
                    "name":   _NAME,
                    "params": _PARAMS,
                    "body":   _SEXPR,
                },
            },
        },
        "commands": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "kind", "target"],
                "additionalProperties": False,
                "properties": {
                    "name":   _NAME,
                    "kind":   {"enum": ["check", "run"]},
                    "target": _NAME,
                    "scope":  {"type": "string"},
                    "expect": {
                        "enum": [
                            "verified", "counterexample",
                            "satisfiable", "unsatisfiable",
                        ],
                    },
                },
            },
        },
    },
}
