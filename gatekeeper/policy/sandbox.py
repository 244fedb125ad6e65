"""
Gatekeeper Policy Engine — Script Sandbox
=========================================
Hardened interpreter behind the custom_script rule type.

Scripts are Python-syntax source: either a single expression, or a
statement block that ``return``s its result. Source is parsed and
validated against a node whitelist ONCE, at construction; evaluation
walks the validated tree directly. ``eval``/``exec``/``compile`` are
never used.

What a script can reach is exactly what the interpreter hands it:
- the exposed names (user, resource, action, context, attributes)
- the SAFE_BUILTINS table
- the non-mutating methods of str/list/tuple/dict/set in SAFE_METHODS

No name or attribute starting with '_' can be written in a script, so
dunder walks (``x.__class__.__mro__``) are rejected before they run.

Every evaluation is bounded:
- max_steps            node evaluations
- max_seconds          wall-clock time
- max_sequence_length  length of any produced str/list/tuple/set/dict/range
- max_exponent         right-hand side of ``**``
A breach raises SandboxLimitExceeded.
"""

from __future__ import annotations

import ast
import logging
import operator
import time
from typing import Any, Mapping

from gatekeeper.config.settings import SandboxLimits
from gatekeeper.policy.exceptions import SandboxLimitExceeded, ScriptCompileError

logger = logging.getLogger("gatekeeper.sandbox")

EXPOSED_NAMES = ("user", "resource", "action", "context", "attributes")

# Integers beyond this many bits are treated as resource exhaustion.
MAX_INT_BITS = 4096
MAX_SOURCE_LENGTH = 10_000


# ══════════════════════════════════════════════════════════════
# WHITELISTS
# ══════════════════════════════════════════════════════════════

SAFE_BUILTINS: dict[str, Any] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "min": min,
    "max": max,
    "sum": sum,
    "any": any,
    "all": all,
    "sorted": sorted,
    "round": round,
    "list": list,
    "tuple": tuple,
    "set": set,
    "dict": dict,
    "range": range,
    "True": True,
    "False": False,
    "None": None,
}

_SAFE_CALLABLE_IDS = frozenset(
    id(value) for value in SAFE_BUILTINS.values() if callable(value)
)

# Builtins that materialize their first argument.
_MATERIALIZING = frozenset(
    id(fn) for fn in (list, tuple, set, dict, sorted, sum, min, max, any, all)
)

SAFE_METHODS: dict[type, frozenset[str]] = {
    str: frozenset({
        "lower", "upper", "strip", "lstrip", "rstrip", "startswith",
        "endswith", "split", "join", "find", "count", "isdigit",
        "isalpha", "isalnum", "title", "capitalize",
    }),
    list: frozenset({"count", "index"}),
    tuple: frozenset({"count", "index"}),
    dict: frozenset({"get", "keys", "values", "items"}),
    set: frozenset({
        "union", "intersection", "difference", "issubset", "issuperset",
    }),
    frozenset: frozenset({
        "union", "intersection", "difference", "issubset", "issuperset",
    }),
}

_ALLOWED_NODES = (
    # Structure
    ast.Module, ast.Expression, ast.Expr, ast.Assign, ast.AugAssign,
    ast.If, ast.For, ast.While, ast.Break, ast.Continue, ast.Pass,
    ast.Return,
    # Expressions
    ast.BoolOp, ast.BinOp, ast.UnaryOp, ast.Compare, ast.IfExp,
    ast.Name, ast.Constant, ast.List, ast.Tuple, ast.Set, ast.Dict,
    ast.Subscript, ast.Slice, ast.Attribute, ast.Call, ast.keyword,
    ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp,
    ast.comprehension,
    # Contexts
    ast.Load, ast.Store,
    # Operators
    ast.And, ast.Or, ast.Not, ast.USub, ast.UAdd,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
    ast.In, ast.NotIn, ast.Is, ast.IsNot,
)

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


# ══════════════════════════════════════════════════════════════
# COMPILATION (construction time)
# ══════════════════════════════════════════════════════════════

def _parse(source: str) -> ast.AST:
    try:
        try:
            return ast.parse(source, mode="eval")
        except SyntaxError:
            return ast.parse(source, mode="exec")
    except SyntaxError as exc:
        raise ScriptCompileError(f"syntax error: {exc.msg}", exc.lineno) from None
    except (RecursionError, MemoryError):
        raise ScriptCompileError("script is too deeply nested") from None


def _is_assign_target(node: ast.AST) -> bool:
    if isinstance(node, ast.Name):
        return True
    if isinstance(node, ast.Tuple):
        return all(isinstance(elt, ast.Name) for elt in node.elts)
    return False


def _validate(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        lineno = getattr(node, "lineno", None)

        if not isinstance(node, _ALLOWED_NODES):
            raise ScriptCompileError(
                f"'{type(node).__name__}' is not allowed", lineno
            )

        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise ScriptCompileError(f"name '{node.id}' is not allowed", lineno)

        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise ScriptCompileError(
                f"attribute '{node.attr}' is not allowed", lineno
            )

        if isinstance(node, ast.keyword) and (
            node.arg is None or node.arg.startswith("_")
        ):
            raise ScriptCompileError("keyword unpacking is not allowed", lineno)

        if isinstance(node, ast.Assign) and not all(
            _is_assign_target(target) for target in node.targets
        ):
            raise ScriptCompileError("only names can be assigned", lineno)

        if isinstance(node, ast.AugAssign) and not isinstance(node.target, ast.Name):
            raise ScriptCompileError("only names can be assigned", lineno)

        if isinstance(node, (ast.For, ast.comprehension)) and not _is_assign_target(
            node.target
        ):
            raise ScriptCompileError("loop targets must be names", lineno)

        if isinstance(node, ast.comprehension) and node.is_async:
            raise ScriptCompileError("async comprehensions are not allowed", lineno)

        if isinstance(node, (ast.For, ast.While)) and node.orelse:
            raise ScriptCompileError("loop 'else' is not allowed", lineno)

        if isinstance(node, ast.Dict) and any(key is None for key in node.keys):
            raise ScriptCompileError("dict unpacking is not allowed", lineno)


def compile_script(source: str) -> ast.AST:
    """Parse and validate a script. Raises ScriptCompileError."""
    if not isinstance(source, str) or not source.strip():
        raise ScriptCompileError("code must be a non-empty string")
    if len(source) > MAX_SOURCE_LENGTH:
        raise ScriptCompileError(
            f"code must be at most {MAX_SOURCE_LENGTH} characters"
        )
    tree = _parse(source.strip())
    _validate(tree)
    return tree


# ══════════════════════════════════════════════════════════════
# INTERPRETER (evaluation time)
# ══════════════════════════════════════════════════════════════

class _Return(Exception):
    def __init__(self, value: Any):
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class _Interpreter:
    def __init__(self, limits: SandboxLimits, names: Mapping[str, Any]):
        self._limits = limits
        self._steps = 0
        self._deadline = time.monotonic() + limits.max_seconds
        self._scope: dict[str, Any] = dict(names)

    # ── Limits ────────────────────────────────────────────────
    def _tick(self) -> None:
        self._steps += 1
        if self._steps > self._limits.max_steps:
            raise SandboxLimitExceeded(
                "max_steps", f"more than {self._limits.max_steps} steps"
            )
        if time.monotonic() > self._deadline:
            raise SandboxLimitExceeded(
                "max_seconds", f"ran longer than {self._limits.max_seconds}s"
            )

    def _check_size(self, value: Any) -> Any:
        if isinstance(value, (str, list, tuple, set, frozenset, dict, range)):
            if len(value) > self._limits.max_sequence_length:
                raise SandboxLimitExceeded(
                    "max_sequence_length",
                    f"sequence of length {len(value)}",
                )
        elif isinstance(value, int) and not isinstance(value, bool):
            if value.bit_length() > MAX_INT_BITS:
                raise SandboxLimitExceeded("max_int_bits", "integer too large")
        return value

    def _check_binop(self, op: ast.operator, left: Any, right: Any) -> None:
        if isinstance(op, ast.Pow):
            if isinstance(right, (int, float)) and abs(right) > self._limits.max_exponent:
                raise SandboxLimitExceeded(
                    "max_exponent", f"exponent {right}"
                )
            if isinstance(left, int) and isinstance(right, int) and right > 0:
                if left.bit_length() * right > MAX_INT_BITS:
                    raise SandboxLimitExceeded("max_int_bits", "power too large")
        elif isinstance(op, ast.Mod):
            if isinstance(left, str):
                raise TypeError("string formatting is not allowed")
        elif isinstance(op, ast.Mult):
            sequence, count = (left, right) if isinstance(right, int) else (right, left)
            if isinstance(sequence, (str, list, tuple)) and isinstance(count, int):
                if len(sequence) * count > self._limits.max_sequence_length:
                    raise SandboxLimitExceeded(
                        "max_sequence_length", "repeated sequence too long"
                    )
        elif isinstance(op, ast.Add):
            if isinstance(left, (str, list, tuple)) and isinstance(
                right, (str, list, tuple)
            ):
                if len(left) + len(right) > self._limits.max_sequence_length:
                    raise SandboxLimitExceeded(
                        "max_sequence_length", "concatenation too long"
                    )

    # ── Entry ─────────────────────────────────────────────────
    def run(self, tree: ast.AST) -> Any:
        if isinstance(tree, ast.Expression):
            return self.eval(tree.body)
        try:
            self.exec_block(tree.body)
        except _Return as ret:
            return ret.value
        except (_Break, _Continue):
            raise SyntaxError("'break' or 'continue' outside loop") from None
        return None

    # ── Statements ────────────────────────────────────────────
    def exec_block(self, statements: list[ast.stmt]) -> None:
        for statement in statements:
            self.exec(statement)

    def exec(self, node: ast.stmt) -> None:
        self._tick()

        if isinstance(node, ast.Expr):
            self.eval(node.value)
        elif isinstance(node, ast.Assign):
            value = self.eval(node.value)
            for target in node.targets:
                self._assign(target, value)
        elif isinstance(node, ast.AugAssign):
            current = self._lookup(node.target.id)
            value = self.eval(node.value)
            self._check_binop(node.op, current, value)
            result = _BIN_OPS[type(node.op)](current, value)
            self._scope[node.target.id] = self._check_size(result)
        elif isinstance(node, ast.If):
            branch = node.body if self.eval(node.test) else node.orelse
            self.exec_block(branch)
        elif isinstance(node, ast.For):
            for item in self.eval(node.iter):
                self._tick()
                self._assign(node.target, item)
                try:
                    self.exec_block(node.body)
                except _Break:
                    break
                except _Continue:
                    continue
        elif isinstance(node, ast.While):
            while self.eval(node.test):
                try:
                    self.exec_block(node.body)
                except _Break:
                    break
                except _Continue:
                    continue
        elif isinstance(node, ast.Return):
            raise _Return(None if node.value is None else self.eval(node.value))
        elif isinstance(node, ast.Break):
            raise _Break()
        elif isinstance(node, ast.Continue):
            raise _Continue()
        elif isinstance(node, ast.Pass):
            return
        else:
            raise TypeError(f"Unsupported statement '{type(node).__name__}'.")

    def _assign(self, target: ast.AST, value: Any) -> None:
        if isinstance(target, ast.Name):
            self._scope[target.id] = value
            return
        values = tuple(value)
        if len(values) != len(target.elts):
            raise ValueError("unpacking length mismatch")
        for element, item in zip(target.elts, values):
            self._scope[element.id] = item

    def _lookup(self, name: str) -> Any:
        if name in self._scope:
            return self._scope[name]
        if name in SAFE_BUILTINS:
            return SAFE_BUILTINS[name]
        raise NameError(f"name '{name}' is not defined")

    # ── Expressions ───────────────────────────────────────────
    def eval(self, node: ast.expr) -> Any:
        self._tick()

        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            return self._lookup(node.id)

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result = True
                for value in node.values:
                    result = self.eval(value)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self.eval(value)
                if result:
                    return result
            return result

        if isinstance(node, ast.UnaryOp):
            operand = self.eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not operand
            if isinstance(node.op, ast.USub):
                return -operand
            return +operand

        if isinstance(node, ast.BinOp):
            left = self.eval(node.left)
            right = self.eval(node.right)
            self._check_binop(node.op, left, right)
            return self._check_size(_BIN_OPS[type(node.op)](left, right))

        if isinstance(node, ast.Compare):
            left = self.eval(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                right = self.eval(comparator)
                if not _COMPARE_OPS[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            return self.eval(node.body if self.eval(node.test) else node.orelse)

        if isinstance(node, ast.List):
            return self._check_size([self.eval(elt) for elt in node.elts])

        if isinstance(node, ast.Tuple):
            return self._check_size(tuple(self.eval(elt) for elt in node.elts))

        if isinstance(node, ast.Set):
            return self._check_size({self.eval(elt) for elt in node.elts})

        if isinstance(node, ast.Dict):
            return self._check_size(
                {
                    self.eval(key): self.eval(value)
                    for key, value in zip(node.keys, node.values)
                }
            )

        if isinstance(node, ast.Attribute):
            return self._read_attribute(self.eval(node.value), node.attr)

        if isinstance(node, ast.Subscript):
            base = self.eval(node.value)
            if not isinstance(base, (Mapping, str, list, tuple)):
                raise TypeError(f"'{type(base).__name__}' is not subscriptable")
            return self._check_size(base[self.eval(node.slice)])

        if isinstance(node, ast.Slice):
            return slice(
                None if node.lower is None else self.eval(node.lower),
                None if node.upper is None else self.eval(node.upper),
                None if node.step is None else self.eval(node.step),
            )

        if isinstance(node, ast.Call):
            return self._call(node)

        if isinstance(node, (ast.ListComp, ast.GeneratorExp)):
            items: list[Any] = []
            self._comprehend(
                node.generators,
                lambda scope: items.append(self._eval_in(scope, node.elt)),
                items,
            )
            return items

        if isinstance(node, ast.SetComp):
            members: set[Any] = set()
            self._comprehend(
                node.generators,
                lambda scope: members.add(self._eval_in(scope, node.elt)),
                members,
            )
            return members

        if isinstance(node, ast.DictComp):
            mapping: dict[Any, Any] = {}

            def put(scope):
                key = self._eval_in(scope, node.key)
                mapping[key] = self._eval_in(scope, node.value)

            self._comprehend(node.generators, put, mapping)
            return mapping

        raise TypeError(f"Unsupported expression '{type(node).__name__}'.")

    def _read_attribute(self, base: Any, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(f"attribute '{name}' is not allowed")
        if isinstance(base, Mapping):
            value = base.get(name)
        elif isinstance(base, (str, list, tuple, set, frozenset, int, float, bool)):
            raise AttributeError(
                f"'{type(base).__name__}' attributes are only reachable as calls"
            )
        else:
            value = getattr(base, name, None)
        # Bound methods would let a builtin such as sorted() invoke them.
        if callable(value):
            raise TypeError(f"attribute '{name}' is callable and not exposed")
        return value

    def _call(self, node: ast.Call) -> Any:
        if isinstance(node.func, ast.Attribute):
            base = self.eval(node.func.value)
            function = self._safe_method(base, node.func.attr)
        else:
            function = self.eval(node.func)
            if id(function) not in _SAFE_CALLABLE_IDS:
                raise TypeError("only whitelisted functions can be called")

        args = [self.eval(arg) for arg in node.args]
        kwargs = {kw.arg: self.eval(kw.value) for kw in node.keywords}
        for value in (*args, *kwargs.values()):
            if callable(value) and id(value) not in _SAFE_CALLABLE_IDS:
                raise TypeError("only whitelisted functions can be passed as arguments")

        if id(function) in _MATERIALIZING:
            for arg in args:
                if not isinstance(arg, (str, list, tuple, set, frozenset, dict, range)):
                    if hasattr(arg, "__iter__") and not hasattr(arg, "__len__"):
                        raise TypeError("argument must be a sized collection")
                self._check_size(arg)
        if getattr(function, "__name__", None) == "join" and args:
            parts = list(args[0])
            self._check_size(parts)
            total = sum(len(part) for part in parts if isinstance(part, str))
            if total > self._limits.max_sequence_length:
                raise SandboxLimitExceeded(
                    "max_sequence_length", "joined string too long"
                )
            args[0] = parts

        return self._check_size(function(*args, **kwargs))

    @staticmethod
    def _safe_method(base: Any, name: str) -> Any:
        for kind, methods in SAFE_METHODS.items():
            if type(base) is kind and name in methods:
                return getattr(base, name)
        raise TypeError(
            f"method '{name}' of '{type(base).__name__}' cannot be called"
        )

    def _eval_in(self, scope: dict[str, Any], node: ast.expr) -> Any:
        saved = self._scope
        self._scope = scope
        try:
            return self.eval(node)
        finally:
            self._scope = saved

    def _comprehend(self, generators, emit, sink) -> None:
        def walk(index: int, scope: dict[str, Any]) -> None:
            if index == len(generators):
                emit(scope)
                self._check_size(sink)
                return
            generator = generators[index]
            for item in self._eval_in(scope, generator.iter):
                self._tick()
                inner = dict(scope)
                if isinstance(generator.target, ast.Name):
                    inner[generator.target.id] = item
                else:
                    values = tuple(item)
                    if len(values) != len(generator.target.elts):
                        raise ValueError("unpacking length mismatch")
                    for element, value in zip(generator.target.elts, values):
                        inner[element.id] = value
                if all(self._eval_in(inner, cond) for cond in generator.ifs):
                    walk(index + 1, inner)

        walk(0, dict(self._scope))


# ══════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════

class ScriptSandbox:
    """
    A compiled, validated script.

    Construction raises ScriptCompileError. run() raises whatever the
    script raises, or SandboxLimitExceeded; callers turn both into deny.
    """

    def __init__(self, source: str, limits: SandboxLimits | None = None):
        self.source = source
        self.limits = limits or SandboxLimits()
        self._tree = compile_script(source)

    def run(self, names: Mapping[str, Any]) -> Any:
        unknown = set(names) - set(EXPOSED_NAMES)
        if unknown:
            raise ValueError(f"Unexpected sandbox names: {sorted(unknown)}")
        return _Interpreter(self.limits, names).run(self._tree)

    def evaluate(self, names: Mapping[str, Any]) -> bool:
        """Run and coerce: only a bool result counts, anything else is False."""
        result = self.run(names)
        return result if isinstance(result, bool) else False
