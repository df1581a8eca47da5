"""Spec tree nodes - contexts and spec definitions.

ARCHITECTURE
────────────
::

    SpecContext("Calculator")                 ← root, parent=None
      ├── before_all / after_all              ← once per context
      ├── before_each / after_each            ← once per spec, cascaded
      ├── specs:    [SpecDefinition, ...]     ← declaration order
      └── children: [SpecContext("add"), ...] ← declaration order
                        └── parent ─ ─ ─ ┐    ← weakref, path only
                                         ▼
                                 SpecContext("Calculator")

A context owns its specs and child contexts.  The parent link is a
``weakref`` used only to rebuild paths, so the tree never forms an
ownership cycle.  Trees are produced by an external declaration or
discovery layer and are treated as immutable once a run begins.

Example::

    root = SpecContext("Calculator")
    root.before_each = lambda: calc.reset()
    root.it("adds", lambda: assert_equal(calc.add(1, 2), 3))

    add = root.describe("with negatives")
    add.it("subtracts", test_subtracts, tags=("math",))
    add.it("divides by zero")           # no body → pending

Hooks and bodies may be plain callables (run in a worker thread) or
coroutine functions (awaited on the event loop).
"""

from __future__ import annotations

import inspect
import weakref
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Union

SpecBody = Union[Callable[[], Any], Callable[[], Awaitable[Any]]]
Hook = SpecBody


@dataclass(eq=False)
class SpecDefinition:
    """A single executable case.

    Equality is identity: two specs with the same description are still two
    specs, and results refer to the exact definition they came from.
    """

    description: str
    body: SpecBody | None = None
    tags: tuple[str, ...] = ()
    is_focused: bool = False
    is_skipped: bool = False
    line_number: int = 0

    def __post_init__(self) -> None:
        # Accept any iterable of tags but store them immutably.
        if not isinstance(self.tags, tuple):
            self.tags = tuple(self.tags)

    @property
    def is_pending(self) -> bool:
        """A spec without a body is pending and never runs."""
        return self.body is None

    @property
    def is_async(self) -> bool:
        return self.body is not None and inspect.iscoroutinefunction(self.body)

    def has_tag(self, tag: str) -> bool:
        """Case-insensitive tag membership."""
        wanted = tag.casefold()
        return any(t.casefold() == wanted for t in self.tags)

    @classmethod
    def pending(cls, description: str, tags: Iterable[str] = ()) -> SpecDefinition:
        return cls(description, None, tuple(tags))

    @classmethod
    def focused(cls, description: str, body: SpecBody, tags: Iterable[str] = ()) -> SpecDefinition:
        return cls(description, body, tuple(tags), is_focused=True)

    @classmethod
    def skipped(
        cls, description: str, body: SpecBody | None = None, tags: Iterable[str] = ()
    ) -> SpecDefinition:
        return cls(description, body, tuple(tags), is_skipped=True)

    def __repr__(self) -> str:
        flags = []
        if self.is_focused:
            flags.append("focused")
        if self.is_skipped:
            flags.append("skipped")
        if self.is_pending:
            flags.append("pending")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        return f"SpecDefinition({self.description!r}{suffix})"


class SpecContext:
    """A named grouping of specs and nested contexts with four hook slots.

    Passing ``parent`` appends the new context to the parent's children, so
    declaration order is preserved by construction.
    """

    def __init__(self, description: str | None, parent: SpecContext | None = None):
        self.description = description or ""
        self.specs: list[SpecDefinition] = []
        self.children: list[SpecContext] = []
        self.before_all: Hook | None = None
        self.after_all: Hook | None = None
        self.before_each: Hook | None = None
        self.after_each: Hook | None = None
        self._parent_ref: weakref.ref[SpecContext] | None = None
        if parent is not None:
            parent.add_child(self)

    # ── Structure ────────────────────────────────────────────────────

    @property
    def parent(self) -> SpecContext | None:
        """Non-owning parent link; ``None`` for a root or a collected parent."""
        return self._parent_ref() if self._parent_ref is not None else None

    def add_spec(self, spec: SpecDefinition) -> SpecContext:
        self.specs.append(spec)
        return self

    def add_child(self, child: SpecContext) -> SpecContext:
        if child.parent is not None and child.parent is not self:
            raise ValueError(
                f"Context {child.description!r} already belongs to {child.parent.description!r}"
            )
        child._parent_ref = weakref.ref(self)
        if child not in self.children:
            self.children.append(child)
        return self

    def ancestors(self) -> list[SpecContext]:
        """Contexts from the root down to and including this one."""
        chain: list[SpecContext] = []
        node: SpecContext | None = self
        while node is not None:
            chain.append(node)
            node = node.parent
        chain.reverse()
        return chain

    @property
    def full_path(self) -> tuple[str, ...]:
        """Descriptions from the root to this context, blanks omitted."""
        return tuple(c.description for c in self.ancestors() if c.description.strip())

    def walk(self) -> Iterator[SpecContext]:
        """Depth-first, declaration-order traversal starting at this context."""
        yield self
        for child in self.children:
            yield from child.walk()

    def all_specs(self) -> Iterator[SpecDefinition]:
        for ctx in self.walk():
            yield from ctx.specs

    @property
    def total_spec_count(self) -> int:
        return sum(len(ctx.specs) for ctx in self.walk())

    def has_focused_specs(self) -> bool:
        return any(spec.is_focused for spec in self.all_specs())

    # ── Declaration helpers ──────────────────────────────────────────

    def describe(self, description: str) -> SpecContext:
        """Create and return a nested context."""
        return SpecContext(description, self)

    def it(self, description: str, body: SpecBody | None = None, *, tags: Iterable[str] = ()) -> SpecDefinition:
        spec = SpecDefinition(description, body, tuple(tags))
        self.add_spec(spec)
        return spec

    def fit(self, description: str, body: SpecBody, *, tags: Iterable[str] = ()) -> SpecDefinition:
        spec = SpecDefinition.focused(description, body, tags)
        self.add_spec(spec)
        return spec

    def xit(self, description: str, body: SpecBody | None = None, *, tags: Iterable[str] = ()) -> SpecDefinition:
        spec = SpecDefinition.skipped(description, body, tags)
        self.add_spec(spec)
        return spec

    def hooks(
        self,
        *,
        before_all: Hook | None = None,
        after_all: Hook | None = None,
        before_each: Hook | None = None,
        after_each: Hook | None = None,
    ) -> SpecContext:
        """Set any of the four hook slots; unspecified slots are left alone."""
        if before_all is not None:
            self.before_all = before_all
        if after_all is not None:
            self.after_all = after_all
        if before_each is not None:
            self.before_each = before_each
        if after_each is not None:
            self.after_each = after_each
        return self

    def __repr__(self) -> str:
        return (
            f"SpecContext({self.description!r}, specs={len(self.specs)}, "
            f"children={len(self.children)})"
        )



def child_path(path: tuple[str, ...], context: SpecContext) -> tuple[str, ...]:
    """Extend ``path`` with ``context``'s description unless it is blank."""
    if context.description.strip():
        return path + (context.description,)
    return path
