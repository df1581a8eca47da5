"""Per-spec hook cascade resolution.

BeforeEach hooks run outer to inner (root first, the spec's own context
last); AfterEach hooks run in the reverse order.  Contexts without a hook in
a slot contribute nothing.  BeforeAll/AfterAll are not part of the cascade:
the runner fires them once per context.

::

    root.before_each ─► outer.before_each ─► inner.before_each
                                                   │
                                                 spec
                                                   │
    root.after_each  ◄─ outer.after_each  ◄─ inner.after_each
"""

from __future__ import annotations

from dataclasses import dataclass

from specrun.tree.nodes import Hook, SpecContext


@dataclass(frozen=True)
class HookCascade:
    """Ordered per-spec setup and teardown hooks for one context."""

    before_each: tuple[Hook, ...] = ()
    after_each: tuple[Hook, ...] = ()

    def __len__(self) -> int:
        return len(self.before_each) + len(self.after_each)


def get_hook_cascade(context: SpecContext) -> HookCascade:
    """Resolve the BeforeEach/AfterEach cascade for specs declared in ``context``.

    Args:
        context: The context owning the spec about to run

    Returns:
        HookCascade with ``before_each`` ordered outer→inner and
        ``after_each`` ordered inner→outer.
    """
    chain = context.ancestors()
    before = tuple(c.before_each for c in chain if c.before_each is not None)
    after = tuple(c.after_each for c in reversed(chain) if c.after_each is not None)
    return HookCascade(before_each=before, after_each=after)


__all__ = ["HookCascade", "get_hook_cascade"]
