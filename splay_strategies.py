# splay_strategies.py
import logging

from rotations import (
    rotate_left,
    rotate_right,
    is_left_child,
    is_right_child,
    is_child_of_root,
    is_left_child_of_left_child,
    is_right_child_of_right_child,
    is_left_child_of_right_child,
    is_right_child_of_left_child,
)

logger = logging.getLogger('SplayExperiment.strategies')


class SplayInvariantError(RuntimeError):
    """Raised when a splay step finds the tree in a shape no rotation case covers."""


def _undefined_state(node):
    logger.error(f"Splay operation reached undefined state of nodes at key {node.key!r}.")
    return SplayInvariantError(
        f"node {node.key!r} has parent {node.parent.key!r} but matches no rotation case"
    )


class SplayStrategy:
    """
    Base class for the splay operation.
    A strategy moves an accessed node to the root of the tree through a sequence of rotations.
    """
    name = None

    def splay(self, node, tree):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class DoubleRotationStrategy(SplayStrategy):
    """
    Standard splay operation using the zig, zig-zig and zig-zag steps.
    Gives amortized O(log n) access.
    """
    name = 'double'

    def splay(self, node, tree):
        """Propagates the given node to the root of the tree."""
        if node is None or tree is None or node.parent is None:
            return

        while node.parent is not None:
            if is_child_of_root(node) and is_left_child(node):
                # Zig step (left)
                rotate_right(node.parent, tree)
            elif is_child_of_root(node) and is_right_child(node):
                # Zig step (right)
                rotate_left(node.parent, tree)
            elif is_left_child_of_left_child(node):
                # Zig-Zig step (left-left)
                rotate_right(node.parent.parent, tree)
                rotate_right(node.parent, tree)
            elif is_right_child_of_right_child(node):
                # Zig-Zig step (right-right)
                rotate_left(node.parent.parent, tree)
                rotate_left(node.parent, tree)
            elif is_left_child_of_right_child(node):
                # Zig-Zag step (right-left)
                rotate_right(node.parent, tree)
                rotate_left(node.parent, tree)
            elif is_right_child_of_left_child(node):
                # Zig-Zag step (left-right)
                rotate_left(node.parent, tree)
                rotate_right(node.parent, tree)
            else:
                raise _undefined_state(node)


class NaiveStrategy(SplayStrategy):
    """
    Naive splay operation using a sequence of single rotations around the parent.
    Kept as a baseline, it has no amortized guarantee.
    """
    name = 'naive'

    def splay(self, node, tree):
        """Propagates the given node to the root of the tree."""
        if node is None or tree is None or node.parent is None:
            return

        while node.parent is not None:
            parent = node.parent
            if parent.left is node:
                rotate_right(parent, tree)
            elif parent.right is node:
                rotate_left(parent, tree)
            else:
                raise _undefined_state(node)


STRATEGIES = {
    DoubleRotationStrategy.name: DoubleRotationStrategy,
    NaiveStrategy.name: NaiveStrategy,
}


def get_strategy(strategy):
    """
    Resolves a strategy given by registry name, class or instance.

    Parameters:
        strategy (str | type | SplayStrategy): The strategy to resolve.

    Returns:
        SplayStrategy: A strategy instance.
    """
    if isinstance(strategy, str):
        try:
            return STRATEGIES[strategy]()
        except KeyError:
            raise ValueError(
                f"Unknown splay strategy '{strategy}', expected one of {sorted(STRATEGIES)}"
            ) from None
    if isinstance(strategy, type):
        strategy = strategy()
    if not callable(getattr(strategy, 'splay', None)):
        raise ValueError(f"{strategy!r} does not implement splay(node, tree)")
    return strategy
