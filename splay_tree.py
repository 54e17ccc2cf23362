# splay_tree.py
import logging

from splay_strategies import get_strategy

logger = logging.getLogger('SplayExperiment.tree')


class Node:
    """
    Represents a node in the splay tree.
    Each node has a key, left and right children, and a parent.
    The parent link is only used to walk upwards during rotations.
    """
    def __init__(self, key):
        self.key = key
        self.left = None
        self.right = None
        self.parent = None

    def __repr__(self):
        return f"Node({self.key!r})"


class SplayTree:
    """
    Splay tree over ordered keys with an interchangeable splay strategy.
    Every insert and lookup moves the closest node on the search path to the root.
    """
    def __init__(self, strategy='double'):
        self.root = None
        self.strategy = get_strategy(strategy)
        self.find_length = 0  # Comparisons made by the last find
        self.total_rotations = 0  # To track the number of rotations for performance metrics
        self.size = 0

    def _find_node_with_closest_key(self, key):
        """
        Descends from the root and returns the node holding the key, or the last
        node visited before falling off the tree. Returns the number of descent
        steps alongside the node.
        """
        length = 0
        current = self.root
        previous = self.root
        while current is not None:
            previous = current
            if current.key == key:
                return current, length
            elif current.key < key:
                current = current.right
            else:
                current = current.left
            length += 1
        return previous, length

    def _splay(self, node):
        self.strategy.splay(node, self)

    def insert(self, key):
        """
        Inserts the key if it is not present yet.

        Returns:
            bool: True if a new node was created.
        """
        if self.root is None:
            self.root = Node(key)
            self.size = 1
            return True

        closest, _ = self._find_node_with_closest_key(key)
        self._splay(closest)

        if self.root.key == key:
            return False  # Already present.

        node = Node(key)
        node.parent = self.root
        if self.root.key < key:
            node.right = self.root.right
            self.root.right = node
            if node.right is not None:
                node.right.parent = node
        else:
            node.left = self.root.left
            self.root.left = node
            if node.left is not None:
                node.left.parent = node
        self.size += 1
        return True

    def find(self, key):
        """
        Splays the node closest to the key to the root.

        Returns:
            The stored key if present, otherwise None.
        """
        closest, self.find_length = self._find_node_with_closest_key(key)
        self._splay(closest)

        if self.root is not None and self.root.key == key:
            return self.root.key
        return None

    def contains(self, key):
        """Returns True if the tree holds the key."""
        self.find(key)
        return self.root is not None and self.root.key == key

    __contains__ = contains

    def length_of_last_find(self):
        """Returns the length of the last find traversal."""
        return self.find_length

    def validate(self):
        """Returns True if every node respects the search order and its parent links."""
        if self.root is None:
            return True
        if self.root.parent is not None:
            logger.debug(f"Root {self.root.key!r} has a parent.")
            return False

        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.left is not None:
                if node.left.key > node.key or node.left.parent is not node:
                    logger.debug(f"Invalid left child {node.left.key!r} under {node.key!r}.")
                    return False
                stack.append(node.left)
            if node.right is not None:
                if node.right.key < node.key or node.right.parent is not node:
                    logger.debug(f"Invalid right child {node.right.key!r} under {node.key!r}.")
                    return False
                stack.append(node.right)
        return True

    def clear(self):
        """Releases every node in post-order, children before the node owning them."""
        stack = [(self.root, False)] if self.root is not None else []
        while stack:
            node, visited = stack.pop()
            if visited:
                node.left = node.right = node.parent = None
                continue
            stack.append((node, True))
            if node.right is not None:
                stack.append((node.right, False))
            if node.left is not None:
                stack.append((node.left, False))
        self.root = None
        self.size = 0
        self.find_length = 0

    def __len__(self):
        return self.size

    def __iter__(self):
        """Yields the keys in order without splaying."""
        stack = []
        node = self.root
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                node = node.left
            node = stack.pop()
            yield node.key
            node = node.right

    def depth(self, node):
        """Calculates the depth of a node from the root."""
        depth = 0
        current = node
        while current is not None and current is not self.root:
            current = current.parent
            depth += 1
        return depth

    def height(self):
        """Number of nodes on the longest root-to-leaf path."""
        height = 0
        stack = [(self.root, 1)] if self.root is not None else []
        while stack:
            node, level = stack.pop()
            height = max(height, level)
            if node.left is not None:
                stack.append((node.left, level + 1))
            if node.right is not None:
                stack.append((node.right, level + 1))
        return height

    def __str__(self):
        """Lisp-like dump of the tree: `key L(left subtree)R(right subtree)`."""
        parts = []
        stack = [('node', self.root)] if self.root is not None else []
        while stack:
            kind, item = stack.pop()
            if kind == 'text':
                parts.append(item)
                continue
            parts.append(str(item.key))
            if item.left is not None or item.right is not None:
                parts.append(" ")
            # Pushed in reverse so the left subtree is written first.
            if item.right is not None:
                stack.extend([('text', ")"), ('node', item.right), ('text', "R(")])
            if item.left is not None:
                stack.extend([('text', ")"), ('node', item.left), ('text', "L(")])
        return "".join(parts)

    def __repr__(self):
        return f"SplayTree(strategy={self.strategy!r}, size={self.size})"
