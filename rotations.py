# rotations.py

"""
Single rotations and node position predicates shared by the splay strategies.

The `tree` argument of a rotation is any object holding the tree root in a
mutable `root` attribute. Rotations never walk a subtree, they only relink the
rotated node, its pivot child, the pivot's inner child and the former parent.
"""


def is_left_child(node):
    return node.parent is not None and node.parent.left is node


def is_right_child(node):
    return node.parent is not None and node.parent.right is node


def is_child_of_root(node):
    """True if the parent of the given node is the root of the tree."""
    return node.parent is not None and node.parent.parent is None


def _has_grandparent(node):
    return node.parent is not None and node.parent.parent is not None


def is_left_child_of_left_child(node):
    return _has_grandparent(node) and is_left_child(node) and is_left_child(node.parent)


def is_right_child_of_right_child(node):
    return _has_grandparent(node) and is_right_child(node) and is_right_child(node.parent)


def is_left_child_of_right_child(node):
    return _has_grandparent(node) and is_left_child(node) and is_right_child(node.parent)


def is_right_child_of_left_child(node):
    return _has_grandparent(node) and is_right_child(node) and is_left_child(node.parent)


def _replace_in_parent(node, replacement, tree):
    """Points the former parent of node (or the tree root) at replacement."""
    if node.parent is None:
        tree.root = replacement
    elif node.parent.left is node:
        node.parent.left = replacement
    else:
        node.parent.right = replacement


def _record_rotation(tree):
    if hasattr(tree, 'total_rotations'):
        tree.total_rotations += 1


def rotate_left(node, tree):
    """Performs a left rotation around the given node, its right child becomes the subtree root."""
    if node is None or tree is None or tree.root is None:
        return
    pivot = node.right
    if pivot is None:
        return

    # The pivot's left subtree moves over to node.
    node.right = pivot.left
    if pivot.left is not None:
        pivot.left.parent = node

    pivot.parent = node.parent
    _replace_in_parent(node, pivot, tree)

    pivot.left = node
    node.parent = pivot
    _record_rotation(tree)


def rotate_right(node, tree):
    """Performs a right rotation around the given node, its left child becomes the subtree root."""
    if node is None or tree is None or tree.root is None:
        return
    pivot = node.left
    if pivot is None:
        return

    node.left = pivot.right
    if pivot.right is not None:
        pivot.right.parent = node

    pivot.parent = node.parent
    _replace_in_parent(node, pivot, tree)

    pivot.right = node
    node.parent = pivot
    _record_rotation(tree)
