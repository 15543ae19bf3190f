"""Path-prefix SQL helpers shared by the repositories."""

from sqlalchemy import Text, func, literal, or_

from canopy.tree import paths


def in_subtree(column, path: str):
    """`column` is `path` itself or any descendant of it."""
    return or_(
        column == path,
        column.startswith(paths.descendant_prefix(path), autoescape=True),
    )


def strictly_below(column, path: str):
    return column.startswith(paths.descendant_prefix(path), autoescape=True)


def direct_children(column, parent_path):
    """Rows exactly one level below `parent_path` (None selects root rows)."""
    if parent_path is None:
        return ~column.contains(paths.SEPARATOR, autoescape=True)
    prefix = paths.descendant_prefix(parent_path)
    return (
        column.startswith(prefix, autoescape=True)
        & ~func.substr(column, len(prefix) + 1).contains(paths.SEPARATOR, autoescape=True)
    )


def rebased(column, old_prefix: str, new_prefix: str):
    """SQL expression replacing the leading `old_prefix` of `column`."""
    return literal(new_prefix, type_=Text) + func.substr(column, len(old_prefix) + 1)
