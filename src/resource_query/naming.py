"""Naming conventions linking request keys, tables and resource types."""

from __future__ import annotations

import inflection


def resource_name_for_table(table_name: str) -> str:
    """Request-facing name of a resource: the singular of its table name.

    ``"posts"`` -> ``"post"``, ``"post_comments"`` -> ``"post_comment"``.
    """
    return inflection.singularize(table_name)


def sibling_type_name(main_type: str, key: str) -> str:
    """Derive the type name a field-selection key refers to.

    The key is lower-cased, singularized and camelized, then placed in the
    same dotted namespace as *main_type*::

        sibling_type_name("blog.Post", "tags")      -> "blog.Tag"
        sibling_type_name("Post", "post_comments")  -> "PostComment"
    """
    namespace, _, _ = main_type.rpartition(".")
    name = inflection.camelize(inflection.singularize(key.lower()))
    return f"{namespace}.{name}" if namespace else name


def foreign_key_for(name: str) -> str:
    """Conventional foreign-key column for a resource or relation name."""
    return f"{name}_id"


def qualified(table: str, column: str) -> str:
    """Table-qualified column name, e.g. ``tags.id``."""
    return f"{table}.{column}"
