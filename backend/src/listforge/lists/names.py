"""Derivation of labels and operation names from a list key."""

import re
from dataclasses import dataclass


def key_to_label(key: str) -> str:
    """'BlogPost' -> 'Blog Post', 'blog_post' -> 'Blog Post'."""
    spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", key)
    words = [w for w in re.split(r"[\s_\-]+", spaced) if w]
    label = " ".join(w[:1].upper() + w[1:] for w in words)
    # Auxiliary lists keep their leading underscore
    if key.startswith("_"):
        label = f"_{label}"
    return label


def pluralize(word: str) -> str:
    lower = word.lower()
    if re.search(r"[^aeiou]y$", lower):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return word + "es"
    return word + "s"


def label_to_path(label: str) -> str:
    return "-".join(label.split(" ")).lower()


def label_to_class(label: str) -> str:
    return re.sub(r"\s+", "", label)


@dataclass(frozen=True)
class ListNames:
    """Human labels and operation names for one list.

    Operation names identify the entry point in access errors
    (e.g. ``{"type": "mutation", "target": "createPost"}``).
    """

    label: str
    singular: str
    plural: str
    path: str
    item_query: str
    list_query: str
    list_query_meta: str
    list_meta: str
    authenticated_query: str
    create_mutation: str
    create_many_mutation: str
    update_mutation: str
    update_many_mutation: str
    delete_mutation: str
    delete_many_mutation: str

    @classmethod
    def from_key(
        cls,
        key: str,
        singular: str | None = None,
        plural: str | None = None,
        label: str | None = None,
        path: str | None = None,
    ) -> "ListNames":
        """Derive every name from the list key, honoring explicit overrides.

        Raises:
            ValueError: If the key's singular and plural forms are the same
        """
        base = key_to_label(key)
        singular = singular or base
        plural = plural or pluralize(singular)
        if plural == singular:
            raise ValueError(
                f"Unable to use {base} as a list name - it has an ambiguous plural "
                f"({plural}). Please choose another name for your list."
            )

        item = label_to_class(singular)
        items = label_to_class(plural)
        meta_name = f"_{items}Meta"
        return cls(
            label=label or plural,
            singular=singular,
            plural=plural,
            path=path or label_to_path(plural),
            item_query=item,
            list_query=f"all{items}",
            list_query_meta=f"_all{items}Meta",
            list_meta=re.sub(r"^__", "_", meta_name),
            authenticated_query=f"authenticated{item}",
            create_mutation=f"create{item}",
            create_many_mutation=f"create{items}",
            update_mutation=f"update{item}",
            update_many_mutation=f"update{items}",
            delete_mutation=f"delete{item}",
            delete_many_mutation=f"delete{items}",
        )
