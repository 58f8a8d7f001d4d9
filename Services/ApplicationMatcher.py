"""
Resolution of which tracked applications a vulnerability affects.

The real matching strategy (vendor/product normalisation, CPE matching) is a
separate collaborator. ``NameSubstringMatcher`` is the simple demo strategy:
an application is affected when its name appears in the CVE description.
"""
from typing import Iterable, List, Protocol


class ApplicationMatcher(Protocol):
    def match(self, item, applications: Iterable) -> List[str]:
        """Return ids of the applications affected by ``item``."""
        ...


class NameSubstringMatcher:
    """Case-insensitive application-name substring match against the description."""

    def __init__(self, min_name_length: int = 3):
        self.min_name_length = min_name_length

    def match(self, item, applications: Iterable) -> List[str]:
        text = (item.description or "").lower()
        matched = []
        for app in applications:
            name = (app.name or "").strip().lower()
            if len(name) >= self.min_name_length and name in text:
                matched.append(app.id)
        return matched
