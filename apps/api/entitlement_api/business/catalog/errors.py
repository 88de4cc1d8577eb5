from __future__ import annotations

import uuid


class CatalogResolutionError(Exception):
    """Raised when a plan or product reference cannot be resolved against the catalog."""

    def __init__(self, kind: str, ref: uuid.UUID | str) -> None:
        self.kind = kind
        self.ref = ref
        super().__init__(f"catalog {kind} '{ref}' could not be resolved")
