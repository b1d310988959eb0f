from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict


class TokenClaims(BaseModel):
    """Verified identity-token claims. Unknown claims are kept."""

    model_config = ConfigDict(extra="allow")

    sub: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    aud: Optional[Union[str, List[str]]] = None
    iss: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        """Author label recorded on comments: name, else email."""
        return self.name or self.email

    def is_author(self, author: str) -> bool:
        """Exact string match of a stored author against name or email."""
        return author is not None and author in {v for v in (self.name, self.email) if v}


__all__ = ["TokenClaims"]
