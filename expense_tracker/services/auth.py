"""
Authentication collaborator.

Sign-in itself is handled elsewhere; the flows only need to know who the
current owner is. Nothing runs anonymously: when there is no owner the
flows raise AuthRequiredError and the UI sends the user to sign in.
"""

from abc import ABC, abstractmethod
from typing import Optional


class AuthRequiredError(Exception):
    """An owner-scoped action was attempted without a signed-in user."""
    pass


class AuthProvider(ABC):
    """Supplies the identity of the signed-in user."""
    
    @abstractmethod
    async def get_current_owner(self) -> Optional[str]:
        """Owner ID of the signed-in user, or None."""
        pass
    
    async def require_owner(self) -> str:
        """
        Owner ID of the signed-in user.
        
        Raises:
            AuthRequiredError: Nobody is signed in
        """
        owner_id = await self.get_current_owner()
        if not owner_id:
            raise AuthRequiredError("Please sign in to continue")
        return owner_id


class StaticAuthProvider(AuthProvider):
    """Identity held in memory (a UI session, or a test)."""
    
    def __init__(self, owner_id: Optional[str] = None):
        self.owner_id = owner_id
    
    async def get_current_owner(self) -> Optional[str]:
        return self.owner_id
    
    def sign_in(self, owner_id: str) -> None:
        self.owner_id = owner_id.strip() or None
    
    def sign_out(self) -> None:
        self.owner_id = None
