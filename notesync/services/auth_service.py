"""Signed-in user state shared by every user-scoped service."""

import logging

from notesync.utils.exceptions import Unauthenticated

logger = logging.getLogger(__name__)


class AuthSession:
    """
    Holds the id of the user authenticated by the external identity provider.

    Remote collections and object storage paths are scoped under this id.
    """

    def __init__(self, user_id: str | None = None):
        self.user_id = user_id

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def sign_in(self, user_id: str) -> None:
        """Bind a user id after the identity provider accepted the user."""
        if not user_id:
            raise ValueError("user_id must not be empty")
        self.user_id = user_id
        logger.info(f"User {user_id} signed in")

    def sign_out(self) -> None:
        if self.user_id is not None:
            logger.info(f"User {self.user_id} signed out")
        self.user_id = None

    def require_user_id(self) -> str:
        """
        Get the bound user id.

        Raises:
            Unauthenticated: If no user is signed in
        """
        if self.user_id is None:
            raise Unauthenticated()
        return self.user_id
