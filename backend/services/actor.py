from dataclasses import dataclass


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as resolved from the bearer token."""
    user_id: int
    is_admin: bool = False

    def can_access(self, owner_id: int) -> bool:
        return self.is_admin or self.user_id == owner_id
