"""
Password rules for Renoir sign-up. Email format is validated by ``EmailStr``.
"""
from typing import Callable, List, Tuple

MIN_PASSWORD_LENGTH = 8

PASSWORD_RULES: Tuple[Tuple[Callable[[str], bool], str], ...] = (
    (lambda p: len(p) >= MIN_PASSWORD_LENGTH,
     f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"),
    (lambda p: any(c.isupper() for c in p), "Password must contain at least one uppercase letter"),
    (lambda p: any(c.islower() for c in p), "Password must contain at least one lowercase letter"),
    (lambda p: any(c.isdigit() for c in p), "Password must contain at least one number"),
)


def password_problems(password: str) -> List[str]:
    """Messages for every rule the password breaks, in rule order."""
    return [message for check, message in PASSWORD_RULES if not check(password)]
